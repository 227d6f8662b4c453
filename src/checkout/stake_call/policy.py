"""Decides whether an order needs a stake call.

The decision is a list of trigger predicates; any trigger that fires makes the
stake call required. Triggers are plain callables and can be replaced or
extended without touching the pipeline. First-time recipients always trigger.
"""

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from checkout.stake_call.stake_call import StakeCall

FIRST_TIME_RECIPIENT = "FIRST_TIME_RECIPIENT"


@dataclass(frozen=True)
class StakeCallContext:
    order_id: str
    account_id: str | None
    is_first_time_recipient: bool
    shipping_state: str
    order_total: float = 0.0
    evaluated_at: datetime | None = None


StakeCallTrigger = Callable[[StakeCallContext], str | None]


def first_time_recipient(context: StakeCallContext) -> str | None:
    return FIRST_TIME_RECIPIENT if context.is_first_time_recipient else None


DEFAULT_TRIGGERS: tuple[StakeCallTrigger, ...] = (first_time_recipient,)


@dataclass(frozen=True)
class StakeCallDecision:
    required: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)
    stake_call: StakeCall | None = None


class StakeCallEvaluator:
    def __init__(self, triggers: Iterable[StakeCallTrigger] | None = None):
        self.triggers = tuple(triggers) if triggers is not None else DEFAULT_TRIGGERS

    def evaluate(self, context: StakeCallContext) -> StakeCallDecision:
        """Evaluate every trigger; open a PENDING stake call when any fires."""
        reasons = []
        for trigger in self.triggers:
            reason = trigger(context)
            if reason and reason not in reasons:
                reasons.append(reason)

        if not reasons:
            return StakeCallDecision(required=False)

        stake_call = StakeCall.open(
            order_id=context.order_id,
            trigger_reasons=json.dumps(reasons),
            invoked_at=context.evaluated_at,
        )
        return StakeCallDecision(required=True, reasons=tuple(reasons), stake_call=stake_call)
