"""StakeCall aggregate: a supplementary live re-verification of the recipient.

State Machine:
    PENDING → COMPLETED
    PENDING → FAILED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text

from checkout.domain import checkout


class StakeCallResult(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


_VALID_TRANSITIONS = {
    StakeCallResult.PENDING: {StakeCallResult.COMPLETED, StakeCallResult.FAILED},
    StakeCallResult.COMPLETED: set(),
    StakeCallResult.FAILED: set(),
}


@checkout.aggregate
class StakeCall:
    order_id = Identifier(required=True)
    result = String(max_length=20, choices=StakeCallResult, default=StakeCallResult.PENDING.value)
    trigger_reasons = Text()  # JSON array of trigger reason codes
    reason_code = String(max_length=100)
    notes = Text()
    resolved_by = Identifier()
    invoked_at = DateTime(required=True)
    resolved_at = DateTime()

    @classmethod
    def open(cls, order_id, trigger_reasons, invoked_at=None):
        return cls(
            order_id=order_id,
            trigger_reasons=trigger_reasons,
            invoked_at=invoked_at or datetime.now(UTC),
        )

    @property
    def is_pending(self) -> bool:
        return self.result == StakeCallResult.PENDING.value

    def resolve(self, outcome: StakeCallResult, resolved_by=None, notes=None, reason_code=None) -> None:
        current = StakeCallResult(self.result)
        if outcome not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"result": [f"Cannot transition from {current.value} to {outcome.value}"]})

        self.result = outcome.value
        self.resolved_by = resolved_by
        self.notes = notes
        self.reason_code = reason_code
        self.resolved_at = datetime.now(UTC)
