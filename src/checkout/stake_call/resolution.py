"""Stake call resolution — command and handler.

Records the outcome of a pending stake call and moves its order out of
AWAITING_STAKE_CALL, in one unit of work.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from checkout.domain import checkout, logger
from checkout.order.order import Order, OrderStatus
from checkout.stake_call.stake_call import StakeCall, StakeCallResult


@checkout.command(part_of="StakeCall")
class ResolveStakeCall:
    order_id = Identifier(required=True)
    outcome = String(max_length=20, required=True, choices=StakeCallResult)
    resolved_by = Identifier(required=True)
    notes = Text()
    reason_code = String(max_length=100)


@checkout.command_handler(part_of=StakeCall)
class ResolveStakeCallHandler:
    @handle(ResolveStakeCall)
    def resolve_stake_call(self, command):
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(command.order_id)
        if order.status != OrderStatus.AWAITING_STAKE_CALL.value or not order.stake_call_id:
            raise ValidationError({"order": ["Order has no pending stake call"]})
        if order.account_id and str(order.account_id) == str(command.resolved_by):
            raise ValidationError({"resolved_by": ["The ordering account cannot resolve its own stake call"]})

        outcome = StakeCallResult(command.outcome)
        if outcome == StakeCallResult.PENDING:
            raise ValidationError({"outcome": ["Outcome must be COMPLETED or FAILED"]})

        stake_repo = current_domain.repository_for(StakeCall)
        stake_call = stake_repo.get(order.stake_call_id)
        stake_call.resolve(
            outcome,
            resolved_by=command.resolved_by,
            notes=command.notes,
            reason_code=command.reason_code,
        )

        if outcome == StakeCallResult.COMPLETED:
            order.clear_stake_call()
        else:
            order.cancel_for_stake_call(command.reason_code)

        stake_repo.add(stake_call)
        order_repo.add(order)
        logger.info(
            "Stake call resolved",
            order_id=str(order.id),
            outcome=outcome.value,
            order_status=order.status,
        )
        return order.status
