"""PaymentTransaction aggregate — the record of one gateway authorization.

Only the gateway's identifiers and result codes plus the card's last four
digits are kept. The card number, CVV and expiration date never reach this
aggregate.

State Machine:
    AUTHORIZED → CAPTURED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String

from checkout.domain import checkout


class TransactionStatus(Enum):
    AUTHORIZED = "AUTHORIZED"
    CAPTURED = "CAPTURED"


_VALID_TRANSITIONS = {
    TransactionStatus.AUTHORIZED: {TransactionStatus.CAPTURED},
    TransactionStatus.CAPTURED: set(),
}


@checkout.aggregate
class PaymentTransaction:
    order_id = Identifier(required=True)
    gateway = String(max_length=50, required=True)
    gateway_transaction_id = String(max_length=255, required=True)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    status = String(max_length=20, choices=TransactionStatus, default=TransactionStatus.AUTHORIZED.value)
    response_code = String(max_length=20)
    avs_result = String(max_length=10)
    cvv_result = String(max_length=10)
    last4 = String(max_length=4, min_length=4)
    idempotency_key = String(max_length=255, required=True)
    authorized_at = DateTime(required=True)
    captured_at = DateTime()

    @classmethod
    def authorized(cls, order_id, gateway, result, amount, currency, last4, idempotency_key):
        """Build from an approved ``AuthorizationResult``."""
        return cls(
            order_id=order_id,
            gateway=gateway,
            gateway_transaction_id=result.transaction_id,
            amount=amount,
            currency=currency,
            response_code=result.response_code,
            avs_result=result.avs_result,
            cvv_result=result.cvv_result,
            last4=last4,
            idempotency_key=idempotency_key,
            authorized_at=datetime.now(UTC),
        )

    def mark_captured(self) -> None:
        current = TransactionStatus(self.status)
        if TransactionStatus.CAPTURED not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition from {current.value} to CAPTURED"]})
        self.status = TransactionStatus.CAPTURED.value
        self.captured_at = datetime.now(UTC)
