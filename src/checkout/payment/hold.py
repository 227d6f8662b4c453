"""AuthorizationHold aggregate: an approved gateway authorization by idempotency key.

A hold is stored in its own unit of work the moment the gateway approves, ahead
of the order commit. A retry carrying the same key reuses the hold instead of
asking the gateway again, including when the earlier attempt never committed
its order.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Float, String

from checkout.domain import checkout
from checkout.payment.gateway.port import AuthorizationResult
from checkout.utils.write_once import WriteOnceRepository


@checkout.aggregate
class AuthorizationHold:
    idempotency_key = String(max_length=255, required=True, unique=True)
    gateway = String(max_length=50, required=True)
    gateway_transaction_id = String(max_length=255, required=True)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    last4 = String(max_length=4, min_length=4)
    response_code = String(max_length=20)
    avs_result = String(max_length=10)
    cvv_result = String(max_length=10)
    authorized_at = DateTime(required=True)

    @classmethod
    def record(cls, idempotency_key, gateway, result, amount, currency, last4):
        return cls(
            idempotency_key=idempotency_key,
            gateway=gateway,
            gateway_transaction_id=result.transaction_id,
            amount=amount,
            currency=currency,
            last4=last4,
            response_code=result.response_code,
            avs_result=result.avs_result,
            cvv_result=result.cvv_result,
            authorized_at=datetime.now(UTC),
        )

    def covers(self, gateway: str, amount: float, currency: str, last4: str) -> bool:
        """True when a new authorization request asks for exactly this hold."""
        return (
            self.gateway == gateway
            and round(self.amount, 2) == round(amount, 2)
            and self.currency == currency
            and self.last4 == last4
        )

    def as_result(self) -> AuthorizationResult:
        return AuthorizationResult(
            approved=True,
            transaction_id=self.gateway_transaction_id,
            response_code=self.response_code,
            avs_result=self.avs_result,
            cvv_result=self.cvv_result,
        )


@checkout.repository(part_of=AuthorizationHold)
class AuthorizationHoldRepository(WriteOnceRepository):
    def find_by_key(self, idempotency_key: str) -> AuthorizationHold | None:
        results = self._dao.query.filter(idempotency_key=idempotency_key).all().items
        return results[0] if results else None
