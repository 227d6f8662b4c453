"""Configurable fake payment gateway for development and testing.

This adapter simulates a real payment gateway without any external calls.
It can be configured at runtime to approve, decline or be unreachable, and
it honours idempotency keys: a repeated authorization with the same key
returns the original result without creating a new transaction.
"""

from uuid import uuid4

from checkout.payment.gateway.port import (
    AuthorizationResult,
    BillingContact,
    CardDetails,
    GatewayUnavailableError,
    PaymentGateway,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.reason_codes: tuple[str, ...] = ("2",)
        self.failure_reason: str = "This transaction has been declined."
        self.unavailable: bool = False
        self.calls: list[dict] = []
        self._authorizations: dict[str, AuthorizationResult] = {}

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "This transaction has been declined.",
        reason_codes: tuple[str, ...] = ("2",),
        unavailable: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.reason_codes = tuple(reason_codes)
        self.unavailable = unavailable

    @property
    def charge_count(self) -> int:
        """Authorizations that actually reached the fake processor."""
        return sum(1 for call in self.calls if call["method"] == "authorize" and not call["replayed"])

    def authorize(
        self,
        amount: float,
        currency: str,
        card: CardDetails,
        billing: BillingContact,
        idempotency_key: str,
    ) -> AuthorizationResult:
        replayed = idempotency_key in self._authorizations
        self.calls.append(
            {
                "method": "authorize",
                "amount": amount,
                "currency": currency,
                "last4": card.last4,
                "idempotency_key": idempotency_key,
                "replayed": replayed,
            }
        )
        if replayed:
            return self._authorizations[idempotency_key]

        if self.unavailable:
            raise GatewayUnavailableError("FAKE_GATEWAY_UNAVAILABLE", "Fake gateway is unavailable")

        if self.should_succeed:
            result = AuthorizationResult(
                approved=True,
                transaction_id=f"fake_txn_{uuid4().hex[:12]}",
                response_code="1",
                avs_result="Y",
                cvv_result="M",
                message="This transaction has been approved.",
            )
        else:
            result = AuthorizationResult(
                approved=False,
                response_code="2",
                reason_codes=self.reason_codes,
                message=self.failure_reason,
            )
        self._authorizations[idempotency_key] = result
        return result

    def capture(self, transaction_id: str, amount: float) -> AuthorizationResult:
        self.calls.append({"method": "capture", "transaction_id": transaction_id, "amount": amount})
        if self.unavailable:
            raise GatewayUnavailableError("FAKE_GATEWAY_UNAVAILABLE", "Fake gateway is unavailable")
        if self.should_succeed:
            return AuthorizationResult(approved=True, transaction_id=transaction_id, response_code="1")
        return AuthorizationResult(
            approved=False,
            transaction_id=transaction_id,
            response_code="2",
            reason_codes=self.reason_codes,
            message=self.failure_reason,
        )
