"""Turns a gateway authorization into a PaymentTransaction.

Authorizations are never retried automatically: a decline is final and a
gateway outage is reported to the caller, who may resubmit with the same
idempotency key. Every approval is recorded as an ``AuthorizationHold`` right
away, so a resubmission reuses it instead of holding funds a second time.
"""

import structlog
from protean.utils.globals import current_domain

from checkout.errors import IDEMPOTENCY_KEY_REUSED, InvalidCheckoutRequest, PaymentDeclined, PaymentGatewayUnavailable
from checkout.payment.gateway.port import (
    AuthorizationResult,
    BillingContact,
    CardDetails,
    GatewayUnavailableError,
    PaymentGateway,
)
from checkout.payment.hold import AuthorizationHold
from checkout.payment.transaction import PaymentTransaction

logger = structlog.get_logger(__name__)


class PaymentProcessor:
    def __init__(self, gateway: PaymentGateway, currency: str = "USD"):
        self.gateway = gateway
        self.currency = currency

    def authorize(
        self,
        order_id: str,
        card: CardDetails,
        billing: BillingContact,
        amount: float,
        idempotency_key: str,
    ) -> PaymentTransaction:
        """Return an unsaved PaymentTransaction, or raise a payment error."""
        hold_repo = current_domain.repository_for(AuthorizationHold)
        hold = hold_repo.find_by_key(idempotency_key)

        if hold is not None:
            if not hold.covers(self.gateway.name, amount, self.currency, card.last4):
                raise InvalidCheckoutRequest(
                    "Idempotency key was already used for a different payment",
                    reason_code=IDEMPOTENCY_KEY_REUSED,
                    field="idempotencyKey",
                )
            logger.info(
                "Payment authorization reused",
                gateway=self.gateway.name,
                transaction_id=hold.gateway_transaction_id,
            )
            result = hold.as_result()
        else:
            result = self._authorize_with_gateway(card, billing, amount, idempotency_key)
            hold_repo.add(
                AuthorizationHold.record(
                    idempotency_key=idempotency_key,
                    gateway=self.gateway.name,
                    result=result,
                    amount=amount,
                    currency=self.currency,
                    last4=card.last4,
                )
            )

        return PaymentTransaction.authorized(
            order_id=order_id,
            gateway=self.gateway.name,
            result=result,
            amount=amount,
            currency=self.currency,
            last4=card.last4,
            idempotency_key=idempotency_key,
        )

    def _authorize_with_gateway(
        self,
        card: CardDetails,
        billing: BillingContact,
        amount: float,
        idempotency_key: str,
    ) -> AuthorizationResult:
        try:
            result = self.gateway.authorize(
                amount=amount,
                currency=self.currency,
                card=card,
                billing=billing,
                idempotency_key=idempotency_key,
            )
        except GatewayUnavailableError as exc:
            logger.warning("Payment gateway unavailable", gateway=self.gateway.name, code=exc.code)
            raise PaymentGatewayUnavailable(reason_code=exc.code) from exc

        if not result.approved:
            logger.info(
                "Payment authorization declined",
                gateway=self.gateway.name,
                response_code=result.response_code,
                reason_codes=list(result.reason_codes),
            )
            raise PaymentDeclined(
                reason_codes=list(result.reason_codes),
                message=result.message or "Payment authorization declined",
            )

        logger.info(
            "Payment authorized",
            gateway=self.gateway.name,
            transaction_id=result.transaction_id,
            last4=card.last4,
        )
        return result
