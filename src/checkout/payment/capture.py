"""Payment capture command and handler.

Fulfillment captures the held authorization once the order has no release
blockers left other than the capture itself.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from checkout.domain import checkout, logger
from checkout.errors import PaymentDeclined, PaymentGatewayUnavailable
from checkout.order.order import Order, OrderStatus
from checkout.payment.gateway import get_gateway
from checkout.payment.gateway.port import GatewayUnavailableError
from checkout.payment.transaction import PaymentTransaction, TransactionStatus


@checkout.command(part_of="PaymentTransaction")
class CapturePayment:
    """Capture the authorized payment of a released order."""

    order_id = Identifier(required=True)


@checkout.command_handler(part_of=PaymentTransaction)
class CapturePaymentHandler:
    @handle(CapturePayment)
    def capture_payment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if order.status != OrderStatus.CREATED.value or order.release_blockers():
            raise ValidationError({"order": ["Order is not released for fulfillment"]})

        repo = current_domain.repository_for(PaymentTransaction)
        transaction = repo.get(order.payment_transaction_id)
        if transaction.status != TransactionStatus.AUTHORIZED.value:
            raise ValidationError({"status": [f"Transaction is already {transaction.status}"]})

        gateway = get_gateway()
        try:
            result = gateway.capture(transaction.gateway_transaction_id, transaction.amount)
        except GatewayUnavailableError as exc:
            raise PaymentGatewayUnavailable(reason_code=exc.code) from exc
        if not result.approved:
            raise PaymentDeclined(reason_codes=list(result.reason_codes), message=result.message or "Capture failed")

        transaction.mark_captured()
        repo.add(transaction)
        logger.info("Payment captured", order_id=str(order.id), transaction_id=transaction.gateway_transaction_id)
        return str(transaction.id)
