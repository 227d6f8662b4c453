"""Order aggregate — a committed, compliance-cleared purchase.

An Order only exists once every mandatory stage has succeeded; there is no
draft state visible to readers.

State Machine:
    AWAITING_STAKE_CALL → CREATED | AWAITING_PAYMENT | CANCELLED
    AWAITING_PAYMENT → CREATED | FAILED
    CREATED, CANCELLED, FAILED are terminal here (fulfillment takes over).
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from checkout.domain import checkout
from checkout.order.events import OrderPlaced, OrderStatusChanged


class OrderStatus(Enum):
    CREATED = "CREATED"
    AWAITING_STAKE_CALL = "AWAITING_STAKE_CALL"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


_VALID_TRANSITIONS = {
    OrderStatus.AWAITING_STAKE_CALL: {OrderStatus.CREATED, OrderStatus.AWAITING_PAYMENT, OrderStatus.CANCELLED},
    OrderStatus.AWAITING_PAYMENT: {OrderStatus.CREATED, OrderStatus.FAILED},
    OrderStatus.CREATED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.FAILED: set(),
}


class ReleaseBlocker(Enum):
    STAKE_CALL_PENDING = "STAKE_CALL_PENDING"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    PAYMENT_FAILED = "PAYMENT_FAILED"


@checkout.entity(part_of="Order")
class OrderItem:
    """A product line; the unit price is the one charged at time of sale."""

    product_id = Identifier(required=True)
    sku = String(max_length=64, required=True)
    product_name = String(max_length=255, required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(required=True, min_value=0.0)
    net_weight_grams = Float(default=0.0)


@checkout.aggregate
class Order:
    account_id = Identifier()  # None for guest checkout
    status = String(max_length=30, required=True, choices=OrderStatus)
    items = HasMany(OrderItem)
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier(required=True)

    compliance_snapshot_id = Identifier(required=True)
    age_verification_id = Identifier(required=True)
    stake_call_id = Identifier()
    payment_transaction_id = Identifier()

    subtotal = Float(default=0.0)
    sales_tax = Float(default=0.0)
    excise_tax = Float(default=0.0)
    grand_total = Float(default=0.0)
    currency = String(max_length=3, default="USD")

    idempotency_key = String(max_length=255, required=True)
    request_fingerprint = String(max_length=64, required=True)
    created_at = DateTime(required=True)
    updated_at = DateTime()

    @invariant.post
    def order_must_have_items(self):
        if not self.items:
            raise ValidationError({"items": ["Order must contain at least one item"]})

    @invariant.post
    def created_order_needs_settled_payment(self):
        if self.status == OrderStatus.CREATED.value and not self.payment_transaction_id:
            raise ValidationError({"status": ["A created order requires an authorized payment"]})

    @classmethod
    def place(
        cls,
        order_id,
        account_id,
        status: OrderStatus,
        items,
        shipping_address_id,
        billing_address_id,
        compliance_snapshot_id,
        age_verification_id,
        totals,
        idempotency_key,
        request_fingerprint,
        stake_call_id=None,
        payment_transaction_id=None,
        currency="USD",
        placed_at=None,
    ):
        now = placed_at or datetime.now(UTC)
        order = cls(
            id=order_id,
            account_id=account_id,
            status=status.value,
            items=items,
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id,
            compliance_snapshot_id=compliance_snapshot_id,
            age_verification_id=age_verification_id,
            stake_call_id=stake_call_id,
            payment_transaction_id=payment_transaction_id,
            subtotal=totals.subtotal,
            sales_tax=totals.sales_tax,
            excise_tax=totals.excise_tax,
            grand_total=totals.grand_total,
            currency=currency,
            idempotency_key=idempotency_key,
            request_fingerprint=request_fingerprint,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                account_id=account_id,
                status=status.value,
                compliance_snapshot_id=compliance_snapshot_id,
                stake_call_required=stake_call_id is not None,
                payment_authorized=payment_transaction_id is not None,
                grand_total=totals.grand_total,
                currency=currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _transition(self, target_status: OrderStatus, reason: str | None = None) -> None:
        self._assert_can_transition(target_status)
        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                from_status=previous,
                to_status=target_status.value,
                reason=reason,
                changed_at=now,
            )
        )

    def clear_stake_call(self) -> None:
        """The stake call completed; proceed to payment or to fulfillment."""
        if self.payment_transaction_id:
            self._transition(OrderStatus.CREATED, reason="STAKE_CALL_COMPLETED")
        else:
            self._transition(OrderStatus.AWAITING_PAYMENT, reason="STAKE_CALL_COMPLETED")

    def cancel_for_stake_call(self, reason_code: str | None = None) -> None:
        self._transition(OrderStatus.CANCELLED, reason=reason_code or "STAKE_CALL_FAILED")

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def release_blockers(self) -> list[str]:
        """Reasons fulfillment must withhold shipment; empty when it may ship."""
        status = OrderStatus(self.status)
        if status == OrderStatus.CANCELLED:
            return [ReleaseBlocker.ORDER_CANCELLED.value]
        if status == OrderStatus.FAILED:
            return [ReleaseBlocker.PAYMENT_FAILED.value]

        blockers = []
        if status == OrderStatus.AWAITING_STAKE_CALL:
            blockers.append(ReleaseBlocker.STAKE_CALL_PENDING.value)
        if not self.payment_transaction_id:
            blockers.append(ReleaseBlocker.PAYMENT_PENDING.value)
        return blockers
