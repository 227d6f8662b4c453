"""Domain events for the Order aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from checkout.domain import checkout


@checkout.event(part_of="Order")
class OrderPlaced:
    """An order passed every compliance stage and was committed."""

    __version__ = 1

    order_id = Identifier(required=True)
    account_id = Identifier()
    status = String(required=True)
    compliance_snapshot_id = Identifier(required=True)
    stake_call_required = Boolean(required=True)
    payment_authorized = Boolean(required=True)
    grand_total = Float(required=True)
    currency = String(required=True)
    placed_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderStatusChanged:
    """The order left a waiting state."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    reason = String()
    changed_at = DateTime(required=True)
