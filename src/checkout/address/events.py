"""Domain events for the Address aggregate."""

from protean.fields import Boolean, DateTime, Identifier, String

from checkout.domain import checkout


@checkout.event(part_of="Address")
class AddressAdded:
    """A delivery address was stored."""

    __version__ = 1

    address_id = Identifier(required=True)
    account_id = Identifier()
    state = String(max_length=2, required=True)
    is_po_box = Boolean(required=True)
    added_at = DateTime(required=True)


@checkout.event(part_of="Address")
class DefaultAddressChanged:
    """An account designated a new default address."""

    __version__ = 1

    address_id = Identifier(required=True)
    account_id = Identifier(required=True)
    changed_at = DateTime(required=True)
