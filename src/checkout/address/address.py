"""Address aggregate — a delivery or billing destination.

Addresses belong to an account or, for guest checkout, to no account at all.
The ``is_po_box`` flag is derived when the address is stored and is what the
compliance pipeline consults, together with a fresh heuristic check.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String

from checkout.address.events import AddressAdded, DefaultAddressChanged
from checkout.compliance.address_validation import looks_like_po_box
from checkout.domain import checkout


@checkout.aggregate
class Address:
    account_id = Identifier()
    recipient_name = String(required=True, max_length=200)
    phone = String(max_length=30)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=2, min_length=2)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=2, default="US")
    is_po_box = Boolean(default=False)
    is_default = Boolean(default=False)
    created_at = DateTime()

    @invariant.post
    def guest_address_cannot_be_default(self):
        if self.is_default and not self.account_id:
            raise ValidationError({"is_default": ["Only account addresses can be marked as default"]})

    @classmethod
    def register(
        cls,
        recipient_name,
        line1,
        city,
        state,
        postal_code,
        account_id=None,
        phone=None,
        line2=None,
        country="US",
        is_po_box=False,
    ):
        now = datetime.now(UTC)
        address = cls(
            account_id=account_id,
            recipient_name=recipient_name,
            phone=phone,
            line1=line1,
            line2=line2,
            city=city,
            state=state.upper(),
            postal_code=postal_code,
            country=(country or "US").upper(),
            is_po_box=bool(is_po_box) or looks_like_po_box(line1),
            created_at=now,
        )
        address.raise_(
            AddressAdded(
                address_id=str(address.id),
                account_id=account_id,
                state=address.state,
                is_po_box=address.is_po_box,
                added_at=now,
            )
        )
        return address

    def mark_default(self) -> None:
        self.is_default = True
        self.raise_(
            DefaultAddressChanged(
                address_id=str(self.id),
                account_id=str(self.account_id),
                changed_at=datetime.now(UTC),
            )
        )

    def clear_default(self) -> None:
        self.is_default = False

    def belongs_to(self, account_id) -> bool:
        """True when the address is owned by ``account_id`` (``None`` meaning guest)."""
        owner = str(self.account_id) if self.account_id else None
        return owner == (str(account_id) if account_id else None)

    def as_postal_dict(self) -> dict:
        return {
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }
