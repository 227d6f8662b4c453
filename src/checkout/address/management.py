"""Address book commands and handler.

Setting a default clears every other default of the same account inside the
handler's unit of work, so an account never observes two defaults.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from checkout.address.address import Address
from checkout.domain import checkout, logger


@checkout.command(part_of="Address")
class AddAddress:
    """Store a new delivery or billing address."""

    account_id = Identifier()
    recipient_name = String(required=True, max_length=200)
    phone = String(max_length=30)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=2)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=2, default="US")
    is_po_box = Boolean(default=False)
    is_default = Boolean(default=False)


@checkout.command(part_of="Address")
class SetDefaultAddress:
    """Designate an existing address as the account's default."""

    account_id = Identifier(required=True)
    address_id = Identifier(required=True)


def _clear_other_defaults(repo, account_id, keep_id=None) -> None:
    current_defaults = repo._dao.query.filter(account_id=str(account_id), is_default=True).all().items
    for existing in current_defaults:
        if keep_id is not None and str(existing.id) == str(keep_id):
            continue
        existing.clear_default()
        repo.add(existing)


@checkout.command_handler(part_of=Address)
class ManageAddressesHandler:
    @handle(AddAddress)
    def add_address(self, command):
        repo = current_domain.repository_for(Address)

        address = Address.register(
            account_id=command.account_id,
            recipient_name=command.recipient_name,
            phone=command.phone,
            line1=command.line1,
            line2=command.line2,
            city=command.city,
            state=command.state,
            postal_code=command.postal_code,
            country=command.country,
            is_po_box=command.is_po_box,
        )

        if command.is_default and command.account_id:
            _clear_other_defaults(repo, command.account_id)
            address.mark_default()

        repo.add(address)
        logger.info(
            "Address added",
            address_id=str(address.id),
            is_po_box=address.is_po_box,
            is_default=address.is_default,
        )
        return str(address.id)

    @handle(SetDefaultAddress)
    def set_default_address(self, command):
        repo = current_domain.repository_for(Address)
        address = repo.get(command.address_id)
        if not address.belongs_to(command.account_id):
            raise ObjectNotFoundError(f"Address with id {command.address_id} does not exist.")

        _clear_other_defaults(repo, command.account_id, keep_id=address.id)
        if not address.is_default:
            address.mark_default()
            repo.add(address)
