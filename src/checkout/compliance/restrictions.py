"""State-level product restriction rules.

Each rule inspects one product against the destination state and returns a
reason code when the product may not ship there. Rules run before age
verification since they are free and deterministic.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from checkout.catalog.product import FlavorType
from checkout.errors import ProductRestricted

CA_FLAVOR_BAN = "CA_FLAVOR_BAN"
CA_SENSORY_BAN = "CA_SENSORY_BAN"

RestrictionRule = Callable[[object, str], str | None]


def california_flavor_ban(product, state: str) -> str | None:
    """California bans flavored products unless listed as unflavored tobacco."""
    if state != "CA":
        return None
    if product.flavor_type != FlavorType.TOBACCO.value and not product.ca_utl_approved:
        return CA_FLAVOR_BAN
    return None


def california_sensory_ban(product, state: str) -> str | None:
    """California bans products with a cooling or other sensory effect."""
    if state == "CA" and product.sensory_cooling:
        return CA_SENSORY_BAN
    return None


DEFAULT_RULES: tuple[RestrictionRule, ...] = (california_flavor_ban, california_sensory_ban)


@dataclass(frozen=True)
class ProductFlags:
    """Regulatory flags of one product as they stood at time of purchase."""

    product_id: str
    sku: str
    flavor_type: str
    ca_utl_approved: bool
    sensory_cooling: bool
    nicotine_mg: float
    reason_codes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def restricted(self) -> bool:
        return bool(self.reason_codes)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "sku": self.sku,
            "flavor_type": self.flavor_type,
            "ca_utl_approved": self.ca_utl_approved,
            "sensory_cooling": self.sensory_cooling,
            "nicotine_mg": self.nicotine_mg,
            "reason_codes": list(self.reason_codes),
        }


class RestrictionRules:
    def __init__(self, rules: Iterable[RestrictionRule] | None = None):
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES

    def evaluate(self, products: Iterable, state: str) -> list[ProductFlags]:
        state = (state or "").upper()
        flags = []
        for product in products:
            codes = []
            for rule in self.rules:
                code = rule(product, state)
                if code and code not in codes:
                    codes.append(code)
            flags.append(
                ProductFlags(
                    product_id=str(product.id),
                    sku=product.sku,
                    flavor_type=product.flavor_type,
                    ca_utl_approved=bool(product.ca_utl_approved),
                    sensory_cooling=bool(product.sensory_cooling),
                    nicotine_mg=product.nicotine_mg or 0.0,
                    reason_codes=tuple(codes),
                )
            )
        return flags

    def enforce(self, products: Iterable, state: str) -> list[ProductFlags]:
        """Evaluate and raise ``ProductRestricted`` if any product is blocked."""
        flags = self.evaluate(products, state)
        reason_codes = []
        for flag in flags:
            for code in flag.reason_codes:
                if code not in reason_codes:
                    reason_codes.append(code)
        if reason_codes:
            raise ProductRestricted(reason_codes=reason_codes)
        return flags
