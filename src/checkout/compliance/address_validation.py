"""Delivery-address eligibility for restricted shipments.

Carriers will not deliver age-restricted products to PO boxes, so any address
that is flagged as one, or whose first line reads like one, is ineligible.
The check is local and deterministic; it is never retried.
"""

import re
from dataclasses import dataclass

from checkout.errors import AddressIneligible

PO_BOX_NOT_ALLOWED = "PO_BOX_NOT_ALLOWED"

_PO_BOX_PATTERNS = (
    re.compile(r"\bpo\s+box\b"),
    re.compile(r"\bp\.\s*o\.\s*box\b"),
    re.compile(r"^po\s"),
)


def looks_like_po_box(line1: str | None) -> bool:
    """Heuristic match on the first address line (case-insensitive)."""
    if not line1:
        return False
    normalized = " ".join(line1.strip().lower().split())
    return any(pattern.search(normalized) for pattern in _PO_BOX_PATTERNS)


@dataclass(frozen=True)
class EligibleAddress:
    address_id: str
    state: str
    country: str
    reason_code: str | None = None

    @property
    def eligible(self) -> bool:
        return self.reason_code is None


class AddressValidator:
    def check(self, address) -> EligibleAddress:
        """Return the eligibility determination without raising."""
        reason_code = None
        if address.is_po_box or looks_like_po_box(address.line1):
            reason_code = PO_BOX_NOT_ALLOWED
        return EligibleAddress(
            address_id=str(address.id),
            state=address.state,
            country=address.country,
            reason_code=reason_code,
        )

    def validate(self, address) -> EligibleAddress:
        """Return the eligible address or raise ``AddressIneligible``.

        The line-one heuristic wins over a caller-supplied ``is_po_box=False``.
        """
        result = self.check(address)
        if not result.eligible:
            raise AddressIneligible(reason_code=result.reason_code)
        return result
