"""ComplianceSnapshot aggregate — the regulatory state frozen at order time.

Captures the age verification outcome, the address eligibility determination
and every product's regulatory flags as they stood when the order was placed.
Exactly one snapshot exists per order; it is written together with the order
and never again.
"""

import json
from datetime import datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Identifier, String, Text

from checkout.domain import checkout
from checkout.utils.write_once import WriteOnceRepository


class ComplianceDecision(Enum):
    ALLOW = "ALLOW"
    REVIEW = "REVIEW"  # allowed, shipment withheld until the stake call resolves
    BLOCK = "BLOCK"


@checkout.aggregate
class ComplianceSnapshot:
    order_id = Identifier(required=True)
    decision = String(max_length=10, required=True, choices=ComplianceDecision)
    reason_codes = Text()  # JSON array

    age_verification_id = Identifier()
    age_verification_status = String(max_length=20, required=True)
    age_verification_provider = String(max_length=50)
    age_verification_reference = String(max_length=255)

    shipping_address_id = Identifier(required=True)
    shipping_state = String(max_length=2, required=True)
    address_eligible = Boolean(required=True)
    address_reason_code = String(max_length=100)

    product_flags = Text(required=True)  # JSON array of per-product flags
    stake_call_required = Boolean(default=False)
    stake_call_reasons = Text()  # JSON array

    created_at = DateTime(required=True)

    def reason_code_list(self) -> list[str]:
        return json.loads(self.reason_codes) if self.reason_codes else []

    def product_flag_list(self) -> list[dict]:
        return json.loads(self.product_flags) if self.product_flags else []

    def stake_call_reason_list(self) -> list[str]:
        return json.loads(self.stake_call_reasons) if self.stake_call_reasons else []

    def to_summary(self) -> dict:
        return {
            "id": str(self.id),
            "decision": self.decision,
            "reason_codes": self.reason_code_list(),
            "age_verification_status": self.age_verification_status,
            "shipping_state": self.shipping_state,
            "address_eligible": self.address_eligible,
            "product_flags": self.product_flag_list(),
            "stake_call_required": self.stake_call_required,
            "created_at": self.created_at.isoformat() if isinstance(self.created_at, datetime) else self.created_at,
        }


@checkout.repository(part_of=ComplianceSnapshot)
class ComplianceSnapshotRepository(WriteOnceRepository):
    def find_for_order(self, order_id) -> ComplianceSnapshot | None:
        results = self._dao.query.filter(order_id=str(order_id)).all().items
        return results[0] if results else None
