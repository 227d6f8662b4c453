"""Pure aggregation of stage outcomes into a ComplianceSnapshot."""

import json
from collections.abc import Iterable
from datetime import UTC, datetime

from checkout.compliance.address_validation import EligibleAddress
from checkout.compliance.restrictions import ProductFlags
from checkout.compliance.snapshot import ComplianceDecision, ComplianceSnapshot
from checkout.verification.port import VerificationStatus


class ComplianceSnapshotBuilder:
    def __init__(self, clock=None):
        self.clock = clock or (lambda: datetime.now(UTC))

    def build(
        self,
        order_id: str,
        age_verification,
        address_eligibility: EligibleAddress,
        product_flags: Iterable[ProductFlags],
        stake_call_required: bool = False,
        stake_call_reasons: Iterable[str] = (),
    ) -> ComplianceSnapshot:
        """Return an unsaved snapshot; ``age_verification`` is an AgeVerification aggregate."""
        product_flags = list(product_flags)

        reason_codes: list[str] = []
        if address_eligibility.reason_code:
            reason_codes.append(address_eligibility.reason_code)
        for flags in product_flags:
            reason_codes.extend(code for code in flags.reason_codes if code not in reason_codes)
        if age_verification.status != VerificationStatus.APPROVED.value:
            reason_codes.append(age_verification.reason_code or "AGE_VERIFICATION_FAILED")

        if reason_codes:
            decision = ComplianceDecision.BLOCK
        elif stake_call_required:
            decision = ComplianceDecision.REVIEW
        else:
            decision = ComplianceDecision.ALLOW

        return ComplianceSnapshot(
            order_id=order_id,
            decision=decision.value,
            reason_codes=json.dumps(reason_codes),
            age_verification_id=str(age_verification.id),
            age_verification_status=age_verification.status,
            age_verification_provider=age_verification.provider,
            age_verification_reference=age_verification.reference_id,
            shipping_address_id=address_eligibility.address_id,
            shipping_state=address_eligibility.state,
            address_eligible=address_eligibility.eligible,
            address_reason_code=address_eligibility.reason_code,
            product_flags=json.dumps([flags.to_dict() for flags in product_flags]),
            stake_call_required=stake_call_required,
            stake_call_reasons=json.dumps(list(stake_call_reasons)),
            created_at=self.clock(),
        )
