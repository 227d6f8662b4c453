"""Configurable fake age verification provider for development and testing.

Never calls out. It approves by default and can be configured to decline,
stay pending, or fail a number of times before answering, which is how the
retry behaviour of ``AgeVerifier`` is exercised.
"""

from datetime import date
from uuid import uuid4

from checkout.verification.port import (
    AgeVerificationProvider,
    ProviderDecision,
    VerificationProviderError,
    VerificationStatus,
)


class FakeAgeVerificationProvider(AgeVerificationProvider):
    name = "fake"

    def __init__(self) -> None:
        self.status: VerificationStatus = VerificationStatus.APPROVED
        self.reason_code: str | None = None
        self.failures_remaining: int = 0
        self.failure_code: str = "PROVIDER_UNAVAILABLE"
        self.failure_transient: bool = True
        self.failure_reference_id: str | None = None
        self.reported_age: int | None = None
        self.calls: list[dict] = []
        self.resumed: list[str] = []

    def configure(
        self,
        status: VerificationStatus = VerificationStatus.APPROVED,
        reason_code: str | None = None,
        reported_age: int | None = None,
    ) -> None:
        """Configure the decision returned by subsequent calls."""
        self.status = status
        self.reason_code = reason_code
        self.reported_age = reported_age

    def fail_next(
        self,
        times: int = 1,
        code: str = "PROVIDER_UNAVAILABLE",
        transient: bool = True,
        reference_id: str | None = None,
    ) -> None:
        """Raise ``VerificationProviderError`` on the next ``times`` calls.

        ``reference_id`` simulates a failure after the verification was opened.
        """
        self.failures_remaining = times
        self.failure_code = code
        self.failure_transient = transient
        self.failure_reference_id = reference_id

    def verify_age(
        self,
        first_name: str,
        last_name: str,
        date_of_birth: date,
        address: dict | None = None,
        reference_id: str | None = None,
    ) -> ProviderDecision:
        # Only non-identifying facts are recorded
        self.calls.append({"method": "verify_age", "has_address": address is not None})
        if reference_id is not None:
            self.resumed.append(reference_id)

        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise VerificationProviderError(
                code=self.failure_code,
                message="Fake provider failure",
                transient=self.failure_transient,
                reference_id=reference_id or self.failure_reference_id,
            )

        return ProviderDecision(
            status=self.status,
            reference_id=reference_id or f"fake_ver_{uuid4().hex[:12]}",
            reason_code=self.reason_code,
            age=self.reported_age,
        )
