"""AgeVerifier normalizes provider decisions into a verification result.

Age is first computed locally against an injectable clock. Customers under
the minimum age are declined without contacting the provider. Transient
provider failures are retried with exponential backoff; once retries are
exhausted the result is ERROR, which callers must keep distinct from DECLINED.
A DECLINED decision is final and never retried. A retry resumes the
verification the provider already opened, when it reported one.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime

import structlog

from checkout.verification.port import (
    AgeVerificationProvider,
    ProviderDecision,
    VerificationProviderError,
    VerificationStatus,
)

logger = structlog.get_logger(__name__)

UNDER_MINIMUM_AGE = "UNDER_MINIMUM_AGE"


def calculate_age(date_of_birth: date, today: date) -> int:
    """Whole years between ``date_of_birth`` and ``today``."""
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


@dataclass(frozen=True)
class VerificationResult:
    status: VerificationStatus
    provider: str
    reference_id: str | None = None
    reason_code: str | None = None
    message: str | None = None
    verified_at: datetime | None = None
    attempts: int = 0

    @property
    def approved(self) -> bool:
        return self.status == VerificationStatus.APPROVED


class AgeVerifier:
    def __init__(
        self,
        provider: AgeVerificationProvider,
        minimum_age: int = 21,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.minimum_age = minimum_age
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.clock = clock or (lambda: datetime.now(UTC))
        self._sleep = sleep

    def verify(
        self,
        first_name: str,
        last_name: str,
        date_of_birth: date,
        address: dict | None = None,
    ) -> VerificationResult:
        now = self.clock()
        if calculate_age(date_of_birth, now.date()) < self.minimum_age:
            logger.info("Age verification short-circuited", provider=self.provider.name, status="DECLINED")
            return VerificationResult(
                status=VerificationStatus.DECLINED,
                provider=self.provider.name,
                reason_code=UNDER_MINIMUM_AGE,
                message=f"Customer is under {self.minimum_age}",
                verified_at=now,
            )

        last_error: VerificationProviderError | None = None
        reference_id: str | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                decision = self.provider.verify_age(
                    first_name, last_name, date_of_birth, address, reference_id=reference_id
                )
            except VerificationProviderError as exc:
                last_error = exc
                reference_id = exc.reference_id or reference_id
                logger.warning(
                    "Age verification provider failed",
                    provider=self.provider.name,
                    code=exc.code,
                    attempt=attempt,
                    transient=exc.transient,
                    reference_id=reference_id,
                )
                if not exc.transient or attempt == self.max_attempts:
                    break
                self._sleep(self.backoff_seconds * (2 ** (attempt - 1)))
                continue

            result = self._normalize(decision, now, attempt)
            logger.info(
                "Age verification completed",
                provider=self.provider.name,
                status=result.status.value,
                reference_id=result.reference_id,
                attempts=attempt,
            )
            return result

        return VerificationResult(
            status=VerificationStatus.ERROR,
            provider=self.provider.name,
            reference_id=reference_id,
            reason_code=last_error.code if last_error else "PROVIDER_ERROR",
            message=last_error.message if last_error else None,
            verified_at=self.clock(),
            attempts=attempt,
        )

    def _normalize(self, decision: ProviderDecision, now: datetime, attempts: int) -> VerificationResult:
        status = decision.status
        reason_code = decision.reason_code
        message = decision.message

        # An approval is only trusted if what the provider reports is also of age
        if status == VerificationStatus.APPROVED:
            reported_age = decision.age
            if reported_age is None and decision.date_of_birth is not None:
                reported_age = calculate_age(decision.date_of_birth, now.date())
            if reported_age is not None and reported_age < self.minimum_age:
                status = VerificationStatus.DECLINED
                reason_code = UNDER_MINIMUM_AGE
                message = f"Verified age is under {self.minimum_age}"

        return VerificationResult(
            status=status,
            provider=self.provider.name,
            reference_id=decision.reference_id,
            reason_code=reason_code,
            message=message,
            verified_at=now,
            attempts=attempts,
        )
