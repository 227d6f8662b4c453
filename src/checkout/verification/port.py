"""Age verification provider port (abstract interface).

Defines the contract every identity/age-verification adapter implements so
the pipeline can switch between the fake provider (dev/test) and Veriff
(production) through configuration alone.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum


class VerificationStatus(Enum):
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    PENDING = "PENDING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ProviderDecision:
    """Raw decision returned by a provider, before local normalization."""

    status: VerificationStatus
    reference_id: str | None = None
    reason_code: str | None = None
    message: str | None = None
    age: int | None = None
    date_of_birth: date | None = None


class VerificationProviderError(Exception):
    """The provider could not be reached or answered unusably.

    ``transient`` errors (timeouts, connection failures, 5xx) may be retried;
    the rest (missing credentials, rejected requests) may not. When the
    provider had already opened a verification, ``reference_id`` names it so
    a retry can resume it.
    """

    def __init__(self, code: str, message: str, transient: bool = True, reference_id: str | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.transient = transient
        self.reference_id = reference_id


class AgeVerificationProvider(ABC):
    """Abstract age verification provider."""

    name: str = "provider"

    @abstractmethod
    def verify_age(
        self,
        first_name: str,
        last_name: str,
        date_of_birth: date,
        address: dict | None = None,
        reference_id: str | None = None,
    ) -> ProviderDecision:
        """Ask the provider to verify the person's identity and age.

        With ``reference_id`` the provider resumes that earlier verification.
        """
        ...
