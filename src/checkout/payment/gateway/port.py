"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and
AuthorizeNetGateway (production) without changing any domain or
application code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CardDetails:
    """Raw instrument data. Lives only for the duration of one request."""

    card_number: str = field(repr=False)
    expiration_date: str = field(repr=False)  # MM/YY
    cvv: str = field(repr=False)

    @property
    def last4(self) -> str:
        return self.card_number[-4:]


@dataclass(frozen=True)
class BillingContact:
    first_name: str
    last_name: str
    line1: str
    city: str
    state: str
    postal_code: str
    country: str = "US"


@dataclass(frozen=True)
class AuthorizationResult:
    """Result of an authorization or capture attempt."""

    approved: bool
    transaction_id: str | None = None
    response_code: str | None = None
    avs_result: str | None = None
    cvv_result: str | None = None
    reason_codes: tuple[str, ...] = ()
    message: str | None = None


class GatewayUnavailableError(Exception):
    """The gateway did not produce a decision (timeout, transport or server error)."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str = "gateway"

    @abstractmethod
    def authorize(
        self,
        amount: float,
        currency: str,
        card: CardDetails,
        billing: BillingContact,
        idempotency_key: str,
    ) -> AuthorizationResult:
        """Hold funds without capturing them."""
        ...

    @abstractmethod
    def capture(self, transaction_id: str, amount: float) -> AuthorizationResult:
        """Capture a previously authorized transaction."""
        ...
