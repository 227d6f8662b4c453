"""Checkout settings assembled once from the domain configuration.

Application settings live under ``[custom]`` in ``domain.toml`` (with
``PROTEAN_ENV`` overlays); provider secrets come from the environment only.
Adapters never read configuration on their own: they receive a
``CheckoutSettings`` instance.
"""

import os
from dataclasses import dataclass, field

from protean.domain import Domain

_PROVIDERS = {"fake", "veriff"}
_GATEWAYS = {"fake", "authorizenet"}


@dataclass(frozen=True)
class CheckoutSettings:
    minimum_age: int = 21
    currency: str = "USD"

    age_verification_provider: str = "fake"
    verification_timeout_seconds: float = 30.0
    verification_max_attempts: int = 3
    verification_backoff_seconds: float = 0.5
    verification_poll_interval_seconds: float = 2.0
    verification_max_polls: int = 15
    verification_max_wait_seconds: float = 60.0
    veriff_base_url: str = "https://stationapi.veriff.com"
    veriff_api_key: str = field(default="", repr=False)
    veriff_signature_key: str = field(default="", repr=False)

    payment_gateway: str = "fake"
    payment_timeout_seconds: float = 15.0
    authorizenet_environment: str = "sandbox"
    authorizenet_duplicate_window_seconds: int = 900
    authorizenet_api_login_id: str = field(default="", repr=False)
    authorizenet_transaction_key: str = field(default="", repr=False)

    sales_tax_rate: float = 0.0
    excise_tax_per_gram: float = 0.0

    def __post_init__(self):
        if self.age_verification_provider not in _PROVIDERS:
            raise ValueError(f"Unknown age verification provider: {self.age_verification_provider}")
        if self.payment_gateway not in _GATEWAYS:
            raise ValueError(f"Unknown payment gateway: {self.payment_gateway}")
        if self.minimum_age < 0:
            raise ValueError("minimum_age must not be negative")
        if self.verification_max_attempts < 1:
            raise ValueError("verification_max_attempts must be at least 1")

    @classmethod
    def from_domain(cls, domain: Domain, environ=None) -> "CheckoutSettings":
        """Build settings from ``domain.config['custom']`` and secret env vars."""
        environ = os.environ if environ is None else environ
        custom = dict(domain.config.get("custom") or {})

        known = {name for name in cls.__dataclass_fields__}
        values = {key: value for key, value in custom.items() if key in known}

        values["veriff_api_key"] = environ.get("VERIFF_API_KEY", "")
        values["veriff_signature_key"] = environ.get("VERIFF_SIGNATURE_KEY", "")
        values["authorizenet_api_login_id"] = environ.get("AUTHORIZENET_API_LOGIN_ID", "")
        values["authorizenet_transaction_key"] = environ.get("AUTHORIZENET_TRANSACTION_KEY", "")

        return cls(**values)


_current_settings: CheckoutSettings | None = None


def get_settings() -> CheckoutSettings:
    """Return the process-wide settings, loading them on first use."""
    global _current_settings
    if _current_settings is None:
        from checkout.domain import checkout

        _current_settings = CheckoutSettings.from_domain(checkout)
    return _current_settings


def set_settings(settings: CheckoutSettings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Drop cached settings so the next access reloads them."""
    global _current_settings
    _current_settings = None
