"""Age verification provider factory.

Provides get_provider() / set_provider() to swap implementations:
- FakeAgeVerificationProvider for development and testing
- VeriffAgeVerificationProvider for production
"""

from checkout.config import CheckoutSettings, get_settings
from checkout.verification.fake_adapter import FakeAgeVerificationProvider
from checkout.verification.port import AgeVerificationProvider

_current_provider: AgeVerificationProvider | None = None


def build_provider(settings: CheckoutSettings) -> AgeVerificationProvider:
    """Construct the provider selected by ``settings``."""
    if settings.age_verification_provider == "veriff":
        from checkout.verification.veriff_adapter import VeriffAgeVerificationProvider

        return VeriffAgeVerificationProvider(
            base_url=settings.veriff_base_url,
            api_key=settings.veriff_api_key,
            signature_key=settings.veriff_signature_key,
            timeout=settings.verification_timeout_seconds,
            poll_interval=settings.verification_poll_interval_seconds,
            max_polls=settings.verification_max_polls,
            max_wait=settings.verification_max_wait_seconds,
        )
    return FakeAgeVerificationProvider()


def get_provider() -> AgeVerificationProvider:
    """Return the current provider, building it from settings on first use."""
    global _current_provider
    if _current_provider is None:
        _current_provider = build_provider(get_settings())
    return _current_provider


def set_provider(provider: AgeVerificationProvider) -> None:
    """Override the active provider (useful for tests)."""
    global _current_provider
    _current_provider = provider


def reset_provider() -> None:
    """Reset to the configured provider."""
    global _current_provider
    _current_provider = None
