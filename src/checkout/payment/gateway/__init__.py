"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- AuthorizeNetGateway for production
"""

from checkout.config import CheckoutSettings, get_settings
from checkout.payment.gateway.fake_adapter import FakeGateway
from checkout.payment.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def build_gateway(settings: CheckoutSettings) -> PaymentGateway:
    """Construct the gateway selected by ``settings``."""
    if settings.payment_gateway == "authorizenet":
        from checkout.payment.gateway.authorizenet_adapter import AuthorizeNetGateway

        return AuthorizeNetGateway(
            api_login_id=settings.authorizenet_api_login_id,
            transaction_key=settings.authorizenet_transaction_key,
            environment=settings.authorizenet_environment,
            timeout=settings.payment_timeout_seconds,
            duplicate_window=settings.authorizenet_duplicate_window_seconds,
        )
    return FakeGateway()


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway(get_settings())
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to the configured gateway."""
    global _current_gateway
    _current_gateway = None
