"""Checkout failure taxonomy.

Every way an order attempt can end unsuccessfully is one subclass of
``CheckoutError``. Each carries a stable ``code``, the HTTP ``status_code``
the API answers with, and only the fields relevant to that failure.
"""

IDEMPOTENCY_KEY_REUSED = "IDEMPOTENCY_KEY_REUSED"


class CheckoutError(Exception):
    """Base class for all order-attempt failures."""

    code = "CHECKOUT_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidCheckoutRequest(CheckoutError):
    """Malformed input or references to entities that do not exist."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, reason_code: str | None = None, field: str | None = None):
        super().__init__(message)
        self.reason_code = reason_code
        self.field = field

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.reason_code:
            payload["reasonCode"] = self.reason_code
        if self.field:
            payload["field"] = self.field
        return payload


class AddressIneligible(CheckoutError):
    """The shipping address cannot legally receive a restricted shipment."""

    code = "ADDRESS_INELIGIBLE"
    status_code = 422

    def __init__(self, reason_code: str, message: str = "Shipping address is not eligible for restricted products"):
        super().__init__(message)
        self.reason_code = reason_code

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reasonCode": self.reason_code}


class ProductRestricted(CheckoutError):
    """One or more products may not ship to the destination state."""

    code = "ORDER_BLOCKED"
    status_code = 403

    def __init__(self, reason_codes: list[str], message: str = "Order blocked by compliance rules"):
        super().__init__(message)
        self.reason_codes = list(reason_codes)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reasonCodes": self.reason_codes}


class AgeVerificationDeclined(CheckoutError):
    code = "AGE_VERIFICATION_FAILED"
    status_code = 403

    def __init__(self, reason_code: str | None, message: str = "Age verification failed"):
        super().__init__(message)
        self.reason_code = reason_code

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.reason_code:
            payload["reasonCode"] = self.reason_code
        return payload


class AgeVerificationUnavailable(CheckoutError):
    """The provider could not produce a decision; distinct from a decline."""

    code = "AGE_VERIFICATION_UNAVAILABLE"
    status_code = 503

    def __init__(self, reason_code: str | None, message: str = "Age verification is temporarily unavailable"):
        super().__init__(message)
        self.reason_code = reason_code

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.reason_code:
            payload["reasonCode"] = self.reason_code
        return payload


class PaymentDeclined(CheckoutError):
    """The gateway declined the authorization; reason codes are passed through verbatim."""

    code = "PAYMENT_DECLINED"
    status_code = 402

    def __init__(self, reason_codes: list[str], message: str = "Payment authorization declined"):
        super().__init__(message)
        self.reason_codes = list(reason_codes)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reasonCodes": self.reason_codes}


class PaymentGatewayUnavailable(CheckoutError):
    code = "PAYMENT_GATEWAY_UNAVAILABLE"
    status_code = 503

    def __init__(self, reason_code: str | None, message: str = "Payment gateway is temporarily unavailable"):
        super().__init__(message)
        self.reason_code = reason_code

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.reason_code:
            payload["reasonCode"] = self.reason_code
        return payload


class CheckoutAborted(CheckoutError):
    """The caller cancelled the attempt between two stages."""

    code = "CHECKOUT_ABORTED"
    status_code = 409

    def __init__(self, stage: str, message: str = "Checkout was aborted"):
        super().__init__(message)
        self.stage = stage

    def to_dict(self) -> dict:
        return {**super().to_dict(), "stage": self.stage}


class InternalError(CheckoutError):
    """Unexpected failure. Details are logged, never returned to the caller."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)


class OrderNotFound(CheckoutError):
    """Unknown order, or one the caller does not own."""

    code = "ORDER_NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "Order not found"):
        super().__init__(message)
