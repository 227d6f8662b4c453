"""Tests for the checkout failure taxonomy."""

import pytest
from checkout.errors import (
    AddressIneligible,
    AgeVerificationDeclined,
    AgeVerificationUnavailable,
    CheckoutAborted,
    CheckoutError,
    InternalError,
    InvalidCheckoutRequest,
    OrderNotFound,
    PaymentDeclined,
    PaymentGatewayUnavailable,
    ProductRestricted,
)


class TestCodesAndStatuses:
    @pytest.mark.parametrize(
        "error, code, status_code",
        [
            (InvalidCheckoutRequest("bad"), "VALIDATION_ERROR", 400),
            (AddressIneligible("PO_BOX_NOT_ALLOWED"), "ADDRESS_INELIGIBLE", 422),
            (ProductRestricted(["CA_FLAVOR_BAN"]), "ORDER_BLOCKED", 403),
            (AgeVerificationDeclined("UNDER_MINIMUM_AGE"), "AGE_VERIFICATION_FAILED", 403),
            (AgeVerificationUnavailable("PROVIDER_TIMEOUT"), "AGE_VERIFICATION_UNAVAILABLE", 503),
            (PaymentDeclined(["2"]), "PAYMENT_DECLINED", 402),
            (PaymentGatewayUnavailable("AUTHORIZENET_TIMEOUT"), "PAYMENT_GATEWAY_UNAVAILABLE", 503),
            (CheckoutAborted("payment"), "CHECKOUT_ABORTED", 409),
            (InternalError(), "INTERNAL_ERROR", 500),
            (OrderNotFound(), "ORDER_NOT_FOUND", 404),
        ],
    )
    def test_code_and_status(self, error, code, status_code):
        assert isinstance(error, CheckoutError)
        assert error.code == code
        assert error.status_code == status_code
        assert error.to_dict()["code"] == code


class TestPayloads:
    def test_validation_error_with_field(self):
        error = InvalidCheckoutRequest("Shipping address not found", "SHIPPING_ADDRESS_NOT_FOUND", "shippingAddressId")
        assert error.to_dict() == {
            "code": "VALIDATION_ERROR",
            "message": "Shipping address not found",
            "reasonCode": "SHIPPING_ADDRESS_NOT_FOUND",
            "field": "shippingAddressId",
        }

    def test_validation_error_without_extras(self):
        assert InvalidCheckoutRequest("bad").to_dict() == {"code": "VALIDATION_ERROR", "message": "bad"}

    def test_address_ineligible_carries_reason_code(self):
        assert AddressIneligible("PO_BOX_NOT_ALLOWED").to_dict()["reasonCode"] == "PO_BOX_NOT_ALLOWED"

    def test_payment_declined_passes_codes_through(self):
        payload = PaymentDeclined(["2", "27"], message="This transaction has been declined.").to_dict()
        assert payload == {
            "code": "PAYMENT_DECLINED",
            "message": "This transaction has been declined.",
            "reasonCodes": ["2", "27"],
        }

    def test_restricted_lists_codes(self):
        assert ProductRestricted(["CA_FLAVOR_BAN", "CA_SENSORY_BAN"]).to_dict()["reasonCodes"] == [
            "CA_FLAVOR_BAN",
            "CA_SENSORY_BAN",
        ]

    def test_declined_without_reason(self):
        assert "reasonCode" not in AgeVerificationDeclined(None).to_dict()

    def test_aborted_names_stage(self):
        assert CheckoutAborted("age_verification").to_dict()["stage"] == "age_verification"

    def test_internal_error_is_generic(self):
        assert InternalError().to_dict() == {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}
