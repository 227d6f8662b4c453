"""Application tests for capturing held authorizations."""

from datetime import date

import pytest
from checkout.errors import PaymentDeclined, PaymentGatewayUnavailable
from checkout.order.assembly import CheckoutRequest, LineItemRequest, OrderAssembler
from checkout.order.order import Order
from checkout.payment.capture import CapturePayment
from checkout.payment.gateway.port import CardDetails
from checkout.payment.transaction import PaymentTransaction
from protean import current_domain
from protean.exceptions import ValidationError


@pytest.fixture()
def place_order(fake_provider, fake_gateway, make_address, make_product):
    def _place(first_time=False):
        address, product = make_address(), make_product(price=12.5)
        request = CheckoutRequest(
            shipping_address_id=str(address.id),
            billing_address_id=str(address.id),
            items=(LineItemRequest(product_id=str(product.id), quantity=2),),
            first_name="Jane",
            last_name="Doe",
            date_of_birth=date(1990, 1, 1),
            is_first_time_recipient=first_time,
            account_id="acct-001",
            payment=CardDetails("4111111111111111", "12/30", "123"),
        )
        return OrderAssembler().create_order(request)

    return _place


def _capture(order_id):
    return current_domain.process(CapturePayment(order_id=order_id), asynchronous=False)


class TestCapturePayment:
    def test_released_order_is_captured(self, place_order, fake_gateway):
        result = place_order()

        transaction_id = _capture(result.order_id)

        assert transaction_id == result.payment_transaction_id
        transaction = current_domain.repository_for(PaymentTransaction).get(transaction_id)
        assert transaction.status == "CAPTURED"
        assert transaction.captured_at is not None
        capture_call = fake_gateway.calls[-1]
        assert capture_call["method"] == "capture"
        assert capture_call["amount"] == 25.0
        assert capture_call["transaction_id"] == transaction.gateway_transaction_id

    def test_order_awaiting_stake_call_is_not_captured(self, place_order, fake_gateway):
        result = place_order(first_time=True)
        with pytest.raises(ValidationError):
            _capture(result.order_id)
        assert all(call["method"] == "authorize" for call in fake_gateway.calls)

    def test_cannot_capture_twice(self, place_order, fake_gateway):
        result = place_order()
        _capture(result.order_id)
        with pytest.raises(ValidationError):
            _capture(result.order_id)
        assert [call["method"] for call in fake_gateway.calls].count("capture") == 1

    def test_capture_decline(self, place_order, fake_gateway):
        result = place_order()
        fake_gateway.configure(should_succeed=False, reason_codes=("311",))
        with pytest.raises(PaymentDeclined) as exc_info:
            _capture(result.order_id)
        assert exc_info.value.reason_codes == ["311"]
        order = current_domain.repository_for(Order).get(result.order_id)
        transaction = current_domain.repository_for(PaymentTransaction).get(order.payment_transaction_id)
        assert transaction.status == "AUTHORIZED"

    def test_capture_outage(self, place_order, fake_gateway):
        result = place_order()
        fake_gateway.configure(should_succeed=True, unavailable=True)
        with pytest.raises(PaymentGatewayUnavailable):
            _capture(result.order_id)
