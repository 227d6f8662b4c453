"""Application tests for resolving stake calls."""

from datetime import date

import pytest
from checkout.order.assembly import CheckoutRequest, LineItemRequest, OrderAssembler
from checkout.order.order import Order, OrderStatus
from checkout.payment.gateway.port import CardDetails
from checkout.stake_call.resolution import ResolveStakeCall
from checkout.stake_call.stake_call import StakeCall
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


@pytest.fixture()
def place_order(fake_provider, fake_gateway, make_address, make_product):
    def _place(first_time=True, with_payment=True):
        address, product = make_address(), make_product()
        request = CheckoutRequest(
            shipping_address_id=str(address.id),
            billing_address_id=str(address.id),
            items=(LineItemRequest(product_id=str(product.id), quantity=1),),
            first_name="Jane",
            last_name="Doe",
            date_of_birth=date(1990, 1, 1),
            is_first_time_recipient=first_time,
            account_id="acct-001",
            payment=CardDetails("4111111111111111", "12/30", "123") if with_payment else None,
        )
        return OrderAssembler().create_order(request).order_id

    return _place


def _resolve(order_id, outcome, **overrides):
    values = {"order_id": order_id, "outcome": outcome, "resolved_by": "agent-7"}
    values.update(overrides)
    return current_domain.process(ResolveStakeCall(**values), asynchronous=False)


class TestResolveStakeCall:
    def test_completed_releases_paid_order(self, place_order):
        order_id = place_order()

        status = _resolve(order_id, "COMPLETED", notes="Recipient confirmed identity")

        assert status == OrderStatus.CREATED.value
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == "CREATED"
        assert order.release_blockers() == []
        stake_call = current_domain.repository_for(StakeCall).get(order.stake_call_id)
        assert stake_call.result == "COMPLETED"
        assert stake_call.resolved_by == "agent-7"
        assert stake_call.notes == "Recipient confirmed identity"

    def test_completed_unpaid_order_awaits_payment(self, place_order):
        order_id = place_order(with_payment=False)
        assert _resolve(order_id, "COMPLETED") == OrderStatus.AWAITING_PAYMENT.value

    def test_failed_cancels_order(self, place_order):
        order_id = place_order()

        status = _resolve(order_id, "FAILED", reason_code="RECIPIENT_UNREACHABLE")

        assert status == OrderStatus.CANCELLED.value
        order = current_domain.repository_for(Order).get(order_id)
        assert order.release_blockers() == ["ORDER_CANCELLED"]
        stake_call = current_domain.repository_for(StakeCall).get(order.stake_call_id)
        assert stake_call.reason_code == "RECIPIENT_UNREACHABLE"

    def test_cannot_resolve_twice(self, place_order):
        order_id = place_order()
        _resolve(order_id, "COMPLETED")
        with pytest.raises(ValidationError):
            _resolve(order_id, "FAILED")

    def test_order_without_stake_call(self, place_order):
        order_id = place_order(first_time=False)
        with pytest.raises(ValidationError):
            _resolve(order_id, "COMPLETED")

    def test_pending_is_not_an_outcome(self, place_order):
        order_id = place_order()
        with pytest.raises(ValidationError):
            _resolve(order_id, "PENDING")

    def test_unknown_order(self):
        with pytest.raises(ObjectNotFoundError):
            _resolve("missing", "COMPLETED")

    def test_ordering_account_cannot_resolve_its_own_stake_call(self, place_order):
        order_id = place_order()

        with pytest.raises(ValidationError) as exc_info:
            _resolve(order_id, "COMPLETED", resolved_by="acct-001")

        assert "resolved_by" in exc_info.value.messages
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.AWAITING_STAKE_CALL.value
        stake_call = current_domain.repository_for(StakeCall).get(order.stake_call_id)
        assert stake_call.result == "PENDING"
