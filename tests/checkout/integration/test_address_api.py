"""Integration tests for the address endpoints via TestClient."""

import pytest
from checkout.address.address import Address
from checkout.api.exception_handlers import register_checkout_exception_handlers
from checkout.api.routes import address_router
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(address_router)
    register_checkout_exception_handlers(app)
    return TestClient(app)


def _address_body(**overrides):
    body = {
        "recipientName": "Jane Doe",
        "line1": "100 Congress Ave",
        "city": "Austin",
        "state": "tx",
        "postalCode": "78701",
    }
    body.update(overrides)
    return body


class TestAddAddressEndpoint:
    def test_add_for_account(self, client):
        response = client.post("/addresses", json=_address_body(isDefault=True), headers={"X-Account-Id": "acct-001"})

        assert response.status_code == 201
        address = current_domain.repository_for(Address).get(response.json()["addressId"])
        assert address.account_id == "acct-001"
        assert address.state == "TX"
        assert address.is_default is True

    def test_guest_address(self, client):
        response = client.post("/addresses", json=_address_body())
        assert response.status_code == 201
        assert current_domain.repository_for(Address).get(response.json()["addressId"]).account_id is None

    def test_po_box_flag_is_derived(self, client):
        response = client.post("/addresses", json=_address_body(line1="PO Box 77"))
        assert current_domain.repository_for(Address).get(response.json()["addressId"]).is_po_box is True

    def test_invalid_state(self, client):
        response = client.post("/addresses", json=_address_body(state="Texas"))
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestSetDefaultEndpoint:
    def test_set_default(self, client):
        headers = {"X-Account-Id": "acct-001"}
        first = client.post("/addresses", json=_address_body(isDefault=True), headers=headers).json()["addressId"]
        second = client.post("/addresses", json=_address_body(line1="5 Oak St"), headers=headers).json()["addressId"]

        response = client.put(f"/addresses/{second}/default", headers=headers)

        assert response.status_code == 200
        repo = current_domain.repository_for(Address)
        assert repo.get(second).is_default is True
        assert repo.get(first).is_default is False

    def test_requires_account(self, client):
        address_id = client.post("/addresses", json=_address_body()).json()["addressId"]
        assert client.put(f"/addresses/{address_id}/default").status_code == 401

    def test_other_accounts_address(self, client):
        address_id = client.post(
            "/addresses", json=_address_body(), headers={"X-Account-Id": "acct-002"}
        ).json()["addressId"]
        response = client.put(f"/addresses/{address_id}/default", headers={"X-Account-Id": "acct-001"})
        assert response.status_code == 404
