"""Pydantic request/response schemas for the Checkout API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands and pipeline types. Field names are camelCase on
the wire.
"""

import re
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class OrderItemSchema(CamelModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class PaymentSchema(CamelModel):
    card_number: str = Field(pattern=r"^\d{13,19}$", repr=False)
    expiration_date: str = Field(pattern=r"^(0[1-9]|1[0-2])/\d{2}$", repr=False)
    cvv: str = Field(pattern=r"^\d{3,4}$", repr=False)


class CreateOrderRequest(CamelModel):
    shipping_address_id: str = Field(min_length=1)
    billing_address_id: str = Field(min_length=1)
    items: list[OrderItemSchema] = Field(min_length=1)
    customer_first_name: str = Field(min_length=1, max_length=100, repr=False)
    customer_last_name: str = Field(min_length=1, max_length=100, repr=False)
    customer_date_of_birth: date = Field(repr=False)
    is_first_time_recipient: bool
    payment: PaymentSchema | None = None
    idempotency_key: str | None = Field(default=None, max_length=255)

    @field_validator("customer_date_of_birth", mode="before")
    @classmethod
    def validate_date_of_birth(cls, value):
        if not isinstance(value, str) or not ISO_DATE.fullmatch(value):
            raise ValueError("Date of birth must be a calendar date in YYYY-MM-DD form")
        return value

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "shippingAddressId": "addr-001",
                    "billingAddressId": "addr-001",
                    "items": [{"productId": "prod-001", "quantity": 1}],
                    "customerFirstName": "Jane",
                    "customerLastName": "Doe",
                    "customerDateOfBirth": "1990-01-01",
                    "isFirstTimeRecipient": False,
                    "payment": {"cardNumber": "4111111111111111", "expirationDate": "12/30", "cvv": "123"},
                }
            ]
        },
    )


class ResolveStakeCallRequest(CamelModel):
    outcome: str = Field(pattern=r"^(COMPLETED|FAILED)$")
    notes: str | None = Field(default=None, max_length=2000)
    reason_code: str | None = Field(default=None, max_length=100)


# ---------------------------------------------------------------------------
# Address Request Schemas
# ---------------------------------------------------------------------------
class AddAddressRequest(CamelModel):
    recipient_name: str = Field(min_length=1, max_length=200)
    phone: str | None = Field(default=None, max_length=30)
    line1: str = Field(min_length=1, max_length=255)
    line2: str | None = Field(default=None, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(pattern=r"^[A-Za-z]{2}$")
    postal_code: str = Field(min_length=3, max_length=20)
    country: str = Field(default="US", pattern=r"^[A-Za-z]{2}$")
    is_po_box: bool = False
    is_default: bool = False


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderRefSchema(CamelModel):
    id: str
    status: str


class SnapshotRefSchema(CamelModel):
    id: str


class CreateOrderResponse(CamelModel):
    order: OrderRefSchema
    stake_call_required: bool
    compliance_snapshot: SnapshotRefSchema
    payment_transaction_id: str | None = None


class AddressIdResponse(CamelModel):
    address_id: str


class StatusResponse(CamelModel):
    status: str


class OrderDetailResponse(CamelModel):
    id: str
    status: str
    account_id: str | None = None
    items: list[dict]
    shipping_address: dict | None = None
    billing_address: dict | None = None
    compliance_snapshot: dict | None = None
    age_verification: dict | None = None
    stake_call: dict | None = None
    payment_transaction: dict | None = None
    subtotal: float
    sales_tax: float
    excise_tax: float
    grand_total: float
    currency: str
    release_blockers: list[str]
    created_at: str
