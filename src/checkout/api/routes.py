"""FastAPI routes for orders and addresses.

Authentication happens upstream: the gateway in front of this service
forwards the caller's account id in ``X-Account-Id`` and the staff roles it
granted in ``X-Account-Role`` (comma separated). Requests without an account
id are guest checkouts.

Placing and capturing orders block on the verification provider and the
payment gateway, so those routes run the work in the threadpool.
"""

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.concurrency import run_in_threadpool
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.address.address import Address
from checkout.address.management import AddAddress, SetDefaultAddress
from checkout.api.schemas import (
    AddAddressRequest,
    AddressIdResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    OrderDetailResponse,
    OrderRefSchema,
    ResolveStakeCallRequest,
    SnapshotRefSchema,
    StatusResponse,
)
from checkout.audit.audit_entry import AuditAction, AuditResult, record_audit
from checkout.compliance.snapshot import ComplianceSnapshot
from checkout.errors import OrderNotFound
from checkout.order.assembly import CheckoutRequest, LineItemRequest, OrderAssembler
from checkout.order.order import Order
from checkout.payment.capture import CapturePayment
from checkout.payment.gateway.port import CardDetails
from checkout.payment.transaction import PaymentTransaction
from checkout.stake_call.resolution import ResolveStakeCall
from checkout.stake_call.stake_call import StakeCall, StakeCallResult
from checkout.verification.age_verification import AgeVerification


COMPLIANCE_ROLE = "compliance"
FULFILLMENT_ROLE = "fulfillment"


def _require_account(x_account_id: str | None) -> str:
    if not x_account_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_account_id


def require_role(*roles: str):
    """Dependency that admits staff callers holding one of ``roles``.

    Resolves to the caller's account id.
    """

    def _dependency(
        x_account_id: str | None = Header(default=None),
        x_account_role: str | None = Header(default=None),
    ) -> str:
        account_id = _require_account(x_account_id)
        granted = {role.strip().lower() for role in (x_account_role or "").split(",") if role.strip()}
        if not granted.intersection(roles):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return account_id

    return _dependency


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=CreateOrderResponse)
async def create_order(
    body: CreateOrderRequest,
    x_account_id: str | None = Header(default=None),
    idempotency_key: str | None = Header(default=None),
) -> CreateOrderResponse:
    """Run the compliance pipeline and place the order."""
    payment = None
    if body.payment is not None:
        payment = CardDetails(
            card_number=body.payment.card_number,
            expiration_date=body.payment.expiration_date,
            cvv=body.payment.cvv,
        )

    request = CheckoutRequest(
        shipping_address_id=body.shipping_address_id,
        billing_address_id=body.billing_address_id,
        items=tuple(LineItemRequest(product_id=item.product_id, quantity=item.quantity) for item in body.items),
        first_name=body.customer_first_name,
        last_name=body.customer_last_name,
        date_of_birth=body.customer_date_of_birth,
        is_first_time_recipient=body.is_first_time_recipient,
        account_id=x_account_id,
        payment=payment,
        idempotency_key=idempotency_key or body.idempotency_key,
    )
    result = await run_in_threadpool(OrderAssembler().create_order, request)

    return CreateOrderResponse(
        order=OrderRefSchema(id=result.order_id, status=result.status),
        stake_call_required=result.stake_call_required,
        compliance_snapshot=SnapshotRefSchema(id=result.compliance_snapshot_id),
        payment_transaction_id=result.payment_transaction_id,
    )


def _address_detail(address_id) -> dict | None:
    try:
        address = current_domain.repository_for(Address).get(address_id)
    except ObjectNotFoundError:
        return None
    return {
        "id": str(address.id),
        "recipientName": address.recipient_name,
        "line1": address.line1,
        "line2": address.line2,
        "city": address.city,
        "state": address.state,
        "postalCode": address.postal_code,
        "country": address.country,
        "isPoBox": address.is_po_box,
    }


def _snapshot_detail(order: Order) -> dict | None:
    snapshot = current_domain.repository_for(ComplianceSnapshot).find_for_order(order.id)
    if snapshot is None:
        return None
    return {
        "id": str(snapshot.id),
        "decision": snapshot.decision,
        "reasonCodes": snapshot.reason_code_list(),
        "ageVerificationStatus": snapshot.age_verification_status,
        "shippingState": snapshot.shipping_state,
        "addressEligible": snapshot.address_eligible,
        "productFlags": snapshot.product_flag_list(),
        "stakeCallRequired": snapshot.stake_call_required,
        "createdAt": snapshot.created_at.isoformat(),
    }


def _age_verification_detail(order: Order) -> dict | None:
    try:
        verification = current_domain.repository_for(AgeVerification).get(order.age_verification_id)
    except ObjectNotFoundError:
        return None
    return {
        "id": str(verification.id),
        "status": verification.status,
        "provider": verification.provider,
        "referenceId": verification.reference_id,
        "reasonCode": verification.reason_code,
        "verifiedAt": verification.verified_at.isoformat(),
    }


def _latest(aggregate_cls, order: Order, order_by: str):
    items = current_domain.repository_for(aggregate_cls)._dao.query.filter(order_id=str(order.id)).all().items
    return max(items, key=lambda item: getattr(item, order_by)) if items else None


def _stake_call_detail(order: Order) -> dict | None:
    stake_call = _latest(StakeCall, order, "invoked_at")
    if stake_call is None:
        return None
    return {
        "id": str(stake_call.id),
        "result": stake_call.result,
        "reasonCode": stake_call.reason_code,
        "notes": stake_call.notes,
        "invokedAt": stake_call.invoked_at.isoformat(),
        "resolvedAt": stake_call.resolved_at.isoformat() if stake_call.resolved_at else None,
    }


def _payment_detail(order: Order) -> dict | None:
    transaction = _latest(PaymentTransaction, order, "authorized_at")
    if transaction is None:
        return None
    return {
        "id": str(transaction.id),
        "gateway": transaction.gateway,
        "transactionId": transaction.gateway_transaction_id,
        "amount": transaction.amount,
        "currency": transaction.currency,
        "status": transaction.status,
        "responseCode": transaction.response_code,
        "avsResult": transaction.avs_result,
        "cvvResult": transaction.cvv_result,
        "last4": transaction.last4,
    }


@order_router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: str, x_account_id: str | None = Header(default=None)) -> OrderDetailResponse:
    """Return an order with its compliance records. Only the owning account may read it."""
    try:
        order = current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError as exc:
        raise OrderNotFound() from exc
    if not x_account_id or not order.account_id or str(order.account_id) != x_account_id:
        raise OrderNotFound()

    return OrderDetailResponse(
        id=str(order.id),
        status=order.status,
        account_id=str(order.account_id),
        items=[
            {
                "productId": str(item.product_id),
                "sku": item.sku,
                "name": item.product_name,
                "quantity": item.quantity,
                "unitPrice": item.unit_price,
                "lineTotal": item.line_total,
            }
            for item in order.items
        ],
        shipping_address=_address_detail(order.shipping_address_id),
        billing_address=_address_detail(order.billing_address_id),
        compliance_snapshot=_snapshot_detail(order),
        age_verification=_age_verification_detail(order),
        stake_call=_stake_call_detail(order),
        payment_transaction=_payment_detail(order),
        subtotal=order.subtotal,
        sales_tax=order.sales_tax,
        excise_tax=order.excise_tax,
        grand_total=order.grand_total,
        currency=order.currency,
        release_blockers=order.release_blockers(),
        created_at=order.created_at.isoformat(),
    )


@order_router.post("/{order_id}/stake-call", response_model=StatusResponse)
async def resolve_stake_call(
    order_id: str,
    body: ResolveStakeCallRequest,
    resolver: str = Depends(require_role(COMPLIANCE_ROLE)),
) -> StatusResponse:
    """Record the outcome of a pending stake call (compliance staff only)."""
    command = ResolveStakeCall(
        order_id=order_id,
        outcome=body.outcome,
        resolved_by=resolver,
        notes=body.notes,
        reason_code=body.reason_code,
    )
    status = current_domain.process(command, asynchronous=False)

    record_audit(
        AuditAction.STAKE_CALL,
        AuditResult.SUCCESS if body.outcome == StakeCallResult.COMPLETED.value else AuditResult.FAIL,
        actor_id=resolver,
        entity_type="Order",
        entity_id=order_id,
        reason_code=body.reason_code,
    )
    return StatusResponse(status=status)


@order_router.post(
    "/{order_id}/capture",
    response_model=StatusResponse,
    dependencies=[Depends(require_role(FULFILLMENT_ROLE))],
)
async def capture_payment(order_id: str) -> StatusResponse:
    """Capture the held authorization of a released order (fulfillment only)."""
    await run_in_threadpool(current_domain.process, CapturePayment(order_id=order_id), asynchronous=False)
    return StatusResponse(status="captured")


# ---------------------------------------------------------------------------
# Address Router
# ---------------------------------------------------------------------------
address_router = APIRouter(prefix="/addresses", tags=["addresses"])


@address_router.post("", status_code=201, response_model=AddressIdResponse)
async def add_address(body: AddAddressRequest, x_account_id: str | None = Header(default=None)) -> AddressIdResponse:
    """Store an address for the caller's account, or a guest address."""
    command = AddAddress(
        account_id=x_account_id,
        recipient_name=body.recipient_name,
        phone=body.phone,
        line1=body.line1,
        line2=body.line2,
        city=body.city,
        state=body.state.upper(),
        postal_code=body.postal_code,
        country=body.country.upper(),
        is_po_box=body.is_po_box,
        is_default=body.is_default,
    )
    address_id = current_domain.process(command, asynchronous=False)
    return AddressIdResponse(address_id=address_id)


@address_router.put("/{address_id}/default", response_model=StatusResponse)
async def set_default_address(address_id: str, x_account_id: str | None = Header(default=None)) -> StatusResponse:
    """Make the address the caller's default."""
    account_id = _require_account(x_account_id)
    current_domain.process(SetDefaultAddress(account_id=account_id, address_id=address_id), asynchronous=False)
    return StatusResponse(status="default_set")
