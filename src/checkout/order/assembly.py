"""OrderAssembler — the order compliance and fulfillment pipeline.

Stages run strictly in this order and a later stage never runs if an earlier
one failed:

    address eligibility → product restrictions → age verification
    → stake call policy → compliance snapshot → payment (optional) → commit

Nothing is persisted until the final commit, which writes the Order, its
ComplianceSnapshot, the AgeVerification, the optional StakeCall and the
optional PaymentTransaction in a single unit of work. An audit entry is
recorded for every attempt, successful or not, in its own unit of work.

A request-scoped idempotency key makes retries safe: replaying a committed
request returns the original result without contacting the gateway again, and
retrying after a failed commit reuses the recorded authorization hold.
"""

import hashlib
import json
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from uuid import uuid4

import structlog
from protean import UnitOfWork
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.address.address import Address
from checkout.audit.audit_entry import ActorType, AuditAction, AuditResult, record_audit
from checkout.catalog.product import Product
from checkout.compliance.address_validation import AddressValidator
from checkout.compliance.builder import ComplianceSnapshotBuilder
from checkout.compliance.restrictions import RestrictionRules
from checkout.compliance.snapshot import ComplianceSnapshot
from checkout.config import CheckoutSettings, get_settings
from checkout.errors import (
    IDEMPOTENCY_KEY_REUSED,
    AddressIneligible,
    AgeVerificationDeclined,
    AgeVerificationUnavailable,
    CheckoutAborted,
    CheckoutError,
    InternalError,
    InvalidCheckoutRequest,
    PaymentDeclined,
    PaymentGatewayUnavailable,
    ProductRestricted,
)
from checkout.order.order import Order, OrderItem, OrderStatus
from checkout.order.pricing import PricedLine, calculate_totals
from checkout.payment.gateway import get_gateway
from checkout.payment.gateway.port import BillingContact, CardDetails
from checkout.payment.processor import PaymentProcessor
from checkout.payment.transaction import PaymentTransaction
from checkout.stake_call.policy import StakeCallContext, StakeCallEvaluator
from checkout.stake_call.stake_call import StakeCall
from checkout.verification import get_provider
from checkout.verification.age_verification import AgeVerification
from checkout.verification.port import VerificationStatus
from checkout.verification.verifier import AgeVerifier

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Request / result types
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class LineItemRequest:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class CheckoutRequest:
    shipping_address_id: str
    billing_address_id: str
    items: tuple[LineItemRequest, ...]
    first_name: str = field(repr=False)
    last_name: str = field(repr=False)
    date_of_birth: date = field(repr=False)
    is_first_time_recipient: bool = False
    account_id: str | None = None
    payment: CardDetails | None = None
    idempotency_key: str | None = None

    def fingerprint(self) -> str:
        """Stable digest of the request body, used to detect idempotency key reuse."""
        body = {
            "account_id": self.account_id,
            "shipping_address_id": self.shipping_address_id,
            "billing_address_id": self.billing_address_id,
            "items": [[item.product_id, item.quantity] for item in self.items],
            "first_name": self.first_name.strip().lower(),
            "last_name": self.last_name.strip().lower(),
            "date_of_birth": self.date_of_birth.isoformat(),
            "is_first_time_recipient": self.is_first_time_recipient,
            "payment": [self.payment.last4, self.payment.expiration_date] if self.payment else None,
        }
        return hashlib.sha256(json.dumps(body, sort_keys=True).encode()).hexdigest()


class StageStatus(Enum):
    SKIPPED = "SKIPPED"
    REQUIRED = "REQUIRED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class StageResult:
    stage: str
    status: StageStatus
    reference_id: str | None = None


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    status: str
    stake_call_required: bool
    compliance_snapshot_id: str
    payment_transaction_id: str | None = None
    replayed: bool = False
    stages: tuple[StageResult, ...] = ()


def derive_order_status(stake_call: StageResult, payment: StageResult) -> OrderStatus:
    """A pending stake call outranks a deferred payment."""
    if stake_call.status == StageStatus.REQUIRED:
        return OrderStatus.AWAITING_STAKE_CALL
    if payment.status == StageStatus.SKIPPED:
        return OrderStatus.AWAITING_PAYMENT
    return OrderStatus.CREATED


# Audit action attributed to each failure type; anything else is CREATE_ORDER
_FAILURE_ACTIONS = {
    AgeVerificationDeclined: AuditAction.AGE_VERIFICATION,
    AgeVerificationUnavailable: AuditAction.AGE_VERIFICATION,
    PaymentDeclined: AuditAction.PAYMENT_AUTHORIZATION,
    PaymentGatewayUnavailable: AuditAction.PAYMENT_AUTHORIZATION,
}


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------
class OrderAssembler:
    def __init__(
        self,
        settings: CheckoutSettings | None = None,
        address_validator: AddressValidator | None = None,
        restriction_rules: RestrictionRules | None = None,
        verifier: AgeVerifier | None = None,
        stake_call_evaluator: StakeCallEvaluator | None = None,
        snapshot_builder: ComplianceSnapshotBuilder | None = None,
        payment_processor: PaymentProcessor | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.address_validator = address_validator or AddressValidator()
        self.restriction_rules = restriction_rules or RestrictionRules()
        self.verifier = verifier or AgeVerifier(
            get_provider(),
            minimum_age=self.settings.minimum_age,
            max_attempts=self.settings.verification_max_attempts,
            backoff_seconds=self.settings.verification_backoff_seconds,
            clock=self.clock,
        )
        self.stake_call_evaluator = stake_call_evaluator or StakeCallEvaluator()
        self.snapshot_builder = snapshot_builder or ComplianceSnapshotBuilder(clock=self.clock)
        self.payment_processor = payment_processor or PaymentProcessor(get_gateway(), currency=self.settings.currency)

    def create_order(self, request: CheckoutRequest, abort_signal: threading.Event | None = None) -> CheckoutResult:
        fingerprint = request.fingerprint()
        idempotency_key = request.idempotency_key or uuid4().hex
        order_id = str(uuid4())
        log = logger.bind(order_id=order_id)

        try:
            existing = self._find_by_idempotency_key(request.idempotency_key) if request.idempotency_key else None
            if existing is not None:
                order_id = str(existing.id)
                log = logger.bind(order_id=order_id)
                result = self._replay(existing, fingerprint)
            else:
                result = self._assemble(order_id, request, idempotency_key, fingerprint, abort_signal)
        except CheckoutError as exc:
            log.info("Order attempt rejected", code=exc.code, stage=type(exc).__name__)
            self._audit_failure(request, order_id, exc)
            raise
        except Exception as exc:
            log.exception("Order attempt failed unexpectedly")
            record_audit(
                AuditAction.CREATE_ORDER,
                AuditResult.ERROR,
                actor_type=ActorType.SYSTEM,
                actor_id=request.account_id,
                entity_type="Order",
                entity_id=order_id,
                reason_code=InternalError.code,
            )
            raise InternalError() from exc

        record_audit(
            AuditAction.CREATE_ORDER,
            AuditResult.SUCCESS,
            actor_id=request.account_id,
            entity_type="Order",
            entity_id=result.order_id,
            details=json.dumps(
                {
                    "status": result.status,
                    "stake_call_required": result.stake_call_required,
                    "replayed": result.replayed,
                }
            ),
        )
        log.info(
            "Order replayed" if result.replayed else "Order placed",
            status=result.status,
            stake_call_required=result.stake_call_required,
            payment_authorized=result.payment_transaction_id is not None,
        )
        return result

    # -------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------
    def _assemble(
        self,
        order_id: str,
        request: CheckoutRequest,
        idempotency_key: str,
        fingerprint: str,
        abort_signal: threading.Event | None,
    ) -> CheckoutResult:
        self._check_abort(abort_signal, "validation")
        shipping, billing = self._load_addresses(request)
        lines, products = self._load_products(request)

        eligibility = self.address_validator.validate(shipping)
        product_flags = self.restriction_rules.enforce(products, shipping.state)

        self._check_abort(abort_signal, "age_verification")
        verification = self.verifier.verify(
            request.first_name,
            request.last_name,
            request.date_of_birth,
            address=shipping.as_postal_dict(),
        )
        if verification.status == VerificationStatus.DECLINED:
            raise AgeVerificationDeclined(reason_code=verification.reason_code)
        if verification.status != VerificationStatus.APPROVED:
            raise AgeVerificationUnavailable(reason_code=verification.reason_code or "VERIFICATION_PENDING")
        age_verification = AgeVerification.record(order_id, verification)

        self._check_abort(abort_signal, "stake_call")
        totals = calculate_totals(lines, self.settings.sales_tax_rate, self.settings.excise_tax_per_gram)
        stake_decision = self.stake_call_evaluator.evaluate(
            StakeCallContext(
                order_id=order_id,
                account_id=request.account_id,
                is_first_time_recipient=request.is_first_time_recipient,
                shipping_state=shipping.state,
                order_total=totals.grand_total,
                evaluated_at=self.clock(),
            )
        )
        stake_call = stake_decision.stake_call
        stake_stage = StageResult(
            "stake_call",
            StageStatus.REQUIRED if stake_decision.required else StageStatus.SKIPPED,
            str(stake_call.id) if stake_call else None,
        )

        snapshot = self.snapshot_builder.build(
            order_id=order_id,
            age_verification=age_verification,
            address_eligibility=eligibility,
            product_flags=product_flags,
            stake_call_required=stake_decision.required,
            stake_call_reasons=stake_decision.reasons,
        )

        self._check_abort(abort_signal, "payment")
        transaction = None
        if request.payment is not None:
            transaction = self.payment_processor.authorize(
                order_id=order_id,
                card=request.payment,
                billing=BillingContact(
                    first_name=request.first_name,
                    last_name=request.last_name,
                    line1=billing.line1,
                    city=billing.city,
                    state=billing.state,
                    postal_code=billing.postal_code,
                    country=billing.country,
                ),
                amount=totals.grand_total,
                idempotency_key=idempotency_key,
            )
            payment_stage = StageResult("payment", StageStatus.COMPLETED, str(transaction.id))
        else:
            payment_stage = StageResult("payment", StageStatus.SKIPPED)

        status = derive_order_status(stake_stage, payment_stage)
        order = Order.place(
            order_id=order_id,
            account_id=request.account_id,
            status=status,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    sku=line.sku,
                    product_name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                    net_weight_grams=line.net_weight_grams,
                )
                for line in lines
            ],
            shipping_address_id=str(shipping.id),
            billing_address_id=str(billing.id),
            compliance_snapshot_id=str(snapshot.id),
            age_verification_id=str(age_verification.id),
            stake_call_id=str(stake_call.id) if stake_call else None,
            payment_transaction_id=str(transaction.id) if transaction else None,
            totals=totals,
            currency=self.settings.currency,
            idempotency_key=idempotency_key,
            request_fingerprint=fingerprint,
            placed_at=self.clock(),
        )

        self._commit(order, snapshot, age_verification, stake_call, transaction)

        return CheckoutResult(
            order_id=order_id,
            status=status.value,
            stake_call_required=stake_decision.required,
            compliance_snapshot_id=str(snapshot.id),
            payment_transaction_id=str(transaction.id) if transaction else None,
            stages=(
                StageResult("address", StageStatus.COMPLETED, eligibility.address_id),
                StageResult("age_verification", StageStatus.COMPLETED, str(age_verification.id)),
                stake_stage,
                StageResult("compliance_snapshot", StageStatus.COMPLETED, str(snapshot.id)),
                payment_stage,
            ),
        )

    def _commit(
        self,
        order: Order,
        snapshot: ComplianceSnapshot,
        age_verification: AgeVerification,
        stake_call: StakeCall | None,
        transaction: PaymentTransaction | None,
    ) -> None:
        try:
            with UnitOfWork():
                current_domain.repository_for(AgeVerification).add(age_verification)
                current_domain.repository_for(ComplianceSnapshot).add(snapshot)
                if stake_call is not None:
                    current_domain.repository_for(StakeCall).add(stake_call)
                if transaction is not None:
                    current_domain.repository_for(PaymentTransaction).add(transaction)
                current_domain.repository_for(Order).add(order)
        except Exception:
            if transaction is not None:
                # The AuthorizationHold survives; a retry with the same key reuses it
                logger.error(
                    "Order commit failed after payment authorization",
                    order_id=str(order.id),
                    transaction_id=transaction.gateway_transaction_id,
                )
            raise

    # -------------------------------------------------------------------
    # Loading and validation
    # -------------------------------------------------------------------
    def _load_addresses(self, request: CheckoutRequest) -> tuple[Address, Address]:
        shipping = self._load_address(request.shipping_address_id, request.account_id)
        if shipping is None:
            raise InvalidCheckoutRequest(
                "Shipping address not found",
                reason_code="SHIPPING_ADDRESS_NOT_FOUND",
                field="shippingAddressId",
            )
        billing = self._load_address(request.billing_address_id, request.account_id)
        if billing is None:
            raise InvalidCheckoutRequest(
                "Billing address not found",
                reason_code="BILLING_ADDRESS_NOT_FOUND",
                field="billingAddressId",
            )
        return shipping, billing

    @staticmethod
    def _load_address(address_id: str, account_id: str | None) -> Address | None:
        try:
            address = current_domain.repository_for(Address).get(address_id)
        except ObjectNotFoundError:
            return None
        return address if address.belongs_to(account_id) else None

    @staticmethod
    def _load_products(request: CheckoutRequest) -> tuple[list[PricedLine], list[Product]]:
        if not request.items:
            raise InvalidCheckoutRequest("At least one item is required", field="items")

        repo = current_domain.repository_for(Product)
        lines, products, missing = [], {}, []
        for item in request.items:
            if item.quantity < 1:
                raise InvalidCheckoutRequest(
                    "Quantity must be at least 1",
                    reason_code="INVALID_QUANTITY",
                    field="items",
                )
            product = products.get(item.product_id)
            if product is None:
                try:
                    product = repo.get(item.product_id)
                except ObjectNotFoundError:
                    product = None
                if product is None or not product.active:
                    missing.append(item.product_id)
                    continue
                if not product.price or product.price <= 0:
                    raise InvalidCheckoutRequest(
                        f"Product {product.sku} has no valid price",
                        reason_code="INVALID_PRODUCT_PRICE",
                        field="items",
                    )
                products[item.product_id] = product

            lines.append(
                PricedLine(
                    product_id=str(product.id),
                    sku=product.sku,
                    name=product.name,
                    quantity=item.quantity,
                    unit_price=product.price,
                    net_weight_grams=product.net_weight_grams or 0.0,
                )
            )

        if missing:
            raise InvalidCheckoutRequest(
                f"Products not found: {', '.join(missing)}",
                reason_code="PRODUCTS_NOT_FOUND",
                field="items",
            )
        return lines, list(products.values())

    @staticmethod
    def _check_abort(abort_signal: threading.Event | None, stage: str) -> None:
        if abort_signal is not None and abort_signal.is_set():
            raise CheckoutAborted(stage=stage)

    # -------------------------------------------------------------------
    # Idempotency
    # -------------------------------------------------------------------
    @staticmethod
    def _find_by_idempotency_key(idempotency_key: str) -> Order | None:
        results = (
            current_domain.repository_for(Order)._dao.query.filter(idempotency_key=idempotency_key).all().items
        )
        return results[0] if results else None

    @staticmethod
    def _replay(order: Order, fingerprint: str) -> CheckoutResult:
        if order.request_fingerprint != fingerprint:
            raise InvalidCheckoutRequest(
                "Idempotency key was already used with a different request",
                reason_code=IDEMPOTENCY_KEY_REUSED,
                field="idempotencyKey",
            )
        return CheckoutResult(
            order_id=str(order.id),
            status=order.status,
            stake_call_required=order.stake_call_id is not None,
            compliance_snapshot_id=str(order.compliance_snapshot_id),
            payment_transaction_id=str(order.payment_transaction_id) if order.payment_transaction_id else None,
            replayed=True,
        )

    # -------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------
    @staticmethod
    def _audit_failure(request: CheckoutRequest, order_id: str, exc: CheckoutError) -> None:
        if isinstance(exc, ProductRestricted | PaymentDeclined):
            reason_code = ",".join(exc.reason_codes) or exc.code
        elif isinstance(exc, AddressIneligible | AgeVerificationDeclined | AgeVerificationUnavailable):
            reason_code = exc.reason_code or exc.code
        elif isinstance(exc, InvalidCheckoutRequest):
            reason_code = exc.reason_code or exc.code
        else:
            reason_code = exc.code

        result = AuditResult.ERROR if exc.status_code >= 500 else AuditResult.FAIL
        record_audit(
            _FAILURE_ACTIONS.get(type(exc), AuditAction.CREATE_ORDER),
            result,
            actor_id=request.account_id,
            entity_type="Order",
            entity_id=order_id,
            reason_code=reason_code[:100],
            details=json.dumps({"code": exc.code}),
        )
