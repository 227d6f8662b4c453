"""Authorize.Net adapter (XML API).

``authorize`` sends an ``authOnlyTransaction``: funds are held, not captured.
``capture`` sends a ``priorAuthCaptureTransaction`` for a held authorization.
Authorizations carry an invoice number derived from the idempotency key and a
``duplicateWindow`` setting, so the gateway itself rejects a resubmission of
the same authorization inside that window.
Response code ``1`` together with a transaction id means approved; anything
else is a decline whose error codes are returned verbatim.
"""

import hashlib
import xml.etree.ElementTree as ET

import requests
import structlog

from checkout.payment.gateway.port import (
    AuthorizationResult,
    BillingContact,
    CardDetails,
    GatewayUnavailableError,
    PaymentGateway,
)

logger = structlog.get_logger(__name__)

NAMESPACE = "AnetApi/xml/v1/schema/AnetApiSchema.xsd"
ENDPOINTS = {
    "production": "https://api.authorize.net/xml/v1/request.api",
    "sandbox": "https://apitest.authorize.net/xml/v1/request.api",
}


def _sub(parent: ET.Element, tag: str, text: str | None = None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    if text is not None:
        element.text = text
    return element


def _find_text(root: ET.Element, path: str) -> str | None:
    element = root.find(path, {"a": NAMESPACE})
    if element is None or element.text is None:
        return None
    return element.text.strip()


class AuthorizeNetGateway(PaymentGateway):
    name = "authorizenet"

    def __init__(
        self,
        api_login_id: str,
        transaction_key: str,
        environment: str = "sandbox",
        timeout: float = 15.0,
        duplicate_window: int = 900,
        session: requests.Session | None = None,
    ) -> None:
        if not api_login_id or not transaction_key:
            raise ValueError("Authorize.Net credentials not configured")
        if environment not in ENDPOINTS:
            raise ValueError(f"Unknown Authorize.Net environment: {environment}")
        self.api_login_id = api_login_id
        self.transaction_key = transaction_key
        self.endpoint = ENDPOINTS[environment]
        self.timeout = timeout
        self.duplicate_window = duplicate_window
        self.session = session or requests.Session()

    # -------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------
    def _envelope(self, ref_id: str | None = None) -> tuple[ET.Element, ET.Element]:
        root = ET.Element("createTransactionRequest", xmlns=NAMESPACE)
        auth = _sub(root, "merchantAuthentication")
        _sub(auth, "name", self.api_login_id)
        _sub(auth, "transactionKey", self.transaction_key)
        if ref_id:
            _sub(root, "refId", ref_id[:20])
        return root, _sub(root, "transactionRequest")

    def build_authorization(
        self,
        amount: float,
        card: CardDetails,
        billing: BillingContact,
        idempotency_key: str,
    ) -> bytes:
        root, request = self._envelope(ref_id=idempotency_key)
        _sub(request, "transactionType", "authOnlyTransaction")
        _sub(request, "amount", f"{amount:.2f}")

        credit_card = _sub(_sub(request, "payment"), "creditCard")
        month, year = card.expiration_date.split("/")
        _sub(credit_card, "cardNumber", card.card_number)
        _sub(credit_card, "expirationDate", f"{month}{year}")
        _sub(credit_card, "cardCode", card.cvv)

        # invoiceNumber is limited to 20 characters
        invoice_number = hashlib.sha256(idempotency_key.encode()).hexdigest()[:20]
        _sub(_sub(request, "order"), "invoiceNumber", invoice_number)

        bill_to = _sub(request, "billTo")
        _sub(bill_to, "firstName", billing.first_name)
        _sub(bill_to, "lastName", billing.last_name)
        _sub(bill_to, "address", billing.line1)
        _sub(bill_to, "city", billing.city)
        _sub(bill_to, "state", billing.state)
        _sub(bill_to, "zip", billing.postal_code)
        _sub(bill_to, "country", billing.country)

        settings = _sub(request, "transactionSettings")
        for name, value in (("emailCustomer", "false"), ("duplicateWindow", str(self.duplicate_window))):
            setting = _sub(settings, "setting")
            _sub(setting, "settingName", name)
            _sub(setting, "settingValue", value)

        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    def build_capture(self, transaction_id: str, amount: float) -> bytes:
        root, request = self._envelope()
        _sub(request, "transactionType", "priorAuthCaptureTransaction")
        _sub(request, "amount", f"{amount:.2f}")
        _sub(request, "refTransId", transaction_id)
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    # -------------------------------------------------------------------
    # Transport and parsing
    # -------------------------------------------------------------------
    def _post(self, payload: bytes) -> bytes:
        try:
            response = self.session.post(
                self.endpoint,
                data=payload,
                headers={"Content-Type": "application/xml"},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise GatewayUnavailableError("AUTHORIZENET_TIMEOUT", "Payment authorization timeout") from exc
        except requests.RequestException as exc:
            raise GatewayUnavailableError("AUTHORIZENET_ERROR", str(exc)) from exc

        if not response.ok:
            raise GatewayUnavailableError(
                "AUTHORIZENET_GATEWAY_ERROR",
                f"Authorize.Net API error: {response.status_code}",
            )
        return response.content

    @staticmethod
    def parse_response(content: bytes) -> AuthorizationResult:
        try:
            root = ET.fromstring(content.lstrip(b"\xef\xbb\xbf"))
        except ET.ParseError as exc:
            raise GatewayUnavailableError("AUTHORIZENET_ERROR", "Unreadable gateway response") from exc

        response_code = _find_text(root, "a:transactionResponse/a:responseCode")
        transaction_id = _find_text(root, "a:transactionResponse/a:transId")
        avs_result = _find_text(root, "a:transactionResponse/a:avsResultCode")
        cvv_result = _find_text(root, "a:transactionResponse/a:cvvResultCode")

        if response_code == "1" and transaction_id and transaction_id != "0":
            return AuthorizationResult(
                approved=True,
                transaction_id=transaction_id,
                response_code=response_code,
                avs_result=avs_result,
                cvv_result=cvv_result,
                message=_find_text(root, "a:transactionResponse/a:messages/a:message/a:description"),
            )

        error_codes = [
            element.text.strip()
            for element in root.findall("a:transactionResponse/a:errors/a:error/a:errorCode", {"a": NAMESPACE})
            if element.text
        ]
        if not error_codes:
            error_codes = [
                element.text.strip()
                for element in root.findall("a:messages/a:message/a:code", {"a": NAMESPACE})
                if element.text
            ]
        message = _find_text(root, "a:transactionResponse/a:errors/a:error/a:errorText") or _find_text(
            root, "a:messages/a:message/a:text"
        )
        return AuthorizationResult(
            approved=False,
            transaction_id=transaction_id if transaction_id and transaction_id != "0" else None,
            response_code=response_code,
            avs_result=avs_result,
            cvv_result=cvv_result,
            reason_codes=tuple(error_codes) or (f"RESPONSE_CODE_{response_code or 'UNKNOWN'}",),
            message=message,
        )

    # -------------------------------------------------------------------
    # Gateway API
    # -------------------------------------------------------------------
    def authorize(
        self,
        amount: float,
        currency: str,
        card: CardDetails,
        billing: BillingContact,
        idempotency_key: str,
    ) -> AuthorizationResult:
        payload = self.build_authorization(amount, card, billing, idempotency_key)
        result = self.parse_response(self._post(payload))
        logger.info(
            "Authorize.Net authorization",
            approved=result.approved,
            response_code=result.response_code,
            transaction_id=result.transaction_id,
            last4=card.last4,
        )
        return result

    def capture(self, transaction_id: str, amount: float) -> AuthorizationResult:
        result = self.parse_response(self._post(self.build_capture(transaction_id, amount)))
        logger.info("Authorize.Net capture", approved=result.approved, transaction_id=transaction_id)
        return result
