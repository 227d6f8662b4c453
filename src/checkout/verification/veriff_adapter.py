"""Veriff Station API adapter.

Creates a verification session, then polls for its decision. Every request
is signed with HMAC-SHA256 over ``method\\npath\\ntimestamp\\nbody``. A 404 on
the decision endpoint means the decision is not ready yet. Polling stops at
``max_polls`` or after ``max_wait`` seconds, whichever comes first. A failure
while polling carries the session id, so a retry polls the same session.

No PII is logged: only session ids and status values.
"""

import hashlib
import hmac
import json
import time
from datetime import date

import requests
import structlog

from checkout.verification.port import (
    AgeVerificationProvider,
    ProviderDecision,
    VerificationProviderError,
    VerificationStatus,
)

logger = structlog.get_logger(__name__)

_APPROVED = {"approved", "success"}
_UNDECIDED = {"pending", "processing", "started", "submitted", "review"}


class VeriffAgeVerificationProvider(AgeVerificationProvider):
    name = "veriff"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        signature_key: str,
        timeout: float = 30.0,
        poll_interval: float = 2.0,
        max_polls: int = 15,
        max_wait: float = 60.0,
        session: requests.Session | None = None,
        sleep=time.sleep,
        monotonic=time.monotonic,
    ) -> None:
        if not api_key or not signature_key:
            raise VerificationProviderError(
                code="VERIFF_NOT_CONFIGURED",
                message="Veriff credentials not configured",
                transient=False,
            )
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.signature_key = signature_key
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.max_wait = max_wait
        self.session = session or requests.Session()
        self._sleep = sleep
        self._monotonic = monotonic

    # -------------------------------------------------------------------
    # Signing
    # -------------------------------------------------------------------
    def sign(self, method: str, path: str, timestamp: str, body: str) -> str:
        message = f"{method}\n{path}\n{timestamp}\n{body}"
        return hmac.new(self.signature_key.encode(), message.encode(), hashlib.sha256).hexdigest()

    def _headers(self, method: str, path: str, body: str) -> dict:
        timestamp = str(int(time.time()))
        return {
            "Content-Type": "application/json",
            "X-AUTH-CLIENT": self.api_key,
            "X-TIMESTAMP": timestamp,
            "X-SIGNATURE": self.sign(method, path, timestamp, body),
        }

    def _request(self, method: str, path: str, body: str = "") -> requests.Response:
        try:
            return self.session.request(
                method,
                f"{self.base_url}{path}",
                data=body or None,
                headers=self._headers(method, path, body),
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise VerificationProviderError("VERIFF_TIMEOUT", "Veriff request timed out") from exc
        except requests.RequestException as exc:
            raise VerificationProviderError("VERIFF_ERROR", str(exc)) from exc

    # -------------------------------------------------------------------
    # Provider API
    # -------------------------------------------------------------------
    def create_session(self, first_name: str, last_name: str, date_of_birth: date, address: dict | None) -> str:
        verification = {
            "person": {
                "firstName": first_name,
                "lastName": last_name,
                "dateOfBirth": date_of_birth.isoformat(),
            }
        }
        if address:
            verification["address"] = {
                "fullAddress": f"{address['line1']}, {address['city']}, {address['state']} {address['postal_code']}",
                "country": address.get("country") or "US",
            }
        body = json.dumps({"verification": verification})

        response = self._request("POST", "/v1/sessions", body)
        if response.status_code >= 500:
            raise VerificationProviderError("VERIFF_SESSION_ERROR", f"Veriff API error: {response.status_code}")
        if not response.ok:
            raise VerificationProviderError(
                "VERIFF_SESSION_ERROR",
                f"Veriff API error: {response.status_code}",
                transient=False,
            )

        session_id = (response.json().get("verification") or {}).get("id") or response.json().get("id")
        if not session_id:
            raise VerificationProviderError("VERIFF_SESSION_ERROR", "Veriff returned no session id", transient=False)
        logger.info("Veriff session created", session_id=session_id)
        return session_id

    def poll_decision(self, session_id: str) -> dict | None:
        """Poll until a final decision arrives; ``None`` when the poll budget runs out."""
        path = f"/v1/sessions/{session_id}/decision"
        deadline = self._monotonic() + self.max_wait

        for _attempt in range(self.max_polls):
            if self._monotonic() >= deadline:
                break
            response = self._request("GET", path)
            if response.status_code == 404:
                self._sleep(self.poll_interval)
                continue
            if response.status_code >= 500:
                raise VerificationProviderError(
                    "VERIFF_DECISION_ERROR",
                    f"Veriff API error: {response.status_code}",
                    reference_id=session_id,
                )
            if not response.ok:
                raise VerificationProviderError(
                    "VERIFF_DECISION_ERROR",
                    f"Veriff API error: {response.status_code}",
                    transient=False,
                    reference_id=session_id,
                )

            data = response.json()
            if _decision_status(data) not in _UNDECIDED:
                return data
            self._sleep(self.poll_interval)

        return None

    def verify_age(
        self,
        first_name: str,
        last_name: str,
        date_of_birth: date,
        address: dict | None = None,
        reference_id: str | None = None,
    ) -> ProviderDecision:
        if reference_id:
            session_id = reference_id
            logger.info("Veriff session resumed", session_id=session_id)
        else:
            session_id = self.create_session(first_name, last_name, date_of_birth, address)

        try:
            data = self.poll_decision(session_id)
        except VerificationProviderError as exc:
            exc.reference_id = exc.reference_id or session_id
            raise

        if data is None:
            logger.warning("Veriff decision not ready", session_id=session_id, polls=self.max_polls)
            return ProviderDecision(
                status=VerificationStatus.PENDING,
                reference_id=session_id,
                reason_code="VERIFF_DECISION_PENDING",
                message="No final decision received",
            )

        status = _decision_status(data)
        verification = data.get("verification") or {}
        person = verification.get("person") or {}
        logger.info("Veriff decision received", session_id=session_id, decision=status)

        if status in _APPROVED:
            return ProviderDecision(
                status=VerificationStatus.APPROVED,
                reference_id=session_id,
                age=person.get("age"),
                date_of_birth=_parse_date(person.get("dateOfBirth")),
            )

        code = verification.get("code") or data.get("code")
        return ProviderDecision(
            status=VerificationStatus.DECLINED,
            reference_id=session_id,
            reason_code=str(code) if code is not None else (status.upper() or "VERIFF_DECLINED"),
            message=f"Veriff decision: {status}",
        )


def _decision_status(data: dict) -> str:
    verification = data.get("verification") or {}
    return str(verification.get("status") or data.get("status") or "").lower()


def _parse_date(value) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None
