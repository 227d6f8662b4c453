"""Wire-level tests for the Veriff adapter with a mocked HTTP session."""

import hashlib
import hmac
import json
from datetime import date
from unittest.mock import MagicMock

import pytest
import requests
from checkout.verification.port import VerificationProviderError, VerificationStatus
from checkout.verification.veriff_adapter import VeriffAgeVerificationProvider


def _response(status_code, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = payload or {}
    return response


def _provider(*responses, max_polls=3):
    session = MagicMock()
    session.request.side_effect = list(responses)
    sleeps = []
    provider = VeriffAgeVerificationProvider(
        base_url="https://veriff.test/",
        api_key="api-key",
        signature_key="signature-key",
        max_polls=max_polls,
        poll_interval=2.0,
        session=session,
        sleep=sleeps.append,
    )
    return provider, session, sleeps


_CREATED = _response(201, {"status": "success", "verification": {"id": "sess-001"}})
_ADDRESS = {"line1": "100 Congress Ave", "city": "Austin", "state": "TX", "postal_code": "78701", "country": "US"}


class TestConfiguration:
    def test_missing_credentials(self):
        with pytest.raises(VerificationProviderError) as exc_info:
            VeriffAgeVerificationProvider(base_url="https://veriff.test", api_key="", signature_key="")
        assert exc_info.value.code == "VERIFF_NOT_CONFIGURED"
        assert exc_info.value.transient is False


class TestSigning:
    def test_requests_are_signed(self):
        decision = _response(200, {"verification": {"status": "approved", "person": {"age": 34}}})
        provider, session, _ = _provider(_CREATED, decision)

        provider.verify_age("Jane", "Doe", date(1990, 1, 1), _ADDRESS)

        method, url = session.request.call_args_list[0].args
        kwargs = session.request.call_args_list[0].kwargs
        headers = kwargs["headers"]
        assert method == "POST"
        assert url == "https://veriff.test/v1/sessions"
        assert headers["X-AUTH-CLIENT"] == "api-key"
        expected = hmac.new(
            b"signature-key",
            f"POST\n/v1/sessions\n{headers['X-TIMESTAMP']}\n{kwargs['data']}".encode(),
            hashlib.sha256,
        ).hexdigest()
        assert headers["X-SIGNATURE"] == expected

    def test_session_payload(self):
        decision = _response(200, {"verification": {"status": "approved"}})
        provider, session, _ = _provider(_CREATED, decision)

        provider.verify_age("Jane", "Doe", date(1990, 1, 1), _ADDRESS)

        payload = json.loads(session.request.call_args_list[0].kwargs["data"])
        assert payload["verification"]["person"]["dateOfBirth"] == "1990-01-01"
        assert payload["verification"]["address"]["fullAddress"] == "100 Congress Ave, Austin, TX 78701"


class TestDecisions:
    def test_approved(self):
        decision = _response(200, {"verification": {"status": "approved", "person": {"dateOfBirth": "1990-01-01"}}})
        provider, _, _ = _provider(_CREATED, decision)

        result = provider.verify_age("Jane", "Doe", date(1990, 1, 1))

        assert result.status == VerificationStatus.APPROVED
        assert result.reference_id == "sess-001"
        assert result.date_of_birth == date(1990, 1, 1)

    def test_declined_with_code(self):
        decision = _response(200, {"verification": {"status": "declined", "code": 9102}})
        provider, _, _ = _provider(_CREATED, decision)

        result = provider.verify_age("Jane", "Doe", date(1990, 1, 1))

        assert result.status == VerificationStatus.DECLINED
        assert result.reason_code == "9102"

    def test_not_ready_is_polled_again(self):
        decision = _response(200, {"verification": {"status": "approved"}})
        pending = _response(200, {"status": "submitted"})
        provider, session, sleeps = _provider(_CREATED, _response(404), pending, decision)

        result = provider.verify_age("Jane", "Doe", date(1990, 1, 1))

        assert result.status == VerificationStatus.APPROVED
        assert session.request.call_count == 4
        assert sleeps == [2.0, 2.0]

    def test_poll_budget_exhausted_is_pending(self):
        provider, _, _ = _provider(_CREATED, _response(404), _response(404), max_polls=2)

        result = provider.verify_age("Jane", "Doe", date(1990, 1, 1))

        assert result.status == VerificationStatus.PENDING
        assert result.reason_code == "VERIFF_DECISION_PENDING"


class TestFailures:
    def test_timeout_is_transient(self):
        session = MagicMock()
        session.request.side_effect = requests.Timeout()
        provider = VeriffAgeVerificationProvider("https://veriff.test", "api-key", "signature-key", session=session)

        with pytest.raises(VerificationProviderError) as exc_info:
            provider.verify_age("Jane", "Doe", date(1990, 1, 1))

        assert exc_info.value.code == "VERIFF_TIMEOUT"
        assert exc_info.value.transient is True

    def test_server_error_is_transient(self):
        provider, _, _ = _provider(_response(502))
        with pytest.raises(VerificationProviderError) as exc_info:
            provider.verify_age("Jane", "Doe", date(1990, 1, 1))
        assert exc_info.value.transient is True

    def test_rejected_request_is_not_transient(self):
        provider, _, _ = _provider(_response(400))
        with pytest.raises(VerificationProviderError) as exc_info:
            provider.verify_age("Jane", "Doe", date(1990, 1, 1))
        assert exc_info.value.transient is False

    def test_decision_server_error(self):
        provider, _, _ = _provider(_CREATED, _response(500))
        with pytest.raises(VerificationProviderError) as exc_info:
            provider.verify_age("Jane", "Doe", date(1990, 1, 1))
        assert exc_info.value.code == "VERIFF_DECISION_ERROR"


class TestResume:
    def test_polling_failure_carries_the_session_id(self):
        provider, _, _ = _provider(_CREATED, _response(502))
        with pytest.raises(VerificationProviderError) as exc_info:
            provider.verify_age("Jane", "Doe", date(1990, 1, 1))
        assert exc_info.value.reference_id == "sess-001"
        assert exc_info.value.transient is True

    def test_timeout_while_polling_carries_the_session_id(self):
        session = MagicMock()
        session.request.side_effect = [_CREATED, requests.Timeout()]
        provider = VeriffAgeVerificationProvider("https://veriff.test", "api-key", "signature-key", session=session)

        with pytest.raises(VerificationProviderError) as exc_info:
            provider.verify_age("Jane", "Doe", date(1990, 1, 1))

        assert exc_info.value.code == "VERIFF_TIMEOUT"
        assert exc_info.value.reference_id == "sess-001"

    def test_session_creation_failure_has_no_session_id(self):
        provider, _, _ = _provider(_response(502))
        with pytest.raises(VerificationProviderError) as exc_info:
            provider.verify_age("Jane", "Doe", date(1990, 1, 1))
        assert exc_info.value.reference_id is None

    def test_resumed_verification_does_not_open_a_new_session(self):
        decision = _response(200, {"verification": {"status": "approved"}})
        provider, session, _ = _provider(decision)

        result = provider.verify_age("Jane", "Doe", date(1990, 1, 1), reference_id="sess-001")

        assert result.status == VerificationStatus.APPROVED
        assert result.reference_id == "sess-001"
        assert session.request.call_count == 1
        method, url = session.request.call_args.args
        assert method == "GET"
        assert url == "https://veriff.test/v1/sessions/sess-001/decision"


class TestPollDeadline:
    def test_polling_stops_at_max_wait(self):
        session = MagicMock()
        session.request.side_effect = [_CREATED, _response(404), _response(404)]
        ticks = iter([0.0, 0.0, 45.0, 90.0])
        provider = VeriffAgeVerificationProvider(
            "https://veriff.test",
            "api-key",
            "signature-key",
            max_polls=15,
            max_wait=60.0,
            session=session,
            sleep=lambda seconds: None,
            monotonic=lambda: next(ticks),
        )

        result = provider.verify_age("Jane", "Doe", date(1990, 1, 1))

        assert result.status == VerificationStatus.PENDING
        assert session.request.call_count == 3
