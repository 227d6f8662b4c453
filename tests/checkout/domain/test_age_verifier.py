"""Tests for local age calculation and provider decision normalization."""

from datetime import UTC, date, datetime

import pytest
from checkout.verification.fake_adapter import FakeAgeVerificationProvider
from checkout.verification.port import ProviderDecision, VerificationStatus
from checkout.verification.verifier import UNDER_MINIMUM_AGE, AgeVerifier, calculate_age

TODAY = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class _RecordingSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


def _make_verifier(provider=None, **overrides):
    options = {
        "minimum_age": 21,
        "max_attempts": 3,
        "backoff_seconds": 0.5,
        "clock": lambda: TODAY,
        "sleep": _RecordingSleep(),
    }
    options.update(overrides)
    return AgeVerifier(provider or FakeAgeVerificationProvider(), **options)


class TestCalculateAge:
    def test_birthday_already_passed(self):
        assert calculate_age(date(2000, 1, 1), date(2024, 6, 1)) == 24

    def test_birthday_not_yet_reached(self):
        assert calculate_age(date(2003, 6, 2), date(2024, 6, 1)) == 20

    def test_birthday_today(self):
        assert calculate_age(date(2003, 6, 1), date(2024, 6, 1)) == 21

    def test_leap_day_birthday(self):
        assert calculate_age(date(2004, 2, 29), date(2025, 2, 28)) == 20
        assert calculate_age(date(2004, 2, 29), date(2025, 3, 1)) == 21


class TestMinimumAgeShortCircuit:
    def test_minor_is_declined_without_calling_provider(self):
        provider = FakeAgeVerificationProvider()
        result = _make_verifier(provider).verify("Kid", "Doe", date(2010, 1, 1))
        assert result.status == VerificationStatus.DECLINED
        assert result.reason_code == UNDER_MINIMUM_AGE
        assert provider.calls == []

    def test_one_day_short_is_declined(self):
        provider = FakeAgeVerificationProvider()
        result = _make_verifier(provider).verify("Almost", "Doe", date(2003, 6, 2))
        assert result.status == VerificationStatus.DECLINED
        assert provider.calls == []

    def test_minimum_age_is_configurable(self):
        result = _make_verifier(minimum_age=18).verify("Young", "Adult", date(2005, 1, 1))
        assert result.status == VerificationStatus.APPROVED


class TestProviderDecisions:
    def test_adult_is_approved(self):
        provider = FakeAgeVerificationProvider()
        result = _make_verifier(provider).verify("Jane", "Doe", date(1990, 1, 1), address={"state": "TX"})
        assert result.approved is True
        assert result.provider == "fake"
        assert result.reference_id.startswith("fake_ver_")
        assert result.verified_at == TODAY
        assert result.attempts == 1
        assert provider.calls == [{"method": "verify_age", "has_address": True}]

    def test_decline_is_final(self):
        provider = FakeAgeVerificationProvider()
        provider.configure(status=VerificationStatus.DECLINED, reason_code="DOCUMENT_MISMATCH")
        result = _make_verifier(provider).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.status == VerificationStatus.DECLINED
        assert result.reason_code == "DOCUMENT_MISMATCH"
        assert len(provider.calls) == 1

    def test_approval_with_underage_reported_age_is_declined(self):
        provider = FakeAgeVerificationProvider()
        provider.configure(status=VerificationStatus.APPROVED, reported_age=19)
        result = _make_verifier(provider).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.status == VerificationStatus.DECLINED
        assert result.reason_code == UNDER_MINIMUM_AGE

    def test_approval_with_underage_reported_birth_date_is_declined(self):
        class DobProvider(FakeAgeVerificationProvider):
            def verify_age(self, first_name, last_name, date_of_birth, address=None, reference_id=None):
                return ProviderDecision(
                    status=VerificationStatus.APPROVED,
                    reference_id="ref-1",
                    date_of_birth=date(2008, 5, 5),
                )

        result = _make_verifier(DobProvider()).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.status == VerificationStatus.DECLINED

    def test_pending_is_passed_through(self):
        provider = FakeAgeVerificationProvider()
        provider.configure(status=VerificationStatus.PENDING, reason_code="REVIEW")
        result = _make_verifier(provider).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.status == VerificationStatus.PENDING


class TestTransientFailures:
    def test_retries_then_succeeds(self):
        provider = FakeAgeVerificationProvider()
        provider.fail_next(times=2)
        sleep = _RecordingSleep()
        result = _make_verifier(provider, sleep=sleep).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.status == VerificationStatus.APPROVED
        assert result.attempts == 3
        assert sleep.delays == [0.5, 1.0]

    def test_exhausted_retries_yield_error_not_decline(self):
        provider = FakeAgeVerificationProvider()
        provider.fail_next(times=5, code="PROVIDER_TIMEOUT")
        sleep = _RecordingSleep()
        result = _make_verifier(provider, sleep=sleep).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.status == VerificationStatus.ERROR
        assert result.reason_code == "PROVIDER_TIMEOUT"
        assert result.attempts == 3
        assert len(provider.calls) == 3
        assert sleep.delays == [0.5, 1.0]

    def test_non_transient_failure_is_not_retried(self):
        provider = FakeAgeVerificationProvider()
        provider.fail_next(times=1, code="VERIFF_NOT_CONFIGURED", transient=False)
        result = _make_verifier(provider).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.status == VerificationStatus.ERROR
        assert len(provider.calls) == 1

    @pytest.mark.parametrize("max_attempts", [0, -3])
    def test_at_least_one_attempt(self, max_attempts):
        provider = FakeAgeVerificationProvider()
        result = _make_verifier(provider, max_attempts=max_attempts).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.approved is True
        assert len(provider.calls) == 1

    def test_retry_resumes_the_opened_verification(self):
        provider = FakeAgeVerificationProvider()
        provider.fail_next(times=1, code="DECISION_TIMEOUT", reference_id="fake_ver_open")
        result = _make_verifier(provider).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.approved is True
        assert result.reference_id == "fake_ver_open"
        assert provider.resumed == ["fake_ver_open"]

    def test_failure_before_opening_starts_fresh(self):
        provider = FakeAgeVerificationProvider()
        provider.fail_next(times=1)
        _make_verifier(provider).verify("Jane", "Doe", date(1990, 1, 1))
        assert provider.resumed == []

    def test_exhausted_retries_keep_the_reference(self):
        provider = FakeAgeVerificationProvider()
        provider.fail_next(times=5, reference_id="fake_ver_open")
        result = _make_verifier(provider).verify("Jane", "Doe", date(1990, 1, 1))
        assert result.status == VerificationStatus.ERROR
        assert result.reference_id == "fake_ver_open"
