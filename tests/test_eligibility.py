"""Tests for the eligibility screening verdict."""

import pytest

from domain.aggregates import PreRegistrationStatus
from domain.eligibility import evaluate_eligibility


class TestEvaluateEligibility:

    @pytest.mark.parametrize("business,clients", [
        ("SIM", "SIM"),
        ("sim", True),
        (None, None),
        ("", "talvez"),
        ("1", "yes"),
        ("N", "SIM"),
        ("S", "n"),
    ])
    def test_pre_approved(self, business, clients):
        assert evaluate_eligibility(business, clients) is PreRegistrationStatus.PRE_APPROVED

    @pytest.mark.parametrize("business,clients", [
        ("NAO", "SIM"),
        ("SIM", "NÃO"),
        ("não", "nao"),
        (False, "SIM"),
        ("SIM", "no"),
        ("0", None),
    ])
    def test_rejected(self, business, clients):
        assert evaluate_eligibility(business, clients) is PreRegistrationStatus.REJECTED

    def test_deterministic(self):
        verdicts = {evaluate_eligibility("SIM", "NAO") for _ in range(5)}
        assert verdicts == {PreRegistrationStatus.REJECTED}

    def test_status_values(self):
        assert PreRegistrationStatus.PRE_APPROVED.value == "pre-approved"
        assert PreRegistrationStatus.from_string(" Rejected ") is PreRegistrationStatus.REJECTED
        with pytest.raises(ValueError):
            PreRegistrationStatus.from_string("pending")
