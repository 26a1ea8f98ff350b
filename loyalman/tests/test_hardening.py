"""
Loyalman hardening tests.

Tests for:
- Gates L2, L3, L5 (raise and check variants)
- Structured errors
- Engine wiring and program isolation
- Storage faults surfaced as PersistenceFailure
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from loyalman import Gates, LoyalmanError, LoyaltyEngine
from loyalman.exceptions import (
    BelowMinimum,
    CustomerNotFound,
    InsufficientPoints,
    PersistenceFailure,
    RequestNotFound,
    RequestNotPending,
)
from loyalman.models import PointsEntry, RedemptionRequest


pytestmark = pytest.mark.django_db


# ═══════════════════════════════════════════════════════════════════
# L2 / L3: Redemption amount gates
# ═══════════════════════════════════════════════════════════════════


class TestAmountGates:
    def test_minimum_redeemable(self):
        assert Gates.minimum_redeemable(100, 100).passed
        with pytest.raises(BelowMinimum, match="BELOW_MINIMUM"):
            Gates.minimum_redeemable(99, 100)

        assert Gates.check_minimum_redeemable(100, 100)
        assert not Gates.check_minimum_redeemable(99, 100)

    def test_sufficient_balance(self):
        result = Gates.sufficient_balance(500, 500)
        assert result.passed
        assert result.gate_name == "L3_SufficientBalance"

        with pytest.raises(InsufficientPoints) as exc:
            Gates.sufficient_balance(500, 501)
        assert exc.value.data == {
            "gate": "L3_SufficientBalance",
            "available": 500,
            "requested": 501,
        }
        assert not Gates.check_sufficient_balance(0, 1)


# ═══════════════════════════════════════════════════════════════════
# L5: RequestPending
# ═══════════════════════════════════════════════════════════════════


class TestRequestPendingGate:
    def test_pending_passes(self, engine, rich_customer):
        request = engine.redemptions.request("CUST-001", 100)
        assert Gates.request_pending(request).passed

    def test_terminal_states_fail(self, engine, rich_customer):
        request = engine.redemptions.request("CUST-001", 100)
        engine.redemptions.cancel(request.pk)
        request.refresh_from_db()

        with pytest.raises(RequestNotPending):
            Gates.request_pending(request)
        assert not Gates.check_request_pending(request)


# ═══════════════════════════════════════════════════════════════════
# Structured errors
# ═══════════════════════════════════════════════════════════════════


class TestErrors:
    def test_default_code_and_message(self):
        error = InsufficientPoints(available=10, requested=20)

        assert error.code == "INSUFFICIENT_POINTS"
        assert error.message == "Insufficient points"
        assert str(error) == "[INSUFFICIENT_POINTS] Insufficient points"
        assert error.as_dict() == {
            "code": "INSUFFICIENT_POINTS",
            "message": "Insufficient points",
            "data": {"available": 10, "requested": 20},
        }

    def test_custom_message(self):
        error = LoyalmanError(message="Something odd", detail=1)
        assert error.code == "LOYALMAN_ERROR"
        assert str(error) == "[LOYALMAN_ERROR] Something odd"

    def test_hierarchy(self):
        assert issubclass(PersistenceFailure, LoyalmanError)
        assert issubclass(BelowMinimum, LoyalmanError)


# ═══════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════


class TestEngine:
    def test_components_share_one_program(self, engine):
        program = engine.config.program
        assert engine.ledger.program == program
        assert engine.directory.program == program
        assert engine.catalog.program == program
        assert engine.redemptions.program == program
        assert engine.reaper.program == program
        assert repr(engine) == "<LoyaltyEngine test-store>"

    def test_default_program_from_settings(self, db):
        # tests/settings.py sets DEFAULT_PROGRAM = "test-store"
        assert LoyaltyEngine().program_code == "test-store"

    def test_programs_are_isolated(self, engine, customer):
        other = LoyaltyEngine("store-02")
        other.config.update(earning_rate="3")

        assert other.directory.get("CUST-001") is None
        assert engine.config.get().earning_rate == Decimal("1")

    def test_failed_first_write_keeps_engine_usable(self, db):
        fresh = LoyaltyEngine("fresh")

        with pytest.raises(CustomerNotFound):
            fresh.ledger.append("nobody", "bonus", 10)

        customer = fresh.directory.enroll("C-1", first_name="Ana")
        assert customer.program.code == "fresh"
        assert fresh.ledger.balance_of("C-1") == 100

    def test_failed_first_redemption_lookup(self, db):
        fresh = LoyaltyEngine("fresh")

        with pytest.raises(RequestNotFound):
            fresh.redemptions.cancel(12345)

        assert fresh.redemptions.list_requests() == []
        assert fresh.config.get().program_code == "fresh"


# ═══════════════════════════════════════════════════════════════════
# Storage faults
# ═══════════════════════════════════════════════════════════════════


class TestPersistenceFailure:
    def test_approve_rolls_back_everything(self, engine, rich_customer):
        request = engine.redemptions.request("CUST-001", 200)
        entries = PointsEntry.objects.count()

        with patch.object(RedemptionRequest, "save", side_effect=DatabaseError("locked")):
            with pytest.raises(PersistenceFailure) as exc:
                engine.redemptions.approve(request.pk, approver="staff:1")

        assert exc.value.data == {"operation": "redemption.approve", "request_id": request.pk}
        assert PointsEntry.objects.count() == entries
        assert engine.ledger.balance_of("CUST-001") == 1100
        assert engine.redemptions.get(request.pk).is_pending

    def test_enroll_rolls_back_customer(self, engine):
        with patch.object(PointsEntry.objects, "create", side_effect=DatabaseError("locked")):
            with pytest.raises(PersistenceFailure):
                engine.directory.enroll("CUST-X", first_name="X")

        assert engine.directory.get("CUST-X") is None
