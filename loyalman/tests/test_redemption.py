"""Tests for RedemptionWorkflow."""

from datetime import timedelta
from decimal import Decimal

import pytest

from loyalman.exceptions import (
    BelowMinimum,
    InsufficientPoints,
    InvalidPoints,
    InvalidRedemption,
    RequestNotFound,
    RequestNotPending,
    RewardIneligible,
    RewardNotFound,
)
from loyalman.models import EntryKind, PointsEntry, RedemptionStatus, RedemptionType
from loyalman.signals import redemption_approved


pytestmark = pytest.mark.django_db


class TestRequest:
    """Opening a pending request."""

    def test_scenario_b(self, two_tier_engine):
        """Silver customer with 11000 points redeems 2000 for a cash discount."""
        engine = two_tier_engine
        engine.directory.enroll("C-B", first_name="Bia")
        engine.directory.record_purchase("C-B", "INV-1", Decimal("5000"))
        engine.directory.record_purchase("C-B", "INV-2", Decimal("1000"))
        engine.directory.record_purchase("C-B", "INV-3", Decimal("4000"))
        engine.ledger.adjust("C-B", 1000, "Promotion")

        customer = engine.directory.require("C-B")
        assert customer.total_spent == Decimal("10000")
        assert customer.tier == "silver"
        assert customer.points_balance == 11000

        request = engine.redemptions.request("C-B", 2000)
        assert request.redemption_type == RedemptionType.CASH_DISCOUNT
        assert request.cash_value == Decimal("2000.00")
        assert request.status == RedemptionStatus.PENDING

        approved = engine.redemptions.approve(request.pk, approver="staff:1")

        assert approved.status == RedemptionStatus.APPROVED
        assert approved.approved_by == "staff:1"
        assert approved.approved_at is not None
        assert engine.ledger.balance_of("C-B") == 9000

        entry = engine.ledger.history("C-B").first()
        assert entry.kind == EntryKind.REDEEMED
        assert entry.points == -2000
        assert entry.balance_after == 9000
        assert entry.created_by == "staff:1"
        assert approved.ledger_entry == entry

    def test_scenario_c(self, engine, customer):
        with pytest.raises(BelowMinimum) as exc:
            engine.redemptions.request("CUST-001", 50)

        assert exc.value.data["minimum"] == 100
        assert exc.value.data["requested"] == 50

    def test_minimum_boundary(self, engine, customer):
        with pytest.raises(BelowMinimum):
            engine.redemptions.request("CUST-001", 99)

        request = engine.redemptions.request("CUST-001", 100)
        assert request.is_pending

    def test_balance_checked_before_minimum(self, engine, customer):
        engine.config.update(minimum_points_to_redeem=500)
        with pytest.raises(InsufficientPoints):
            engine.redemptions.request("CUST-001", 150)

    def test_invalid_points(self, engine, customer):
        for points in (0, -10, 1.5, True):
            with pytest.raises(InvalidPoints):
                engine.redemptions.request("CUST-001", points)

    def test_cash_value_uses_redemption_rate(self, engine, rich_customer):
        engine.config.update(redemption_rate="0.05")
        request = engine.redemptions.request("CUST-001", 205)
        assert request.cash_value == Decimal("10.25")

    def test_pending_request_reserves_nothing(self, engine, rich_customer):
        engine.redemptions.request("CUST-001", 600)
        assert engine.ledger.balance_of("CUST-001") == 1100

    def test_type_mismatch(self, engine, rich_customer, reward):
        with pytest.raises(InvalidRedemption):
            engine.redemptions.request(
                "CUST-001", 300, redemption_type="cash_discount", reward_code="COFFEE"
            )
        with pytest.raises(InvalidRedemption):
            engine.redemptions.request("CUST-001", 300, redemption_type="reward_redemption")


class TestRewardRequest:
    """Requests against catalog rewards."""

    def test_reward_redemption(self, engine, rich_customer, reward):
        request = engine.redemptions.request("CUST-001", 300, reward_code="COFFEE")
        assert request.redemption_type == RedemptionType.REWARD_REDEMPTION

        engine.redemptions.approve(request.pk, approver="staff:2")

        reward.refresh_from_db()
        assert reward.usage_count == 1
        entry = engine.ledger.history("CUST-001").first()
        assert entry.description == "Points redeemed for reward: Free coffee"
        assert engine.ledger.balance_of("CUST-001") == 800

    def test_points_below_cost(self, engine, rich_customer, reward):
        with pytest.raises(RewardIneligible) as exc:
            engine.redemptions.request("CUST-001", 200, reward_code="COFFEE")
        assert exc.value.data["reason"] == "points_below_cost"

    def test_unknown_reward(self, engine, rich_customer):
        with pytest.raises(RewardNotFound):
            engine.redemptions.request("CUST-001", 300, reward_code="NOPE")

    def test_tier_not_applicable(self, engine, rich_customer):
        engine.catalog.create(
            code="LOUNGE",
            title="VIP lounge",
            points_cost=500,
            reward_type="free_product",
            value=0,
            applicable_tiers=["gold", "platinum"],
        )
        with pytest.raises(RewardIneligible) as exc:
            engine.redemptions.request("CUST-001", 500, reward_code="LOUNGE")
        assert exc.value.data["reason"] == "tier_not_applicable"

    def test_expired_reward(self, engine, rich_customer, t0):
        engine.catalog.create(
            code="OLD",
            title="Old promo",
            points_cost=100,
            reward_type="discount_fixed",
            value=5,
            valid_from=t0 - timedelta(days=30),
            valid_until=t0 - timedelta(days=1),
        )
        with pytest.raises(RewardIneligible) as exc:
            engine.redemptions.request("CUST-001", 100, reward_code="OLD")
        assert exc.value.data["reason"] == "expired"

    def test_reward_deactivated_before_approval(self, engine, rich_customer, reward):
        request = engine.redemptions.request("CUST-001", 300, reward_code="COFFEE")
        engine.catalog.deactivate("COFFEE")

        with pytest.raises(RewardIneligible) as exc:
            engine.redemptions.approve(request.pk, approver="staff:1")

        assert exc.value.data["reason"] == "inactive"
        assert engine.redemptions.get(request.pk).is_pending
        assert engine.ledger.balance_of("CUST-001") == 1100

    def test_usage_limit_never_exceeded(self, engine, rich_customer, customer_b):
        engine.directory.record_purchase("CUST-002", "INV-2", Decimal("500"))
        engine.catalog.create(
            code="ONCE",
            title="One-off voucher",
            points_cost=200,
            reward_type="cashback",
            value=20,
            usage_limit=1,
        )
        first = engine.redemptions.request("CUST-001", 200, reward_code="ONCE")
        second = engine.redemptions.request("CUST-002", 200, reward_code="ONCE")

        engine.redemptions.approve(first.pk, approver="staff:1")
        with pytest.raises(RewardIneligible) as exc:
            engine.redemptions.approve(second.pk, approver="staff:1")

        assert exc.value.data["reason"] == "usage_exhausted"
        reward = engine.catalog.require("ONCE")
        assert reward.usage_count == reward.usage_limit == 1
        assert engine.ledger.balance_of("CUST-002") == 600


class TestApprove:
    """Approval is the only point where points leave the balance."""

    def test_double_approval_cannot_overdraw(self, engine, rich_customer):
        """
        Approvals run one after the other here. SQLite has no row locks, so
        the select_for_update serialization of concurrent approvals is only
        exercised on a backend such as PostgreSQL.
        """
        first = engine.redemptions.request("CUST-001", 600)
        second = engine.redemptions.request("CUST-001", 600)

        engine.redemptions.approve(first.pk, approver="staff:1")
        with pytest.raises(InsufficientPoints) as exc:
            engine.redemptions.approve(second.pk, approver="staff:2")

        assert exc.value.data["available"] == 500
        assert exc.value.data["requested"] == 600
        assert engine.redemptions.get(second.pk).is_pending
        assert engine.ledger.balance_of("CUST-001") == 500
        assert engine.ledger.reconcile("CUST-001").is_consistent

    def test_approve_twice(self, engine, rich_customer):
        request = engine.redemptions.request("CUST-001", 200)
        engine.redemptions.approve(request.pk, approver="staff:1")

        with pytest.raises(RequestNotPending) as exc:
            engine.redemptions.approve(request.pk, approver="staff:1")

        assert exc.value.data["status"] == "approved"
        assert engine.ledger.balance_of("CUST-001") == 900

    def test_approve_unknown(self, engine):
        with pytest.raises(RequestNotFound):
            engine.redemptions.approve(9999, approver="staff:1")

    def test_approve_deactivated_customer(self, engine, rich_customer):
        from loyalman.exceptions import CustomerNotFound

        request = engine.redemptions.request("CUST-001", 200)
        engine.directory.deactivate("CUST-001")

        with pytest.raises(CustomerNotFound):
            engine.redemptions.approve(request.pk, approver="staff:1")

    def test_approved_signal(self, engine, rich_customer):
        received = []

        def receiver(sender, **kwargs):
            received.append(kwargs["message"])

        redemption_approved.connect(receiver)
        try:
            request = engine.redemptions.request("CUST-001", 200)
            engine.redemptions.approve(request.pk, approver="staff:1")
        finally:
            redemption_approved.disconnect(receiver)

        assert received == ["Points redeemed for cash discount"]

    def test_lifetime_redeemed(self, engine, rich_customer):
        request = engine.redemptions.request("CUST-001", 200)
        engine.redemptions.approve(request.pk, approver="staff:1")

        rich_customer.refresh_from_db()
        assert rich_customer.total_points_redeemed == 200
        assert rich_customer.total_points_earned == 1100


class TestCancel:
    """Cancellation has no ledger effect."""

    def test_cancel(self, engine, rich_customer):
        request = engine.redemptions.request("CUST-001", 200)
        entries = PointsEntry.objects.count()

        cancelled = engine.redemptions.cancel(request.pk, cancelled_by="staff:3")

        assert cancelled.status == RedemptionStatus.CANCELLED
        assert cancelled.cancelled_by == "staff:3"
        assert cancelled.cancelled_at is not None
        assert PointsEntry.objects.count() == entries
        assert engine.ledger.balance_of("CUST-001") == 1100

    def test_cannot_approve_cancelled(self, engine, rich_customer):
        request = engine.redemptions.request("CUST-001", 200)
        engine.redemptions.cancel(request.pk)

        with pytest.raises(RequestNotPending) as exc:
            engine.redemptions.approve(request.pk, approver="staff:1")
        assert exc.value.data["status"] == "cancelled"

    def test_cannot_cancel_approved(self, engine, rich_customer):
        request = engine.redemptions.request("CUST-001", 200)
        engine.redemptions.approve(request.pk, approver="staff:1")

        with pytest.raises(RequestNotPending):
            engine.redemptions.cancel(request.pk)

    def test_cancel_unknown(self, engine):
        with pytest.raises(RequestNotFound):
            engine.redemptions.cancel(4242)


class TestQueries:
    def test_get_and_list(self, engine, rich_customer):
        a = engine.redemptions.request("CUST-001", 100)
        b = engine.redemptions.request("CUST-001", 200)
        engine.redemptions.cancel(a.pk)

        assert engine.redemptions.get(b.pk).points == 200
        assert [r.pk for r in engine.redemptions.list_requests()] == [b.pk, a.pk]
        assert [r.pk for r in engine.redemptions.list_requests(status="pending")] == [b.pk]

    def test_requests_are_scoped_to_program(self, engine, two_tier_engine, rich_customer):
        request = engine.redemptions.request("CUST-001", 100)

        with pytest.raises(RequestNotFound):
            two_tier_engine.redemptions.get(request.pk)
        assert two_tier_engine.redemptions.list_requests() == []
