"""Pytest fixtures for Loyalman tests."""

from decimal import Decimal

import pytest
from django.utils import timezone

from loyalman.engine import LoyaltyEngine


@pytest.fixture
def engine(db):
    """Engine for the default test program (model defaults, welcome bonus 100)."""
    return LoyaltyEngine("test-store")


@pytest.fixture
def two_tier_engine(db):
    """Program with bronze(0, 1.0) and silver(10000, 1.2) only, no welcome bonus."""
    engine = LoyaltyEngine("two-tier")
    engine.config.update(
        welcome_bonus_points=0,
        tier_thresholds={"gold": None, "platinum": None},
    )
    return engine


@pytest.fixture
def customer(engine):
    """Enrolled customer holding the 100 point welcome bonus."""
    return engine.directory.enroll(
        "CUST-001",
        first_name="Maria",
        last_name="Silva",
        email="Maria@Example.com ",
        phone="11999999999",
    )


@pytest.fixture
def customer_b(engine):
    return engine.directory.enroll("CUST-002", first_name="Joao", last_name="Souza")


@pytest.fixture
def rich_customer(engine, customer):
    """CUST-001 after a 1000.00 purchase (balance 1100)."""
    engine.directory.record_purchase("CUST-001", "INV-001", Decimal("1000.00"))
    customer.refresh_from_db()
    return customer


@pytest.fixture
def reward(engine):
    return engine.catalog.create(
        code="COFFEE",
        title="Free coffee",
        points_cost=300,
        reward_type="free_product",
        value=Decimal("8.50"),
        product_ref="SKU-COFFEE",
    )


@pytest.fixture
def expiring_engine(db):
    """Program with a 30 day expiry horizon and no welcome bonus."""
    engine = LoyaltyEngine("expiring")
    engine.config.update(points_expiry_days=30, welcome_bonus_points=0)
    return engine


@pytest.fixture
def t0():
    return timezone.now()
