"""Customer directory: enrollment, purchases and member queries.

All writes that touch a customer's loyalty fields go through the ledger's
locked append, inside one transaction.atomic() per operation.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from django.db.models import Avg, Count, Sum
from django.utils import timezone

from loyalman.conf import loyalman_settings
from loyalman.db import atomic_unit
from loyalman.exceptions import CustomerNotFound, InvalidAmount
from loyalman.models import Customer, EntryKind, LoyaltyTier, PointsEntry
from loyalman.services.config import ConfigStore, LoyaltyConfig
from loyalman.services.ledger import PointsLedger
from loyalman.signals import (
    customer_enrolled,
    customer_updated,
    points_earned,
    tier_changed,
)
from loyalman.tiers import tier_for

logger = logging.getLogger(__name__)


@dataclass
class ProgramStats:
    """Program-wide membership figures."""

    total_customers: int
    active_customers: int
    total_points_issued: int
    total_points_redeemed: int
    average_points_per_customer: Decimal
    tier_distribution: dict[str, int] = field(default_factory=dict)


def points_for_amount(amount: Decimal, config: LoyaltyConfig, tier: str) -> int:
    """floor(amount * earning_rate * tier multiplier)."""
    raw = amount * config.earning_rate * config.multiplier_for(tier)
    return int(raw.to_integral_value(rounding=ROUND_FLOOR))


def _to_amount(value) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmount(amount=value)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(amount=value)
    if not amount.is_finite() or amount < 0:
        raise InvalidAmount(amount=value)
    return amount


class CustomerDirectory:
    """
    Loyalty members of one program.

    CORE:
        enroll(code, ...)            - Create member (+ welcome bonus)
        record_purchase(code, ...)   - Earn points, bump spend/visits/tier
        max_redeemable_for(code, bill) - Points usable on a bill

    CONVENIENCE:
        get / require / list_customers / top_customers / by_tier / stats
        update_profile / deactivate
    """

    UPDATABLE_FIELDS = {
        "first_name",
        "last_name",
        "email",
        "phone",
        "birth_date",
        "metadata",
    }

    def __init__(self, config: ConfigStore, ledger: PointsLedger):
        self.config = config
        self.ledger = ledger

    @property
    def program(self):
        return self.config.program

    # ======================================================================
    # CORE API
    # ======================================================================

    def enroll(
        self,
        code: str,
        first_name: str,
        last_name: str = "",
        email: str = "",
        phone: str = "",
        birth_date=None,
        metadata: dict | None = None,
        created_by: str = "",
    ) -> Customer:
        """
        Enroll a customer at the base tier.

        The welcome bonus (if configured) is appended in the same
        transaction as the customer row. Idempotent: an existing code is
        returned unchanged and earns no second bonus.

        Returns:
            Customer (created or existing)
        """
        existing = Customer.objects.filter(program=self.program, code=code).first()
        if existing:
            return existing

        config = self.config.get()

        with atomic_unit("directory.enroll", customer_code=code):
            customer = Customer.objects.create(
                program=self.program,
                code=code,
                first_name=first_name,
                last_name=last_name,
                email=email.lower().strip(),
                phone=phone,
                birth_date=birth_date,
                metadata=metadata or {},
                tier=config.base_tier,
            )
            if config.welcome_bonus_points > 0:
                self.ledger.append_locked(
                    customer,
                    EntryKind.BONUS,
                    config.welcome_bonus_points,
                    description="Welcome bonus for new customer",
                    created_by=created_by,
                    config=config,
                )

        logger.info("Customer enrolled: %s (%s)", code, self.program.code)
        customer_enrolled.send(
            sender=Customer,
            customer=customer,
            message=f"{customer.name} joined the loyalty program",
        )
        return customer

    def record_purchase(
        self,
        code: str,
        invoice_ref: str,
        amount,
        created_by: str = "",
        now: datetime | None = None,
    ) -> PointsEntry | None:
        """
        Award points for a completed sale.

        points = floor(amount * earning_rate * multiplier(current tier)).
        Spend, visits, last visit and tier are updated in the same
        transaction as the earned entry.

        Args:
            code: Customer code
            invoice_ref: Invoice identifier
            amount: Invoice amount (>= 0)
            created_by: Actor recorded on the entry
            now: Purchase time (defaults to timezone.now())

        Returns:
            Created PointsEntry, or None when the program is disabled

        Raises:
            InvalidAmount: Negative or non-numeric amount
            CustomerNotFound: Unknown or inactive customer
            PersistenceFailure: Storage fault (nothing applied)
        """
        amount = _to_amount(amount)
        config = self.config.get()
        if not config.is_enabled:
            logger.info("Loyalty disabled for %s, purchase %s ignored", self.program.code, invoice_ref)
            return None

        now = now or timezone.now()

        with atomic_unit("directory.record_purchase", customer_code=code, invoice_ref=invoice_ref):
            customer = self.ledger.lock_customer(code)
            points = points_for_amount(amount, config, customer.tier)

            entry = self.ledger.append_locked(
                customer,
                EntryKind.EARNED,
                points,
                description=f"Points earned for purchase {invoice_ref}",
                invoice_ref=invoice_ref,
                invoice_amount=amount,
                created_by=created_by,
                now=now,
                config=config,
            )

            old_tier = customer.tier
            customer.total_spent += amount
            customer.total_visits += 1
            customer.last_visit_at = now
            customer.tier = tier_for(customer.total_spent, config)
            customer.save(
                update_fields=[
                    "total_spent",
                    "total_visits",
                    "last_visit_at",
                    "tier",
                    "updated_at",
                ]
            )

        logger.info(
            "Purchase %s recorded for %s: %s -> %d points",
            invoice_ref,
            code,
            amount,
            points,
        )
        points_earned.send(
            sender=Customer,
            customer=customer,
            entry=entry,
            message=f"{points} points earned for purchase {invoice_ref}",
        )
        if customer.tier != old_tier:
            logger.info("Tier changed for %s: %s -> %s", code, old_tier, customer.tier)
            tier_changed.send(
                sender=Customer,
                customer=customer,
                old_tier=old_tier,
                new_tier=customer.tier,
                message=f"{customer.name} reached {LoyaltyTier(customer.tier).label} tier",
            )
        return entry

    def points_for_purchase(self, code: str, amount) -> int:
        """Points a purchase of `amount` would earn right now (no side effects)."""
        customer = self.require(code)
        return points_for_amount(_to_amount(amount), self.config.get(), customer.tier)

    def max_redeemable_for(self, code: str, bill_amount) -> int:
        """
        Upper bound of points usable on a bill.

        min(balance, floor(bill * max_pct / 100 / redemption_rate)).
        A zero redemption rate means points carry no cash value: 0.
        """
        bill = _to_amount(bill_amount)
        config = self.config.get()
        customer = self.require(code)

        if config.redemption_rate <= 0:
            return 0

        max_value = bill * config.maximum_redemption_percentage / Decimal(100)
        max_points = int(
            (max_value / config.redemption_rate).to_integral_value(rounding=ROUND_FLOOR)
        )
        return min(customer.points_balance, max_points)

    # ======================================================================
    # CONVENIENCE API
    # ======================================================================

    def get(self, code: str) -> Customer | None:
        """Active customer by code, or None."""
        try:
            return Customer.objects.get(program=self.program, code=code, is_active=True)
        except Customer.DoesNotExist:
            return None

    def require(self, code: str) -> Customer:
        """Active customer by code, or CustomerNotFound."""
        customer = self.get(code)
        if customer is None:
            raise CustomerNotFound(customer_code=code)
        return customer

    def list_customers(self) -> list[Customer]:
        """Active customers, highest lifetime spend first."""
        return list(
            Customer.objects.filter(program=self.program, is_active=True).order_by(
                "-total_spent", "code"
            )
        )

    def top_customers(self, limit: int = 10) -> list[Customer]:
        return self.list_customers()[:limit]

    def by_tier(self, tier: str) -> list[Customer]:
        return list(
            Customer.objects.filter(program=self.program, is_active=True, tier=tier).order_by(
                "-total_spent", "code"
            )
        )

    def update_profile(self, code: str, **fields) -> Customer:
        """Update profile fields (only whitelisted fields are accepted)."""
        customer = self.require(code)

        changes = {}
        for key, value in fields.items():
            if key not in self.UPDATABLE_FIELDS:
                continue
            old_value = getattr(customer, key)
            if old_value != value:
                changes[key] = {"old": old_value, "new": value}
            setattr(customer, key, value)

        if changes:
            customer.save(update_fields=[*changes, "updated_at"])
            customer_updated.send(
                sender=Customer,
                customer=customer,
                changes=changes,
                message=f"Profile updated for {customer.name}",
            )
        return customer

    def deactivate(self, code: str) -> Customer:
        """Deactivate a member. Ledger and counters are kept."""
        customer = self.require(code)
        customer.is_active = False
        customer.save(update_fields=["is_active", "updated_at"])
        logger.info("Customer deactivated: %s", code)
        customer_updated.send(
            sender=Customer,
            customer=customer,
            changes={"is_active": {"old": True, "new": False}},
            message=f"{customer.name} left the loyalty program",
        )
        return customer

    def stats(self, now: datetime | None = None) -> ProgramStats:
        """Membership totals, activity and tier distribution."""
        now = now or timezone.now()
        active_since = now - timedelta(days=loyalman_settings.ACTIVE_CUSTOMER_DAYS)
        qs = Customer.objects.filter(program=self.program, is_active=True)

        totals = qs.aggregate(
            customers=Count("id"),
            issued=Sum("total_points_earned"),
            redeemed=Sum("total_points_redeemed"),
            average=Avg("total_points_earned"),
        )
        distribution = {tier: 0 for tier in LoyaltyTier.values}
        for row in qs.values("tier").annotate(n=Count("id")):
            distribution[row["tier"]] = row["n"]

        return ProgramStats(
            total_customers=totals["customers"],
            active_customers=qs.filter(last_visit_at__gt=active_since).count(),
            total_points_issued=totals["issued"] or 0,
            total_points_redeemed=totals["redeemed"] or 0,
            average_points_per_customer=Decimal(str(totals["average"] or 0)),
            tier_distribution=distribution,
        )
