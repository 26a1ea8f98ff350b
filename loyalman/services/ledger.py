"""Points ledger: append-only entries and the cached balance.

Every write takes the customer row lock (select_for_update) inside
transaction.atomic(), appends the entry and moves Customer.points_balance
by the same delta. Concurrent writes for one customer are serialized by
that lock; different customers never contend.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.db.models import QuerySet, Sum
from django.utils import timezone

from loyalman.conf import loyalman_settings
from loyalman.db import atomic_unit
from loyalman.exceptions import CustomerNotFound, InvalidPoints
from loyalman.gates import Gates
from loyalman.models import Customer, EntryKind, GRANT_KINDS, PointsEntry
from loyalman.services.config import ConfigStore, LoyaltyConfig
from loyalman.signals import points_adjusted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reconciliation:
    """Cached balance vs. ledger sum for one customer."""

    customer_code: str
    cached_balance: int
    ledger_balance: int

    @property
    def is_consistent(self) -> bool:
        return self.cached_balance == self.ledger_balance


def check_points_sign(kind: str, points: int) -> None:
    """
    Validate the sign of `points` for `kind`.

    earned >= 0 (small purchases may earn nothing), bonus > 0,
    redeemed < 0, expired < 0, adjustment != 0.
    """
    if isinstance(points, bool) or not isinstance(points, int):
        raise InvalidPoints(kind=kind, points=points)

    valid = {
        EntryKind.EARNED: points >= 0,
        EntryKind.BONUS: points > 0,
        EntryKind.REDEEMED: points < 0,
        EntryKind.EXPIRED: points < 0,
        EntryKind.ADJUSTMENT: points != 0,
    }.get(kind, False)

    if not valid:
        raise InvalidPoints(kind=kind, points=points)


class PointsLedger:
    """Append-only points ledger for one program."""

    def __init__(self, config: ConfigStore):
        self.config = config

    @property
    def program(self):
        return self.config.program

    # ======================================================================
    # Writes
    # ======================================================================

    def append(
        self,
        customer_code: str,
        kind: str,
        points: int,
        *,
        description: str = "",
        invoice_ref: str = "",
        invoice_amount=None,
        source_entry: PointsEntry | None = None,
        created_by: str = "",
        now: datetime | None = None,
    ) -> PointsEntry:
        """
        Append an entry and move the cached balance, atomically.

        Args:
            customer_code: Customer code
            kind: EntryKind value
            points: Signed delta (sign must match kind)
            description: Human description
            invoice_ref: Linked invoice (purchases)
            invoice_amount: Linked invoice amount
            source_entry: Grant compensated (expired entries)
            created_by: Actor (defaults to SYSTEM_ACTOR)
            now: Entry timestamp (defaults to timezone.now())

        Returns:
            Created PointsEntry

        Raises:
            CustomerNotFound: Unknown or inactive customer
            InvalidPoints: Sign does not match kind
            InsufficientPoints: Balance would go negative
            PersistenceFailure: Storage fault (nothing applied)
        """
        check_points_sign(kind, points)

        with atomic_unit("ledger.append", customer_code=customer_code, kind=kind):
            customer = self.lock_customer(customer_code)
            entry = self.append_locked(
                customer,
                kind,
                points,
                description=description,
                invoice_ref=invoice_ref,
                invoice_amount=invoice_amount,
                source_entry=source_entry,
                created_by=created_by,
                now=now,
            )
        return entry

    def adjust(
        self,
        customer_code: str,
        points: int,
        reason: str,
        created_by: str = "",
    ) -> PointsEntry:
        """Manual correction (positive or negative) by staff."""
        entry = self.append(
            customer_code,
            EntryKind.ADJUSTMENT,
            points,
            description=reason,
            created_by=created_by,
        )
        logger.info(
            "Points adjusted for %s: %+d by %s (%s)",
            customer_code,
            points,
            entry.created_by,
            reason,
        )
        points_adjusted.send(
            sender=Customer,
            customer=entry.customer,
            entry=entry,
            message=f"Points adjusted by {points:+d}: {reason}",
        )
        return entry

    def append_locked(
        self,
        customer: Customer,
        kind: str,
        points: int,
        *,
        description: str = "",
        invoice_ref: str = "",
        invoice_amount=None,
        source_entry: PointsEntry | None = None,
        created_by: str = "",
        now: datetime | None = None,
        config: LoyaltyConfig | None = None,
    ) -> PointsEntry:
        """
        Append for a customer already locked by the caller.

        MUST be called inside transaction.atomic() with `customer` obtained
        from lock_customer() (or created in the same transaction). Lets
        directory and redemption operations fold the ledger write into
        their own atomic unit.
        """
        check_points_sign(kind, points)
        Gates.sufficient_balance(customer.points_balance, -points)

        now = now or timezone.now()
        expires_at = None
        if kind in GRANT_KINDS and points > 0:
            config = config or self.config.get()
            if config.points_expiry_days > 0:
                expires_at = now + timedelta(days=config.points_expiry_days)

        balance_after = customer.points_balance + points
        entry = PointsEntry.objects.create(
            customer=customer,
            kind=kind,
            points=points,
            balance_after=balance_after,
            invoice_ref=invoice_ref,
            invoice_amount=invoice_amount,
            description=str(description or EntryKind(kind).label)[:200],
            expires_at=expires_at,
            source_entry=source_entry,
            created_at=now,
            created_by=created_by or loyalman_settings.SYSTEM_ACTOR,
        )

        customer.points_balance = balance_after
        update_fields = ["points_balance", "updated_at"]
        if kind in GRANT_KINDS:
            customer.total_points_earned += points
            update_fields.append("total_points_earned")
        elif kind == EntryKind.REDEEMED:
            customer.total_points_redeemed += -points
            update_fields.append("total_points_redeemed")
        customer.save(update_fields=update_fields)
        return entry

    # ======================================================================
    # Reads
    # ======================================================================

    def balance_of(self, customer_code: str) -> int:
        """Cached balance (always equal to the ledger sum)."""
        return self.get_customer(customer_code).points_balance

    def history(self, customer_code: str) -> QuerySet:
        """
        Ledger entries for customer, newest first.

        Returns a lazy QuerySet: iterate, slice or filter it; each
        evaluation re-reads the ledger.
        """
        customer = self.get_customer(customer_code)
        return PointsEntry.objects.filter(customer=customer).order_by("-created_at", "-id")

    def reconcile(self, customer_code: str) -> Reconciliation:
        """Compare the cached balance with the sum of ledger entries."""
        customer = self.get_customer(customer_code)
        total = customer.ledger_entries.aggregate(total=Sum("points"))["total"] or 0
        result = Reconciliation(customer.code, customer.points_balance, total)
        if not result.is_consistent:
            logger.warning(
                "Balance mismatch for %s: cached=%s ledger=%s",
                customer.code,
                result.cached_balance,
                result.ledger_balance,
            )
        return result

    # ======================================================================
    # Customer lookup
    # ======================================================================

    def get_customer(self, customer_code: str) -> Customer:
        """Active customer of this program or CustomerNotFound."""
        try:
            return Customer.objects.get(
                program=self.program,
                code=customer_code,
                is_active=True,
            )
        except Customer.DoesNotExist:
            raise CustomerNotFound(customer_code=customer_code)

    def lock_customer(self, customer_code: str) -> Customer:
        """
        Active customer with row-level lock for mutation.

        MUST be called inside transaction.atomic().
        Prevents lost-update race conditions on concurrent earn/redeem/expire.
        """
        try:
            return Customer.objects.select_for_update().get(
                program=self.program,
                code=customer_code,
                is_active=True,
            )
        except Customer.DoesNotExist:
            raise CustomerNotFound(customer_code=customer_code)

    def lock_customer_by_pk(self, customer_id: int, active_only: bool = True) -> Customer:
        """Same as lock_customer(), by primary key."""
        lookup = {"program": self.program, "pk": customer_id}
        if active_only:
            lookup["is_active"] = True
        try:
            return Customer.objects.select_for_update().get(**lookup)
        except Customer.DoesNotExist:
            raise CustomerNotFound(customer_id=customer_id)
