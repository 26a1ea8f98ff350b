"""Expiry reaper: compensating entries for aged point grants.

Consumption policy is FIFO by grant age: every debit (redemption, negative
adjustment) eats the oldest unspent points first. An expired entry points
at the grant it compensates (source_entry) and only removes what is left
of that grant, so a partially redeemed grant expires only its remainder.

Every aged grant the sweep handles gets an ExpiredGrant checkpoint, also
when it was fully spent and nothing expires, so a grant is looked at
once. That makes sweeps idempotent and keeps their cost proportional to
newly aged grants.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Iterable

from django.utils import timezone

from loyalman.db import atomic_unit
from loyalman.models import Customer, EntryKind, ExpiredGrant, GRANT_KINDS, PointsEntry
from loyalman.services.config import ConfigStore
from loyalman.services.ledger import PointsLedger
from loyalman.signals import points_expired

logger = logging.getLogger(__name__)


def remaining_by_grant(entries: Iterable[PointsEntry]) -> dict[int, int]:
    """
    Replay a customer's ledger (oldest first) and return the unspent
    remainder of every positive entry, keyed by entry id.

    Expired entries draw from their own source grant; any other debit
    draws from the oldest lots with points left.
    """
    lots: OrderedDict[int, int] = OrderedDict()

    for entry in entries:
        if entry.points > 0:
            lots[entry.pk] = entry.points
            continue

        debit = -entry.points
        if entry.kind == EntryKind.EXPIRED and entry.source_entry_id in lots:
            taken = min(debit, lots[entry.source_entry_id])
            lots[entry.source_entry_id] -= taken
            debit -= taken

        for lot_id, left in lots.items():
            if debit <= 0:
                break
            taken = min(debit, left)
            lots[lot_id] = left - taken
            debit -= taken

    return dict(lots)


class ExpiryReaper:
    """Periodic sweep that expires unspent points past their expiry date."""

    def __init__(self, config: ConfigStore, ledger: PointsLedger):
        self.config = config
        self.ledger = ledger

    @property
    def program(self):
        return self.config.program

    def pending_customer_ids(self, now: datetime) -> list[int]:
        """Customers holding at least one aged grant without a checkpoint."""
        return list(
            PointsEntry.objects.filter(
                customer__program=self.program,
                kind__in=GRANT_KINDS,
                expires_at__lt=now,
                expiry__isnull=True,
                compensations__isnull=True,
            )
            .order_by()
            .values_list("customer_id", flat=True)
            .distinct()
        )

    def sweep(self, now: datetime | None = None) -> int:
        """
        Expire every aged grant of the program.

        Each customer is processed in its own transaction, so an
        interrupted sweep leaves finished customers committed and the
        rest is picked up by the next run.

        Returns:
            Total points expired
        """
        now = now or timezone.now()
        total = 0
        customers = 0

        for customer_id in self.pending_customer_ids(now):
            expired = self.expire_customer(customer_id, now)
            if expired:
                total += expired
                customers += 1

        logger.info(
            "Expiry sweep for %s: %d points expired across %d customers",
            self.program.code,
            total,
            customers,
        )
        return total

    def expire_customer(self, customer_id: int, now: datetime) -> int:
        """Expire one customer's aged grants. Returns points expired."""
        config = self.config.get()

        with atomic_unit("expiry.expire_customer", customer_id=customer_id):
            customer = self.ledger.lock_customer_by_pk(customer_id, active_only=False)
            history = list(
                PointsEntry.objects.filter(customer=customer).order_by("created_at", "id")
            )
            handled = {
                entry.source_entry_id
                for entry in history
                if entry.kind == EntryKind.EXPIRED and entry.source_entry_id
            }
            handled.update(
                ExpiredGrant.objects.filter(grant__customer=customer).values_list(
                    "grant_id", flat=True
                )
            )
            remainders = remaining_by_grant(history)

            written = []
            checkpoints = []
            for grant in history:
                if (
                    grant.kind not in GRANT_KINDS
                    or grant.expires_at is None
                    or grant.expires_at >= now
                    or grant.pk in handled
                ):
                    continue

                amount = max(min(remainders.get(grant.pk, 0), customer.points_balance), 0)
                checkpoints.append(ExpiredGrant(grant=grant, points=amount, processed_at=now))
                if not amount:
                    continue

                written.append(
                    self.ledger.append_locked(
                        customer,
                        EntryKind.EXPIRED,
                        -amount,
                        description=f"Points expired (granted {grant.created_at:%Y-%m-%d})",
                        source_entry=grant,
                        now=now,
                        config=config,
                    )
                )

            ExpiredGrant.objects.bulk_create(checkpoints)

        expired = sum(-entry.points for entry in written)
        if written:
            logger.info("Expired %d points for %s", expired, customer.code)
            points_expired.send(
                sender=Customer,
                customer=customer,
                entries=written,
                points=expired,
                message=f"{expired} points expired",
            )
        return expired
