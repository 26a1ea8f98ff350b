"""Redemption workflow: request, approve and cancel.

    pending --approve--> approved   (points deducted, terminal)
    pending --cancel---> cancelled  (no ledger effect, terminal)

Points are not reserved while a request is pending. The balance check at
approval, taken under the customer row lock, is the correctness boundary:
two approvals that together exceed the balance are serialized by that
lock and the second one fails with InsufficientPoints.
"""

import logging
from datetime import datetime
from decimal import Decimal

from django.db.models import F, Q
from django.utils import timezone

from loyalman.db import atomic_unit
from loyalman.exceptions import (
    InvalidPoints,
    InvalidRedemption,
    RequestNotFound,
    RewardIneligible,
)
from loyalman.gates import Gates
from loyalman.models import (
    EntryKind,
    RedemptionRequest,
    RedemptionStatus,
    RedemptionType,
    Reward,
)
from loyalman.services.catalog import RewardCatalog
from loyalman.services.config import ConfigStore
from loyalman.services.directory import CustomerDirectory
from loyalman.services.ledger import PointsLedger
from loyalman.signals import (
    redemption_approved,
    redemption_cancelled,
    redemption_requested,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class RedemptionWorkflow:
    """Two-phase redemption for one program."""

    def __init__(
        self,
        config: ConfigStore,
        ledger: PointsLedger,
        directory: CustomerDirectory,
        catalog: RewardCatalog,
    ):
        self.config = config
        self.ledger = ledger
        self.directory = directory
        self.catalog = catalog

    @property
    def program(self):
        return self.config.program

    def request(
        self,
        customer_code: str,
        points: int,
        redemption_type: str | None = None,
        reward_code: str | None = None,
        invoice_ref: str = "",
        now: datetime | None = None,
    ) -> RedemptionRequest:
        """
        Open a pending redemption request.

        Checks, in order: balance, program minimum, then reward eligibility
        (active, window, usage, tier, points >= cost). The type defaults to
        reward_redemption when a reward is given, cash_discount otherwise.

        Returns:
            RedemptionRequest in pending state

        Raises:
            InvalidPoints: points is not a positive integer
            CustomerNotFound: Unknown or inactive customer
            InsufficientPoints: points > current balance
            BelowMinimum: points < minimum_points_to_redeem
            RewardNotFound / RewardIneligible: Reward checks failed
            InvalidRedemption: redemption_type disagrees with reward_code
        """
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise InvalidPoints(points=points)

        expected_type = (
            RedemptionType.REWARD_REDEMPTION if reward_code else RedemptionType.CASH_DISCOUNT
        )
        if redemption_type is not None and redemption_type != expected_type:
            raise InvalidRedemption(
                redemption_type=redemption_type,
                reward_code=reward_code,
            )

        now = now or timezone.now()
        config = self.config.get()
        customer = self.directory.require(customer_code)

        Gates.sufficient_balance(customer.points_balance, points)
        Gates.minimum_redeemable(points, config.minimum_points_to_redeem)

        reward = None
        if reward_code:
            reward = self.catalog.require(reward_code)
            Gates.reward_eligibility(reward, customer.tier, now, points=points)

        cash_value = (Decimal(points) * config.redemption_rate).quantize(CENT)

        with atomic_unit("redemption.request", customer_code=customer_code):
            request = RedemptionRequest.objects.create(
                program=self.program,
                customer=customer,
                reward=reward,
                points=points,
                cash_value=cash_value,
                redemption_type=expected_type,
                invoice_ref=invoice_ref,
                created_at=now,
            )

        logger.info(
            "Redemption #%s requested by %s: %d points (%s)",
            request.pk,
            customer_code,
            points,
            expected_type,
        )
        redemption_requested.send(
            sender=RedemptionRequest,
            request=request,
            message=f"{customer.name} requested to redeem {points} points",
        )
        return request

    def approve(
        self,
        request_id: int,
        approver: str,
        now: datetime | None = None,
    ) -> RedemptionRequest:
        """
        Approve a pending request and deduct the points.

        Locks request, customer and reward (in that order), re-validates
        balance and reward eligibility, appends the redeemed entry, bumps
        reward usage and marks the request approved, all in one transaction.
        The caller is responsible for authorizing `approver`.

        Raises:
            RequestNotFound: Unknown request
            RequestNotPending: Already approved or cancelled
            InsufficientPoints: Balance dropped below the requested points
            RewardIneligible: Reward no longer redeemable
            PersistenceFailure: Storage fault (nothing applied)
        """
        now = now or timezone.now()
        config = self.config.get()

        with atomic_unit("redemption.approve", request_id=request_id):
            request = self._lock_request(request_id)
            Gates.request_pending(request)

            customer = self.ledger.lock_customer_by_pk(request.customer_id)
            Gates.sufficient_balance(customer.points_balance, request.points)

            reward = None
            if request.reward_id:
                reward = Reward.objects.select_for_update().get(pk=request.reward_id)
                Gates.reward_eligibility(reward, customer.tier, now)

            if reward is None:
                description = "Points redeemed for cash discount"
            else:
                description = f"Points redeemed for reward: {reward.title}"

            entry = self.ledger.append_locked(
                customer,
                EntryKind.REDEEMED,
                -request.points,
                description=description,
                invoice_ref=request.invoice_ref,
                created_by=approver,
                now=now,
                config=config,
            )

            if reward is not None:
                updated = (
                    Reward.objects.filter(pk=reward.pk)
                    .filter(Q(usage_limit__isnull=True) | Q(usage_count__lt=F("usage_limit")))
                    .update(usage_count=F("usage_count") + 1)
                )
                if not updated:
                    raise RewardIneligible(reason="usage_exhausted", reward_code=reward.code)

            request.status = RedemptionStatus.APPROVED
            request.approved_at = now
            request.approved_by = approver
            request.ledger_entry = entry
            request.save(update_fields=["status", "approved_at", "approved_by", "ledger_entry"])

        logger.info(
            "Redemption #%s approved by %s: %d points from %s (balance %d)",
            request.pk,
            approver,
            request.points,
            customer.code,
            entry.balance_after,
        )
        redemption_approved.send(
            sender=RedemptionRequest,
            request=request,
            entry=entry,
            message=description,
        )
        return request

    def cancel(
        self,
        request_id: int,
        cancelled_by: str = "",
        now: datetime | None = None,
    ) -> RedemptionRequest:
        """
        Cancel a pending request. Nothing was deducted, so no ledger entry.

        Raises:
            RequestNotFound: Unknown request
            RequestNotPending: Already approved or cancelled
        """
        now = now or timezone.now()

        with atomic_unit("redemption.cancel", request_id=request_id):
            request = self._lock_request(request_id)
            Gates.request_pending(request)

            request.status = RedemptionStatus.CANCELLED
            request.cancelled_at = now
            request.cancelled_by = cancelled_by
            request.save(update_fields=["status", "cancelled_at", "cancelled_by"])

        logger.info("Redemption #%s cancelled by %s", request.pk, cancelled_by or "-")
        redemption_cancelled.send(
            sender=RedemptionRequest,
            request=request,
            message=f"Redemption of {request.points} points cancelled",
        )
        return request

    def get(self, request_id: int) -> RedemptionRequest:
        try:
            return RedemptionRequest.objects.select_related("customer", "reward").get(
                program=self.program, pk=request_id
            )
        except RedemptionRequest.DoesNotExist:
            raise RequestNotFound(request_id=request_id)

    def list_requests(self, status: str | None = None) -> list[RedemptionRequest]:
        """Requests of this program, newest first, optionally by status."""
        qs = RedemptionRequest.objects.filter(program=self.program).select_related(
            "customer", "reward"
        )
        if status:
            qs = qs.filter(status=status)
        return list(qs.order_by("-created_at", "-id"))

    def _lock_request(self, request_id: int) -> RedemptionRequest:
        """Request row with lock. MUST be called inside transaction.atomic()."""
        try:
            return RedemptionRequest.objects.select_for_update().get(
                program=self.program, pk=request_id
            )
        except RedemptionRequest.DoesNotExist:
            raise RequestNotFound(request_id=request_id)
