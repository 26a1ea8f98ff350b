"""
Loyalman signals: public event API.

Every signal carries a human-readable `message` kwarg that receivers may
forward to a notification channel. Signals are sent once the operation's
own atomic block has exited. Under an outer transaction.atomic() of the
caller that is before the outer commit, so receivers with external side
effects should defer them with transaction.on_commit(). Receivers return
nothing the engine consumes.

Emitted signals:
- customer_enrolled: CustomerDirectory.enroll()
- customer_updated: CustomerDirectory.update_profile() / deactivate()
- points_earned: CustomerDirectory.record_purchase()
- points_adjusted: PointsLedger.adjust()
- points_expired: ExpiryReaper.sweep(), once per customer
- tier_changed: CustomerDirectory.record_purchase() when the tier moves
- redemption_requested / redemption_approved / redemption_cancelled:
  RedemptionWorkflow
"""

from django.dispatch import Signal

# Customer signals
customer_enrolled = Signal()  # sender=Customer, customer, message
customer_updated = Signal()  # sender=Customer, customer, changes=dict, message

# Ledger signals
points_earned = Signal()  # sender=Customer, customer, entry, message
points_adjusted = Signal()  # sender=Customer, customer, entry, message
points_expired = Signal()  # sender=Customer, customer, entries, points, message
tier_changed = Signal()  # sender=Customer, customer, old_tier, new_tier, message

# Redemption signals
redemption_requested = Signal()  # sender=RedemptionRequest, request, message
redemption_approved = Signal()  # sender=RedemptionRequest, request, entry, message
redemption_cancelled = Signal()  # sender=RedemptionRequest, request, message
