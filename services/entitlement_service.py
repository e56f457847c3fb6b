"""
Entitlement decisions: subscriber, free trial, or billing required
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class EntitlementDecision(str, Enum):
    ACTIVE_SUBSCRIBER = "active_subscriber"
    TRIAL_GRANTED = "trial_granted"
    BILLING_REQUIRED = "billing_required"


def utcnow() -> datetime:
    """Naive UTC now, matching how period ends are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def has_active_subscription(user, now: Optional[datetime] = None) -> bool:
    """
    A subscription is active when the user has a Stripe subscription id and a
    period end strictly after now. There is no grace period.

    Args:
        user: Object with stripe_subscription_id and stripe_current_period_end
        now: Reference time (defaults to current UTC time)
    """
    subscription_id = getattr(user, "stripe_subscription_id", None)
    period_end = getattr(user, "stripe_current_period_end", None)
    if not subscription_id or period_end is None:
        return False

    now = _as_naive_utc(now) if now is not None else utcnow()
    return _as_naive_utc(period_end) > now


def evaluate(user, has_used_trial: bool, now: Optional[datetime] = None) -> EntitlementDecision:
    """
    Decide what a signed-in user gets.

    Subscription is checked first. Anyone without an active subscription,
    including lapsed subscribers, falls through to the trial check for the
    current origin.
    """
    if has_active_subscription(user, now):
        return EntitlementDecision.ACTIVE_SUBSCRIBER
    if not has_used_trial:
        return EntitlementDecision.TRIAL_GRANTED
    return EntitlementDecision.BILLING_REQUIRED
