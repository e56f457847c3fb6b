"""
Billing Service - Stripe checkout, subscription status and webhook sync
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import stripe

from config import settings
from crud.user import UserRepository
from database_models import User
from services.entitlement_service import has_active_subscription

logger = logging.getLogger(__name__)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a Stripe object or plain dict."""
    if obj is None:
        return default
    try:
        value = obj[name]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def _period_end(subscription: Any) -> Optional[datetime]:
    # Newer API versions carry the period on the subscription item
    timestamp = _field(subscription, "current_period_end")
    if timestamp is None:
        items = _field(_field(subscription, "items"), "data", [])
        if items:
            timestamp = _field(items[0], "current_period_end")
    if timestamp is None:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).replace(tzinfo=None)


def _price_id(subscription: Any) -> Optional[str]:
    items = _field(_field(subscription, "items"), "data", [])
    if not items:
        return None
    return _field(_field(items[0], "price"), "id")


class BillingService:
    """
    Service class for handling billing-related business logic.
    Stripe is the source of truth for subscriptions; webhooks mirror the
    subscription id, price and current period end onto the User row.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the billing service.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db
        self.user_repo = UserRepository(db)

    def _configure_stripe(self) -> bool:
        if not settings.stripe_secret_key:
            return False
        stripe.api_key = settings.stripe_secret_key
        return True

    async def create_checkout_session(self, user: User):
        """
        Create a subscription-mode Stripe Checkout session for a user.
        Creates and stores the Stripe customer on first checkout.

        Args:
            user: Signed-in User row

        Returns:
            Normalized response: {"data": {"sessionId", "url"}, "is_error": False}
            or {"error": str, "is_error": True}
        """
        if not self._configure_stripe():
            logger.error("STRIPE_SECRET_KEY is not set. Cannot create checkout session.")
            return {"error": "Stripe is not configured", "is_error": True}

        if not settings.stripe_price_id:
            logger.error("STRIPE_PRICE_ID is not set. Cannot create checkout session.")
            return {"error": "Stripe is not configured", "is_error": True}

        try:
            customer_id = user.stripe_customer_id
            if not customer_id:
                customer_params = {"email": user.email}
                if user.name:
                    customer_params["name"] = user.name
                customer = stripe.Customer.create(**customer_params)
                customer_id = customer.id
                await self.user_repo.update_user(user, {"stripe_customer_id": customer_id})
                await self.db.commit()

            app_url = (settings.app_url or "http://localhost:3000").rstrip("/")

            checkout_session = stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[{
                    "price": settings.stripe_price_id,
                    "quantity": 1,
                }],
                mode="subscription",
                success_url=f"{app_url}/dashboard?success=true",
                cancel_url=f"{app_url}/subscription?canceled=true",
                metadata={
                    "userId": user.id
                }
            )

            return {
                "data": {"sessionId": checkout_session.id, "url": checkout_session.url},
                "is_error": False,
            }
        except Exception as e:
            logger.error(f"Failed to create checkout session: {e}", exc_info=True)
            return {"error": "Internal server error", "is_error": True}

    def get_subscription_status(self, user: User) -> dict:
        period_end = user.stripe_current_period_end
        return {
            "isSubscribed": has_active_subscription(user),
            "subscriptionEnd": period_end.isoformat() if period_end else None,
            "priceId": user.stripe_price_id,
        }

    async def process_webhook(self, event):
        """
        Process a verified Stripe webhook event.

        Handled events:
        - checkout.session.completed: attach the new subscription to metadata.userId
        - invoice.payment_succeeded: extend the current period end
        - customer.subscription.deleted: clear the subscription fields

        Returns:
            Normalized response: {"data": True, "is_error": False} or {"error": str(e), "is_error": True}
        """
        try:
            event_type = _field(event, "type")
            obj = _field(_field(event, "data"), "object")
            logger.info(f"Processing Stripe webhook event: {event_type}")

            if event_type == "checkout.session.completed":
                await self._handle_checkout_completed(obj)
            elif event_type == "invoice.payment_succeeded":
                await self._handle_payment_succeeded(obj)
            elif event_type == "customer.subscription.deleted":
                await self._handle_subscription_deleted(obj)
            else:
                logger.info(f"Unhandled event type: {event_type}")

            await self.db.commit()
            return {"data": True, "is_error": False}
        except Exception as e:
            logger.error(f"Error processing webhook: {e}", exc_info=True)
            await self.db.rollback()
            return {"error": str(e), "is_error": True}

    async def _handle_checkout_completed(self, session) -> None:
        subscription_id = _field(session, "subscription")
        if _field(session, "mode") != "subscription" or not subscription_id:
            return

        self._configure_stripe()
        subscription = stripe.Subscription.retrieve(subscription_id)
        user_id = _field(_field(session, "metadata"), "userId")
        if not user_id:
            logger.warning(f"Checkout session for subscription {subscription_id} has no userId metadata")
            return

        user = await self.user_repo.get_user_by_id(user_id)
        if user is None:
            logger.warning(f"Checkout completed for unknown user {user_id}")
            return

        await self.user_repo.update_user(user, {
            "stripe_subscription_id": _field(subscription, "id"),
            "stripe_price_id": _price_id(subscription),
            "stripe_current_period_end": _period_end(subscription),
        })

    async def _handle_payment_succeeded(self, invoice) -> None:
        subscription_id = _field(invoice, "subscription")
        if not subscription_id:
            # Newer API versions nest it under parent.subscription_details
            subscription_id = _field(_field(_field(invoice, "parent"), "subscription_details"), "subscription")
        if not subscription_id:
            return

        self._configure_stripe()
        subscription = stripe.Subscription.retrieve(subscription_id)
        await self.user_repo.update_subscription(_field(subscription, "id"), {
            "stripe_current_period_end": _period_end(subscription),
        })

    async def _handle_subscription_deleted(self, subscription) -> None:
        await self.user_repo.update_subscription(_field(subscription, "id"), {
            "stripe_subscription_id": None,
            "stripe_price_id": None,
            "stripe_current_period_end": None,
        })
