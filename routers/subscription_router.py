"""
Subscription Router - Stripe checkout and subscription status for the signed-in user
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from database import get_db
from database_models import User
from services.billing_service import BillingService
from utils.responses import error_response

logger = logging.getLogger(__name__)

subscription_router = APIRouter(prefix="/api/subscription", tags=["subscription"])


@subscription_router.post("/checkout")
async def create_checkout_session(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a Stripe Checkout session for the Pro subscription.

    Returns:
        {"sessionId": str, "url": str}
    """
    result = await BillingService(db).create_checkout_session(user)
    if result.get("is_error"):
        return error_response(result.get("error", "Internal server error"), 500)
    return result["data"]


@subscription_router.get("/status")
async def subscription_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Current subscription state: {"isSubscribed", "subscriptionEnd", "priceId"}"""
    return BillingService(db).get_subscription_status(user)
