"""
Billing Router - Stripe webhook endpoint
"""

import logging
from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import stripe

from config import settings
from database import get_db
from services.billing_service import BillingService
from utils.responses import error_response

logger = logging.getLogger(__name__)

# Create billing router
billing_router = APIRouter(prefix="/api/webhooks", tags=["billing"])


@billing_router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events with signature verification.

    Only verified events are processed. Verification problems answer 400 so
    Stripe surfaces them in the dashboard; a processing fault answers 500 so
    Stripe retries the delivery.
    """
    webhook_secret = settings.stripe_webhook_secret
    stripe_signature = request.headers.get("stripe-signature")

    if not stripe_signature or not webhook_secret:
        logger.error("Stripe webhook rejected: missing signature header or STRIPE_WEBHOOK_SECRET")
        return error_response("Missing signature or webhook secret", 400)

    # Raw body is required for signature verification
    payload = await request.body()

    try:
        event = stripe.Webhook.construct_event(
            payload,
            stripe_signature,
            webhook_secret
        )
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.error(f"Webhook signature verification failed: {e}")
        return error_response("Webhook signature verification failed", 400)

    result = await BillingService(db).process_webhook(event)
    if result.get("is_error"):
        return error_response("Webhook handler error", 500)

    return JSONResponse(content={"received": True})
