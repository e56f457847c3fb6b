"""
Trial Router - post-sign-in routing gate and read-only trial status
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, get_session_token
from database import get_db
from database_models import User
from services.entitlement_service import has_active_subscription
from services.gate_service import GateFault, TrialGateService
from services.trial_service import DASHBOARD_ROUTE, TrialService
from utils.client_origin import get_client_ip
from utils.responses import error_response

logger = logging.getLogger(__name__)

trial_router = APIRouter(tags=["trial"])

FAULT_RESPONSES = {
    GateFault.UNAUTHENTICATED: (401, "Unauthorized"),
    GateFault.USER_NOT_FOUND: (404, "User not found"),
    GateFault.UNEXPECTED: (500, "Internal server error"),
}


@trial_router.post("/api/auth/trial-redirect")
async def trial_redirect(
    request: Request,
    token: Optional[str] = Depends(get_session_token),
    db: AsyncSession = Depends(get_db)
):
    """
    Decide where a freshly signed-in user goes.

    Returns:
        {"redirectTo": "/dashboard"} for active subscribers,
        {"redirectTo": "/dashboard", "message": ..., "isTrial": true} when the
        free trial is granted (and recorded) for this email and IP,
        {"redirectTo": "/subscription", "message": ..., "isTrial": false} when
        the trial was already used from this IP
    """
    result = await TrialGateService(db).check(token, request.headers)
    if result.is_error:
        status, error = FAULT_RESPONSES[result.fault]
        return error_response(error, status)
    return result.to_payload()


@trial_router.get("/api/user/trial-status")
async def trial_status(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Read-only trial status for the caller at its current IP. Never records a trial."""
    ip_address = get_client_ip(request.headers)
    # Read before the ledger call; a ledger fault rolls back and expires the user row
    is_subscribed = has_active_subscription(user)
    status = await TrialService(db).get_trial_status(user.email, ip_address)
    return {
        "hasUsedTrial": status.has_used_trial,
        "canUseTrial": status.can_use_trial and not is_subscribed,
        "redirectTo": DASHBOARD_ROUTE if is_subscribed else status.redirect_to,
        "isTrial": status.has_used_trial and not is_subscribed,
        "isSubscribed": is_subscribed,
    }
