"""
Trial Gate Service - decides where a signed-in user lands after sign-in:
the dashboard (subscriber or fresh trial) or the subscription page.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import resolve_identity
from crud.user import UserRepository
from services.entitlement_service import EntitlementDecision, evaluate
from services.trial_service import TrialService, DASHBOARD_ROUTE, SUBSCRIPTION_ROUTE
from utils.client_origin import get_client_ip

logger = logging.getLogger(__name__)

TRIAL_WELCOME_MESSAGE = "Welcome! You have access to one free project."
TRIAL_USED_MESSAGE = "You've already used your free trial from this location. Subscribe to continue."


class GateFault(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    USER_NOT_FOUND = "user_not_found"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class GateResult:
    """Either a decision with its redirect payload, or a fault. Never both."""
    decision: Optional[EntitlementDecision] = None
    redirect_to: Optional[str] = None
    message: Optional[str] = None
    is_trial: Optional[bool] = None
    fault: Optional[GateFault] = None

    @property
    def is_error(self) -> bool:
        return self.fault is not None

    def to_payload(self) -> dict:
        payload = {"redirectTo": self.redirect_to}
        if self.message is not None:
            payload["message"] = self.message
        if self.is_trial is not None:
            payload["isTrial"] = self.is_trial
        return payload


class TrialGateService:
    """
    Orchestrates identity, user lookup, client IP, trial ledger and
    entitlement evaluation for one request.

    Nothing is retried here. Ledger faults are absorbed by TrialService;
    anything else comes back as GateFault.UNEXPECTED.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)
        self.trial_service = TrialService(db)

    async def check(self, token: Optional[str], headers: Mapping[str, str]) -> GateResult:
        try:
            return await self._check(token, headers)
        except Exception as e:
            logger.error(f"Trial redirect error: {e}", exc_info=True)
            return GateResult(fault=GateFault.UNEXPECTED)

    async def _check(self, token: Optional[str], headers: Mapping[str, str]) -> GateResult:
        identity = resolve_identity(token)
        if identity is None:
            return GateResult(fault=GateFault.UNAUTHENTICATED)

        user = await self.user_repo.get_user_by_email(identity.email)
        if user is None:
            logger.warning(f"Session for {identity.email} has no matching user row")
            return GateResult(fault=GateFault.USER_NOT_FOUND)

        # A ledger fault rolls the session back, which would expire a row still attached to it
        self.db.expunge(user)

        ip_address = get_client_ip(headers)
        has_used = await self.trial_service.has_used_trial(user.email, ip_address)
        decision = evaluate(user, has_used)

        if decision is EntitlementDecision.ACTIVE_SUBSCRIBER:
            return GateResult(decision=decision, redirect_to=DASHBOARD_ROUTE)

        if decision is EntitlementDecision.TRIAL_GRANTED:
            await self.trial_service.mark_trial_used(user.email, ip_address, user.id)
            logger.info(f"Trial granted for {user.email} @ {ip_address}")
            return GateResult(
                decision=decision,
                redirect_to=DASHBOARD_ROUTE,
                message=TRIAL_WELCOME_MESSAGE,
                is_trial=True,
            )

        return GateResult(
            decision=decision,
            redirect_to=SUBSCRIPTION_ROUTE,
            message=TRIAL_USED_MESSAGE,
            is_trial=False,
        )
