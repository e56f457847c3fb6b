"""
Trial Service - ledger of consumed free trials, keyed by (email, IP address)
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import TrialRecord

logger = logging.getLogger(__name__)

DASHBOARD_ROUTE = "/dashboard"
SUBSCRIPTION_ROUTE = "/subscription"


@dataclass(frozen=True)
class TrialStatus:
    has_used_trial: bool
    can_use_trial: bool
    redirect_to: str


class TrialService:
    """
    Service for the free-trial ledger.

    At most one TrialRecord exists per (lower-cased email, IP address). The
    store's unique constraint enforces that; writes are upserts so a writer
    losing an insert race still succeeds.

    Storage faults never escape this class:
    - reads fail open (report "not used")
    - writes are logged and dropped
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the trial service with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def has_used_trial(self, email: str, ip_address: str) -> bool:
        """
        Check whether a trial was already consumed for this email and IP.

        Args:
            email: Email address (matched case-insensitively)
            ip_address: Client IP the trial is scoped to

        Returns:
            True if a record exists, False otherwise or on storage error
        """
        try:
            result = await self.db.execute(
                select(TrialRecord.id).where(
                    TrialRecord.email == email.lower(),
                    TrialRecord.ip_address == ip_address,
                )
            )
            return result.first() is not None
        except SQLAlchemyError as e:
            logger.error(f"Error checking trial usage for {email.lower()} @ {ip_address}: {e}")
            await self.db.rollback()
            return False

    async def mark_trial_used(self, email: str, ip_address: str, user_id: Optional[str] = None) -> None:
        """
        Record trial consumption for this email and IP.

        Inserts a new record, or refreshes user_id and used_at on the existing
        one. The write is committed before returning so callers can report
        the grant only once it is durable.

        Args:
            email: Email address (stored lower-cased)
            ip_address: Client IP the trial is scoped to
            user_id: Owning user, if known
        """
        now = datetime.utcnow()
        try:
            stmt = self._insert().values(
                email=email.lower(),
                ip_address=ip_address,
                user_id=user_id,
                used_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[TrialRecord.email, TrialRecord.ip_address],
                set_={"user_id": user_id, "used_at": now},
            )
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error creating trial for {email.lower()} @ {ip_address}: {e}")
            await self.db.rollback()

    async def get_trial_status(self, email: str, ip_address: str) -> TrialStatus:
        has_used = await self.has_used_trial(email, ip_address)
        return TrialStatus(
            has_used_trial=has_used,
            can_use_trial=not has_used,
            redirect_to=SUBSCRIPTION_ROUTE if has_used else DASHBOARD_ROUTE,
        )

    def _insert(self):
        # ON CONFLICT needs the dialect-specific insert construct
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(TrialRecord)
        return sqlite.insert(TrialRecord)
