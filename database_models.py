import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """
    Account record. Email is stored lower-cased and is unique.
    The stripe_* columns mirror the subscription state pushed by Stripe
    webhooks; they are cleared when the subscription is deleted.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)

    stripe_customer_id = Column(String, unique=True, nullable=True)
    stripe_subscription_id = Column(String, unique=True, nullable=True, index=True)
    stripe_price_id = Column(String, nullable=True)
    stripe_current_period_end = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class TrialRecord(Base):
    """
    One consumed free trial per (email, ip_address) pair.
    The unique constraint is what keeps concurrent first-use requests from
    inserting twice; writes go through an upsert on that key.
    """
    __tablename__ = "trials"
    __table_args__ = (
        UniqueConstraint("email", "ip_address", name="trials_email_ip_address_key"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, nullable=False, index=True)
    ip_address = Column(String, nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    used_at = Column(DateTime, default=datetime.utcnow, nullable=False)
