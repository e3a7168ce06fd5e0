import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String

from bb_payment_svc.models.base import Base

SUBSCRIPTION_ACTIVE = 'active'
SUBSCRIPTION_CANCELLED = 'cancelled'


class UserSubscription(Base):
    """
    Subscription row created when a payment is approved. At most one active row per user.
    """
    __tablename__ = 'user_subscriptions'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True)
    plan_id = Column(String(64), ForeignKey('plans.id'), nullable=False)
    status = Column(String(16), nullable=False, default=SUBSCRIPTION_ACTIVE, index=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    payment_id = Column(String(36), ForeignKey('payments.id'), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<UserSubscription(user_id={self.user_id}, plan_id={self.plan_id}, status={self.status})>"
