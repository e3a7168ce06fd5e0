import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String

from bb_payment_svc.models.base import Base

PAYMENT_PENDING = 'pending'
PAYMENT_APPROVED = 'approved'
PAYMENT_REJECTED = 'rejected'
TERMINAL_STATUSES = frozenset({PAYMENT_APPROVED, PAYMENT_REJECTED})

PAYMENT_METHOD_MERCADO_PAGO = 'mercado_pago'


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Payment(Base):
    """
    One row per checkout attempt. Status only moves from pending to approved or rejected.
    """
    __tablename__ = 'payments'

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    plan_id = Column(String(64), ForeignKey('plans.id'), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(8), nullable=False, default='BRL')
    status = Column(String(16), nullable=False, default=PAYMENT_PENDING, index=True)
    payment_method = Column(String(32), nullable=False, default=PAYMENT_METHOD_MERCADO_PAGO)
    mercado_pago_preference_id = Column(String(128), nullable=True, index=True)
    mercado_pago_payment_id = Column(String(64), nullable=True)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, user_id={self.user_id}, status={self.status})>"
