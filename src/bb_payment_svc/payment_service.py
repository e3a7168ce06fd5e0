import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from bb_payment_svc.config import get_settings
from bb_payment_svc.mercadopago_integration import MercadoPagoIntegration
from bb_payment_svc.models.payment import (
    PAYMENT_APPROVED,
    PAYMENT_METHOD_MERCADO_PAGO,
    PAYMENT_PENDING,
    PAYMENT_REJECTED,
    Payment,
)
from bb_payment_svc.models.plan import Plan
from bb_payment_svc.schemas import PlanIn, UserIn
from bb_payment_svc.subscription_activator import activate_subscription

# Mercado Pago statuses that end a checkout attempt
_PROVIDER_STATUS_MAP = {
    'approved': PAYMENT_APPROVED,
    'rejected': PAYMENT_REJECTED,
    'cancelled': PAYMENT_REJECTED,
    'refunded': PAYMENT_REJECTED,
    'charged_back': PAYMENT_REJECTED,
}


class PaymentNotFoundError(LookupError):
    pass


class PlanNotFoundError(ValueError):
    pass


def map_provider_status(provider_status: Optional[str]) -> str:
    """Translate a Mercado Pago payment status to a local one. Unknown and in-flight statuses stay pending."""
    return _PROVIDER_STATUS_MAP.get((provider_status or '').lower(), PAYMENT_PENDING)


def create_payment(
    db: Session,
    gateway: MercadoPagoIntegration,
    plan: PlanIn,
    user: UserIn,
) -> Tuple[Dict[str, Any], Payment]:
    """
    Create a hosted checkout preference and the pending payment that tracks it.

    :param db: SQLAlchemy Session instance.
    :param gateway: Mercado Pago gateway.
    :param plan: The plan being purchased. Only its id is trusted; price and names come from the plans table.
    :param user: The buyer.
    :return: The created preference and payment.
    :raises PlanNotFoundError: if the plan id is unknown. No preference is created in that case.
    :raises MercadoPagoError: if the preference cannot be created. Nothing is stored in that case.
    """
    if plan is None or user is None:
        raise ValueError('Plan and user are required')

    stored = db.get(Plan, plan.id)
    if stored is None:
        raise PlanNotFoundError(f"Plan not found: {plan.id}")
    if plan.price != stored.price:
        logging.warning(f"Requested price {plan.price} for plan {stored.id} ignored; charging {stored.price}.")
    plan = PlanIn(
        id=stored.id,
        name=stored.name,
        display_name=stored.display_name,
        price=stored.price,
        max_ads=stored.max_ads,
    )

    preference = gateway.create_preference(plan, user)

    payment = Payment(
        user_id=user.id,
        plan_id=stored.id,
        amount=stored.price,
        currency=get_settings().currency_id,
        status=PAYMENT_PENDING,
        payment_method=PAYMENT_METHOD_MERCADO_PAGO,
        mercado_pago_preference_id=preference.get('id'),
        description=f"Plano {plan.display_name} - {plan.name or plan.id}",
    )
    db.add(payment)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        # The preference already exists at Mercado Pago without a tracking row
        logging.error(f"Failed to register payment for preference {preference.get('id')}: {e}", exc_info=True)
        raise
    db.refresh(payment)
    logging.info(f"Payment {payment.id} registered as pending for preference {payment.mercado_pago_preference_id}.")
    return preference, payment


def find_payment(
    db: Session,
    payment_id: Optional[str] = None,
    preference_id: Optional[str] = None,
    allow_latest_pending: bool = False,
) -> Payment:
    """
    Resolve a payment by internal id, then by preference id, then (debug only)
    the most recently created pending payment.
    """
    payment = None
    if payment_id:
        payment = db.get(Payment, payment_id)
    if payment is None and preference_id:
        payment = (
            db.query(Payment)
            .filter(Payment.mercado_pago_preference_id == preference_id)
            .order_by(Payment.created_at.desc())
            .first()
        )
    if payment is None and allow_latest_pending:
        payment = (
            db.query(Payment)
            .filter(Payment.status == PAYMENT_PENDING)
            .order_by(Payment.created_at.desc())
            .first()
        )
        if payment is not None:
            logging.info(f"Payment {payment.id} resolved as latest pending payment.")
    if payment is None:
        raise PaymentNotFoundError(f"Payment not found (paymentId={payment_id}, preferenceId={preference_id})")
    return payment


def check_payment_status(
    db: Session,
    gateway: MercadoPagoIntegration,
    payment_id: Optional[str] = None,
    preference_id: Optional[str] = None,
    allow_latest_pending: bool = False,
) -> Payment:
    """
    Return the payment, reconciling it with Mercado Pago first when it is
    still pending but already has a Mercado Pago payment attached.

    :raises PaymentNotFoundError: if no payment matches.
    :raises MercadoPagoError: if the reconciliation request fails.
    """
    payment = find_payment(db, payment_id, preference_id, allow_latest_pending)

    if payment.status == PAYMENT_PENDING and payment.mercado_pago_payment_id:
        provider_payment = gateway.get_payment(payment.mercado_pago_payment_id)
        provider_status = provider_payment.get('status')
        if map_provider_status(provider_status) != payment.status:
            logging.info(f"Payment {payment.id} reconciled with Mercado Pago status {provider_status}.")
            settle_payment(db, payment, provider_status, payment.mercado_pago_payment_id)
    return payment


def settle_payment(
    db: Session,
    payment: Payment,
    provider_status: Optional[str],
    provider_payment_id: Optional[str],
) -> bool:
    """
    Apply a Mercado Pago status to a pending payment.

    The transition is a conditional update on status = 'pending', so among
    concurrent callers only one moves the payment. An approval activates the
    subscription in the same transaction; on any failure everything is rolled
    back and the payment stays pending.

    :param db: SQLAlchemy Session instance.
    :param payment: The payment to settle.
    :param provider_status: Status reported by Mercado Pago.
    :param provider_payment_id: Payment id assigned by Mercado Pago.
    :return: True if this call moved the payment to a terminal status.
    """
    new_status = map_provider_status(provider_status)
    now = datetime.now(timezone.utc)
    values = {'updated_at': now}
    if provider_payment_id:
        values['mercado_pago_payment_id'] = str(provider_payment_id)
    if new_status != PAYMENT_PENDING:
        values['status'] = new_status

    try:
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PAYMENT_PENDING)
            .values(**values)
            .execution_options(synchronize_session='evaluate')
        )
        if result.rowcount != 1:
            db.rollback()
            logging.info(f"Payment {payment.id} already resolved, ignoring status {provider_status}.")
            return False

        if new_status == PAYMENT_APPROVED:
            activate_subscription(db, payment.user_id, payment.plan_id, payment.id, commit=False, now=now)
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Failed to settle payment {payment.id} with status {provider_status}: {e}", exc_info=True)
        raise

    db.refresh(payment)
    if new_status == PAYMENT_PENDING:
        logging.info(f"Payment {payment.id} still pending (Mercado Pago status {provider_status}).")
        return False
    logging.info(f"Payment {payment.id} set to {new_status}.")
    return True


def list_user_payments(db: Session, user_id: str) -> List[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.user_id == user_id)
        .order_by(Payment.created_at.desc())
        .all()
    )
