import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from bb_payment_svc.mercadopago_integration import MercadoPagoIntegration
from bb_payment_svc.models.payment import PAYMENT_PENDING, Payment
from bb_payment_svc.payment_service import PaymentNotFoundError, map_provider_status, settle_payment

OUTCOME_IGNORED = 'ignored'
OUTCOME_PROCESSED = 'processed'
OUTCOME_ALREADY_PROCESSED = 'already_processed'
OUTCOME_PENDING = 'pending'


@dataclass
class WebhookResult:
    outcome: str
    payment_id: Optional[str] = None
    status: Optional[str] = None


def process_event(event: dict, db: Session, gateway: MercadoPagoIntegration) -> WebhookResult:
    """
    Process a Mercado Pago notification and settle the matching pending payment.

    :param event: Notification body, at minimum {"type": ..., "data": {"id": ...}}.
    :param db: SQLAlchemy Session instance.
    :param gateway: Mercado Pago gateway used to fetch the notified payment.
    :return: The processing outcome.
    :raises ValueError: if the event has no payment id.
    :raises PaymentNotFoundError: if no pending payment matches the notified preference.
    """
    event_type = event.get('type')
    if event_type != 'payment':
        logging.info(f"Webhook ignored, type is not payment: {event_type}")
        return WebhookResult(outcome=OUTCOME_IGNORED)

    mp_payment_id = (event.get('data') or {}).get('id')
    if not mp_payment_id:
        error_msg = "Missing data.id in payment event"
        logging.error(error_msg)
        raise ValueError(error_msg)
    mp_payment_id = str(mp_payment_id)

    mp_payment = gateway.get_payment(mp_payment_id)
    provider_status = mp_payment.get('status')
    preference_id = mp_payment.get('preference_id')
    logging.info(f"Mercado Pago payment {mp_payment_id}: status {provider_status}, preference {preference_id}.")

    payment = None
    if preference_id:
        payment = (
            db.query(Payment)
            .filter(Payment.mercado_pago_preference_id == preference_id, Payment.status == PAYMENT_PENDING)
            .first()
        )
    if payment is None:
        logging.info(f"No pending payment for preference {preference_id} (Mercado Pago payment {mp_payment_id}).")
        raise PaymentNotFoundError(f"No pending payment for preference {preference_id}")

    transitioned = settle_payment(db, payment, provider_status, mp_payment_id)
    if transitioned:
        outcome = OUTCOME_PROCESSED
    elif map_provider_status(provider_status) == PAYMENT_PENDING:
        outcome = OUTCOME_PENDING
    else:
        outcome = OUTCOME_ALREADY_PROCESSED
    return WebhookResult(outcome=outcome, payment_id=payment.id, status=payment.status)
