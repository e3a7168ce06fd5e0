import logging
import time

from fastapi import APIRouter, Depends, HTTPException, status

from bb_payment_svc.config import Settings, get_settings
from bb_payment_svc.models.base import get_db
from bb_payment_svc.payment_service import PaymentNotFoundError, find_payment, settle_payment
from bb_payment_svc.schemas import SimulateWebhookRequest

router = APIRouter()


def require_debug_mode(settings: Settings = Depends(get_settings)) -> None:
    if not settings.debug_mode:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


@router.post("/simulate-webhook", status_code=200, dependencies=[Depends(require_debug_mode)])
async def simulate_webhook(simulation: SimulateWebhookRequest, db=Depends(get_db)):
    try:
        payment = find_payment(db, payment_id=simulation.paymentId)
    except PaymentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    logging.info(f"Simulating Mercado Pago status {simulation.status} for payment {payment.id}.")
    transitioned = settle_payment(db, payment, simulation.status, f"simulated_{int(time.time() * 1000)}")
    return {
        "success": True,
        "payment_id": payment.id,
        "status": payment.status,
        "transitioned": transitioned,
    }
