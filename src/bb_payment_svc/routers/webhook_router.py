import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from bb_payment_svc.dependencies import get_gateway_factory
from bb_payment_svc.mercadopago_event_processor import OUTCOME_IGNORED, process_event
from bb_payment_svc.mercadopago_integration import MercadoPagoError
from bb_payment_svc.models.base import get_db
from bb_payment_svc.payment_service import PaymentNotFoundError

router = APIRouter()


@router.post("/mercadopago", status_code=200)
async def mercadopago_webhook(request: Request, db=Depends(get_db), gateway_factory=Depends(get_gateway_factory)):
    payload_bytes = await request.body()
    try:
        event = json.loads(payload_bytes.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logging.error(e, exc_info=True)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")
    if not isinstance(event, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    logging.info(f"Mercado Pago webhook received: {event}")
    gateway = None
    if event.get("type") == "payment":
        gateway = gateway_factory()
    try:
        result = process_event(event, db, gateway)
    except ValueError as ve:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(ve))
    except PaymentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MercadoPagoError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except Exception as e:
        logging.error(e, exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error processing webhook event")

    if result.outcome == OUTCOME_IGNORED:
        return {"success": True, "message": "Webhook ignored - not a payment"}
    return {
        "success": True,
        "outcome": result.outcome,
        "payment_id": result.payment_id,
        "status": result.status,
    }
