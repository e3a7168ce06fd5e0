import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from bb_payment_svc.config import Settings, get_settings
from bb_payment_svc.dependencies import get_gateway
from bb_payment_svc.mercadopago_integration import MercadoPagoError
from bb_payment_svc.models.base import get_db
from bb_payment_svc.payment_service import (
    PaymentNotFoundError,
    PlanNotFoundError,
    check_payment_status,
    create_payment,
    list_user_payments,
)
from bb_payment_svc.schemas import CreatePaymentRequest, PaymentOut, PreferenceOut

router = APIRouter()


@router.post("/create", status_code=200)
async def create(payment_request: CreatePaymentRequest, db=Depends(get_db), gateway=Depends(get_gateway)):
    if payment_request.plan is None or payment_request.user is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Plan and user are required")
    try:
        preference, payment = create_payment(db, gateway, payment_request.plan, payment_request.user)
    except PlanNotFoundError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Plan not found")
    except MercadoPagoError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except Exception as e:
        logging.error(e, exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to register payment")

    return {
        "success": True,
        "preference": PreferenceOut(
            id=preference["id"],
            init_point=preference.get("init_point"),
            sandbox_init_point=preference.get("sandbox_init_point"),
        ),
        "payment": {"id": payment.id, "status": payment.status},
    }


@router.get("/status", status_code=200)
async def get_status(
    paymentId: Optional[str] = None,
    preferenceId: Optional[str] = None,
    db=Depends(get_db),
    gateway=Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    if not paymentId and not preferenceId and not settings.debug_mode:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment ID or Preference ID is required")
    try:
        payment = check_payment_status(
            db, gateway, paymentId, preferenceId, allow_latest_pending=settings.debug_mode
        )
    except PaymentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MercadoPagoError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return {
        "success": True,
        "payment": PaymentOut.from_payment(payment),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/provider-status", status_code=200)
async def get_provider_status(paymentId: Optional[str] = None, gateway=Depends(get_gateway)):
    if not paymentId:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment ID is required")
    try:
        mp_payment = gateway.get_payment(paymentId)
    except MercadoPagoError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {
        "success": True,
        "payment": {
            "id": mp_payment.get("id"),
            "status": mp_payment.get("status"),
            "preference_id": mp_payment.get("preference_id"),
            "external_reference": mp_payment.get("external_reference"),
        },
    }


@router.get("/history", status_code=200)
async def get_history(userId: str, db=Depends(get_db)):
    payments = list_user_payments(db, userId)
    return {"success": True, "payments": [PaymentOut.from_payment(p) for p in payments]}


# Checkout back_urls. Mercado Pago sends the buyer here; the app takes over via deep link.

def _deep_link(settings: Settings, path: str, request: Request) -> str:
    url = f"{settings.app_deep_link_scheme}://{path}"
    params = dict(request.query_params)
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


@router.get("/success")
async def success_redirect(request: Request, settings: Settings = Depends(get_settings)):
    logging.info(f"Checkout success redirect: {dict(request.query_params)}")
    return RedirectResponse(_deep_link(settings, "payment-confirmation", request), status_code=302)


@router.get("/failure")
async def failure_redirect(request: Request, settings: Settings = Depends(get_settings)):
    logging.info(f"Checkout failure redirect: {dict(request.query_params)}")
    return RedirectResponse(_deep_link(settings, "payment-confirmation", request), status_code=302)


@router.get("/pending")
async def pending_redirect(request: Request, settings: Settings = Depends(get_settings)):
    logging.info(f"Checkout pending redirect: {dict(request.query_params)}")
    return RedirectResponse(_deep_link(settings, "payment/pending", request), status_code=302)
