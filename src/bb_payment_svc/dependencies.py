import logging
from typing import Callable

from fastapi import Depends, HTTPException, status

from bb_payment_svc.config import Settings, get_settings
from bb_payment_svc.mercadopago_integration import MercadoPagoIntegration


def get_gateway(settings: Settings = Depends(get_settings)) -> MercadoPagoIntegration:
    try:
        return MercadoPagoIntegration(settings)
    except EnvironmentError as e:
        logging.error(e, exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Mercado Pago not configured")


def get_gateway_factory(settings: Settings = Depends(get_settings)) -> Callable[[], MercadoPagoIntegration]:
    """Defer building the gateway until the request is known to need Mercado Pago."""
    return lambda: get_gateway(settings)
