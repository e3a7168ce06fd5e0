import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bb_payment_svc.config import get_settings
from bb_payment_svc.models.base import init_db
from bb_payment_svc.routers import debug_router, payments_router, plans_router, webhook_router

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(debug=get_settings().debug_mode, lifespan=lifespan)

app.include_router(payments_router.router, prefix="/api/payments")
app.include_router(webhook_router.router, prefix="/api/webhook")
app.include_router(plans_router.router, prefix="/api")
app.include_router(debug_router.router, prefix="/api/test")
