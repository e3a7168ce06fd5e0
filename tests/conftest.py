import os
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['MERCADOPAGO_ACCESS_TOKEN'] = 'TEST-dummy-token'

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bb_payment_svc.app import app
from bb_payment_svc.config import Settings, get_settings
from bb_payment_svc.dependencies import get_gateway, get_gateway_factory
from bb_payment_svc.mercadopago_integration import MercadoPagoIntegration
from bb_payment_svc.models.base import Base, get_db
from bb_payment_svc.models.plan import Plan
# Registers the remaining tables on Base.metadata
from bb_payment_svc.models import payment, user_subscription  # noqa: F401


class FakePreferenceResource:
    def __init__(self, sdk):
        self.sdk = sdk

    def create(self, preference_data):
        self.sdk.created_preferences.append(preference_data)
        if self.sdk.fail_preferences:
            return {"status": 400, "response": {"message": "invalid preference"}}
        pref_id = f"pref_{len(self.sdk.created_preferences)}"
        return {
            "status": 201,
            "response": {
                "id": pref_id,
                "init_point": f"https://www.mercadopago.com.br/checkout/v1/redirect?pref_id={pref_id}",
                "sandbox_init_point": f"https://sandbox.mercadopago.com.br/checkout/v1/redirect?pref_id={pref_id}",
            },
        }


class FakePaymentResource:
    def __init__(self, sdk):
        self.sdk = sdk

    def get(self, payment_id):
        self.sdk.payment_requests.append(payment_id)
        if payment_id in self.sdk.payments:
            return {"status": 200, "response": self.sdk.payments[payment_id]}
        return {"status": 404, "response": {"message": "Payment not found"}}


class FakeMercadoPagoSDK:
    """Stands in for mercadopago.SDK, answering from in-memory data."""

    def __init__(self):
        self.created_preferences = []
        self.payment_requests = []
        self.payments = {}
        self.fail_preferences = False

    def preference(self):
        return FakePreferenceResource(self)

    def payment(self):
        return FakePaymentResource(self)

    def add_payment(self, mp_payment_id, status, preference_id, external_reference=None):
        self.payments[mp_payment_id] = {
            "id": mp_payment_id,
            "status": status,
            "preference_id": preference_id,
            "external_reference": external_reference,
        }


@pytest.fixture
def settings():
    return Settings(mercadopago_access_token='TEST-dummy-token', _env_file=None)


@pytest.fixture
def fake_sdk():
    return FakeMercadoPagoSDK()


@pytest.fixture
def gateway(settings, fake_sdk):
    return MercadoPagoIntegration(settings, sdk=fake_sdk)


@pytest.fixture
def db_session():
    engine = create_engine('sqlite://', connect_args={'check_same_thread': False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def plans(db_session):
    basico = Plan(id='1', name='basico', display_name='Básico', price=Decimal('29.90'), max_ads=5)
    premium = Plan(id='2', name='premium', display_name='Premium', price=Decimal('49.90'), max_ads=None)
    db_session.add_all([basico, premium])
    db_session.commit()
    return {'basico': basico, 'premium': premium}


@pytest.fixture
def client(db_session, gateway, settings):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_gateway_factory] = lambda: (lambda: gateway)
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
