from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, field_validator


class PlanIn(BaseModel):
    id: Union[int, str]
    name: Optional[str] = None
    display_name: str = Field(min_length=1)
    price: Decimal = Field(gt=0)
    max_ads: Optional[int] = None

    @field_validator('id')
    @classmethod
    def id_as_string(cls, v: Union[int, str]) -> str:
        return str(v)


class UserIn(BaseModel):
    id: str = Field(min_length=1)
    email: Optional[str] = None
    full_name: Optional[str] = None
    # Supabase auth users carry the name in user_metadata.full_name
    user_metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> Optional[str]:
        return self.full_name or self.user_metadata.get('full_name')


class CreatePaymentRequest(BaseModel):
    plan: Optional[PlanIn] = None
    user: Optional[UserIn] = None


class PreferenceOut(BaseModel):
    id: str
    init_point: Optional[str] = None
    sandbox_init_point: Optional[str] = None


class PaymentOut(BaseModel):
    id: str
    status: str
    preference_id: Optional[str] = None
    payment_id: Optional[str] = None
    plan_id: Optional[str] = None
    amount: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_payment(cls, payment) -> 'PaymentOut':
        return cls(
            id=payment.id,
            status=payment.status,
            preference_id=payment.mercado_pago_preference_id,
            payment_id=payment.mercado_pago_payment_id,
            plan_id=payment.plan_id,
            amount=float(payment.amount) if payment.amount is not None else None,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


class SimulateWebhookRequest(BaseModel):
    paymentId: str
    status: str = 'approved'
