import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import mercadopago
from mercadopago.config import RequestOptions

from bb_payment_svc.config import Settings
from bb_payment_svc.schemas import PlanIn, UserIn


class MercadoPagoError(Exception):
    """Raised when Mercado Pago rejects a request or cannot be reached."""

    def __init__(self, message: str, status: Optional[int] = None, response: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.response = response


class MercadoPagoIntegration:
    """
    Wraps the Mercado Pago checkout API: creating hosted checkout preferences
    and fetching payments reported by webhooks. Requests are not retried; the
    mobile client lets the user start over and the webhook sender redelivers.
    """

    def __init__(self, settings: Settings, sdk: Any = None) -> None:
        if not settings.mercadopago_access_token:
            raise EnvironmentError('Mercado Pago access token (MERCADOPAGO_ACCESS_TOKEN) not configured.')
        self.settings = settings
        if sdk is None:
            request_options = RequestOptions(
                connection_timeout=settings.mercadopago_timeout_seconds,
                max_retries=0,
            )
            sdk = mercadopago.SDK(settings.mercadopago_access_token, request_options=request_options)
        self.sdk = sdk

    def build_preference(self, plan: PlanIn, user: UserIn, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Build the preference payload for a single-plan checkout.

        :param plan: The plan being purchased.
        :param user: The buyer.
        :param now: Reference time for the expiration window, defaults to the current UTC time.
        :return: The preference request body.
        """
        now = now or datetime.now(timezone.utc)
        base_url = self.settings.public_base_url.rstrip('/')
        expires_at = now + timedelta(minutes=self.settings.preference_expiration_minutes)
        return {
            'items': [
                {
                    'title': f"Plano {plan.display_name}",
                    'unit_price': float(plan.price),
                    'quantity': 1,
                    'currency_id': self.settings.currency_id,
                }
            ],
            'payer': {
                'name': user.display_name or 'Usuário',
                'email': user.email or f"{user.id}@{self.settings.fallback_email_domain}",
            },
            'back_urls': {
                'success': f"{base_url}/api/payments/success",
                'failure': f"{base_url}/api/payments/failure",
                'pending': f"{base_url}/api/payments/pending",
            },
            'notification_url': f"{base_url}/api/webhook/mercadopago",
            'external_reference': f"plan_{plan.id}_user_{user.id}",
            'auto_return': 'approved',
            'expires': True,
            'expiration_date_to': expires_at.isoformat(timespec='milliseconds'),
        }

    def create_preference(self, plan: PlanIn, user: UserIn) -> Dict[str, Any]:
        """
        Create a hosted checkout preference.

        :param plan: The plan being purchased.
        :param user: The buyer.
        :return: The created preference (id, init_point, sandbox_init_point, ...).
        :raises MercadoPagoError: if Mercado Pago does not accept the preference.
        """
        preference_data = self.build_preference(plan, user)
        result = self._call('create preference', lambda: self.sdk.preference().create(preference_data))
        logging.info(f"Preference {result.get('id')} created for user {user.id}, plan {plan.id}.")
        return result

    def get_payment(self, payment_id: str) -> Dict[str, Any]:
        """
        Fetch a payment by its Mercado Pago id.

        :param payment_id: The payment id assigned by Mercado Pago.
        :return: The payment details (status, preference_id, external_reference, ...).
        :raises MercadoPagoError: if the payment cannot be fetched.
        """
        if not payment_id or not str(payment_id).strip():
            raise ValueError('payment_id cannot be empty')
        return self._call(f"get payment {payment_id}", lambda: self.sdk.payment().get(payment_id))

    def _call(self, operation: str, request) -> Dict[str, Any]:
        try:
            result = request()
        except Exception as e:
            logging.error(f"Error calling Mercado Pago ({operation}): {e}", exc_info=True)
            raise MercadoPagoError(f"Mercado Pago request failed: {operation}") from e

        status = result.get('status')
        response = result.get('response')
        if status is None or not 200 <= status < 300:
            logging.error(f"Mercado Pago returned {status} for {operation}: {response}")
            raise MercadoPagoError(f"Mercado Pago returned {status} for {operation}", status=status, response=response)
        return response
