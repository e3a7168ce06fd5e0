from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    # Mercado Pago
    mercadopago_access_token: Optional[str] = None
    mercadopago_timeout_seconds: float = 30.0
    currency_id: str = "BRL"
    preference_expiration_minutes: int = 30

    # Public URLs used for back_urls, notification_url and app redirects
    public_base_url: str = "https://buscabusca.vercel.app"
    app_deep_link_scheme: str = "buscabuscaimoveis"
    fallback_email_domain: str = "buscabusca.com"

    # Database
    database_url: str = "sqlite:///./payments.db"

    subscription_period_days: int = 30

    # Enables /api/test helpers and the latest-pending status lookup
    debug_mode: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
