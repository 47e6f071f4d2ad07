from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Paysync API"
    LOG_LEVEL: str = "INFO"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""

    DATABASE_URL: str = "sqlite:///./paysync.db"

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # Stripe. An empty secret key puts the reconciler in degraded mode (no gateway calls).
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_WEBHOOK_VERIFY: bool = False
    STRIPE_TIMEOUT_SECONDS: int = 25
    STRIPE_MAX_NETWORK_RETRIES: int = 2

    # Settlement
    PAYMENT_CURRENCY: str = "usd"
    PAYMENT_METHOD_TYPES: str = "card"  # comma-separated
    PAYMENT_CONFIRM_METHOD: str = "pm_card_visa"  # used by synchronous confirmation (test/manual flows)
    PAYMENT_GATEWAY_NAME: str = "Stripe"
    PAYMENT_RETRY_AFTER_FAILURE: bool = True

    # Background sync of intents whose webhook never arrived
    PENDING_SYNC_MIN_AGE_MINUTES: int = 10
    PENDING_SYNC_BATCH_SIZE: int = 50

    @field_validator("PAYMENT_CURRENCY", mode="after")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return (v or "usd").strip().lower()

    @property
    def payment_method_types(self) -> list[str]:
        return [m.strip() for m in self.PAYMENT_METHOD_TYPES.split(",") if m.strip()]


settings = Settings()
