from decimal import Decimal
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./kirana.db"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith('postgresql://'):
            return v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v

    # Billing
    DEFAULT_GST_RATE: Decimal = Decimal("0.18")  # fraction, split evenly into CGST/SGST
    RECENT_INVOICE_LIMIT: int = 10
    DASHBOARD_SALES_POLICY: str = "snapshot"  # snapshot | live

    @field_validator('DEFAULT_GST_RATE')
    @classmethod
    def validate_gst_rate(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("DEFAULT_GST_RATE must not be negative")
        return v

    @field_validator('DASHBOARD_SALES_POLICY')
    @classmethod
    def validate_sales_policy(cls, v: str) -> str:
        v = v.lower()
        if v not in ("snapshot", "live"):
            raise ValueError("DASHBOARD_SALES_POLICY must be 'snapshot' or 'live'")
        return v

    # Twilio (WhatsApp sharing)
    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_WHATSAPP_NUMBER: str | None = None

    # Public base URL the generated invoice PDFs are served from
    DOCUMENT_BASE_URL: str = "http://localhost:5001/documents"

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    DOCS_ENABLED: bool = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT in ("production", "staging")

    @property
    def sqlalchemy_echo(self) -> bool:
        """Echo SQL only at DEBUG log level outside production."""
        return self.DEBUG and self.LOG_LEVEL.upper() == "DEBUG" and not self.is_production

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
