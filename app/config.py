# app/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_SECRET = "change-me-in-prod"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)

    # Service
    APP_NAME: str = "Clinic Scheduling API"
    APP_VERSION: str = "1.0.0"
    CLINIC_NAME: str = "Eye Clinic Management System"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    HOST: str = "0.0.0.0"
    PORT: int = 8000

    DATABASE_URL: str = "sqlite:///./clinic.db"

    # Staff tokens are issued by the staff portal and only verified here
    SECRET_KEY: str = Field(default=PLACEHOLDER_SECRET, alias="JWT_SECRET_KEY")
    ALGORITHM: str = "HS256"

    # Comma-separated, e.g. "https://a.example,https://b.example"
    ALLOWED_ORIGINS: str = Field(default="*", validation_alias=AliasChoices("ALLOWED_ORIGINS", "CORS_ORIGINS"))
    CORS_ALLOW_CREDENTIALS: bool = True

    GZIP_MIN_SIZE: int = 500  # bytes
    RATE_LIMIT_PER_MINUTE: int = 60  # 0 disables
    MAX_REQUEST_BYTES: int = 1024 * 1024

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Scheduling policy
    CLINIC_OPENING_HOUR: int = Field(default=9, ge=0, le=23)
    CLINIC_CLOSING_HOUR: int = Field(default=17, ge=0, le=23)
    SLOT_MINUTES: int = Field(default=30, gt=0)
    PUBLIC_APPOINTMENT_MINUTES: int = Field(default=30, gt=0)
    LOCK_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    REDIS_URL: Optional[str] = None

    # Scheduling links
    LINK_DEFAULT_MAX_USES: int = Field(default=1, ge=1)
    LINK_DEFAULT_EXPIRES_DAYS: int = Field(default=90, ge=1)
    FRONTEND_URL: str = "https://eyeclinic.aledsystems.com"

    # Email (SMTP)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = ""

    # SMS (Twilio)
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""

    @field_validator("LOG_LEVEL")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def _check_clinic_hours(self) -> "Settings":
        if self.CLINIC_OPENING_HOUR >= self.CLINIC_CLOSING_HOUR:
            raise ValueError("CLINIC_OPENING_HOUR must be before CLINIC_CLOSING_HOUR")
        return self

    @property
    def allowed_origins_list(self) -> List[str]:
        return [o.strip() for o in (self.ALLOWED_ORIGINS or "").split(",") if o.strip()]

    @property
    def jwt_configured(self) -> bool:
        return bool(self.SECRET_KEY) and self.SECRET_KEY != PLACEHOLDER_SECRET

    @property
    def email_enabled(self) -> bool:
        return bool(self.SMTP_HOST and (self.EMAIL_FROM or self.SMTP_USER))

    @property
    def sms_enabled(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE_NUMBER)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings: Settings = get_settings()
