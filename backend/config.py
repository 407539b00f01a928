import logging
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ADMIN_APP_URL: str = "https://roamadmin.app"

    # MongoDB
    MONGO_URL: str = "mongodb://localhost:27017"
    DB_NAME: str = "roam"

    # Twilio (SMS)
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_SMS_NUMBER: Optional[str] = None

    # Resend (email)
    RESEND_API_KEY: Optional[str] = None
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM: str = "ROAM <notifications@roamyourbestlife.com>"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    # Priorité de revue : ancienneté de la candidature (jours)
    PRIORITY_HIGH_AFTER_DAYS:   int = 3
    PRIORITY_URGENT_AFTER_DAYS: int = 7

    # Heures calmes : fuseau utilisé si l'utilisateur n'en a pas
    QUIET_HOURS_TIMEZONE: str = "UTC"
    # Trace des notifications supprimées pendant les heures calmes
    LOG_SUPPRESSED_NOTIFICATIONS: bool = False

    model_config = SettingsConfigDict(
        env_file=[".env", "../.env"],  # cherche dans backend/ puis dans la racine
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def log_level(self) -> int:
        """DEBUG force le niveau DEBUG ; sinon LOG_LEVEL (INFO si inconnu)."""
        if self.DEBUG:
            return logging.DEBUG
        level = logging.getLevelName(self.LOG_LEVEL.strip().upper())
        return level if isinstance(level, int) else logging.INFO


settings = Settings()
