from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    app_name: str = "LifeOps Reminders"
    app_version: str = "1.0.0"
    debug: bool = False

    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "lifeops"

    # Shared secret expected in the x-cron-secret header
    cron_secret: Optional[str] = None

    # Dispatcher
    delivery_timeout_seconds: float = 10.0
    dispatch_max_workers: int = 8

    # SMTP
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from_email: Optional[str] = None
    smtp_from_name: str = "LifeOps"

    # Twilio
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    # Expo push
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    expo_access_token: Optional[str] = None

    app_url: str = "https://lifeops.app"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def smtp_configured(self) -> bool:
        return all([self.smtp_host, self.smtp_username, self.smtp_password, self.smtp_from_email])

    @property
    def twilio_configured(self) -> bool:
        return all([self.twilio_account_sid, self.twilio_auth_token, self.twilio_phone_number])


settings = Settings()
