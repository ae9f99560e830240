"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class StoreConfig(BaseSettings):
    """Store identity seeded into every notification's variables."""

    model_config = {"env_prefix": "SHOPNOTIFY_STORE_"}

    name: str = "Cave Express"
    url: str = "www.cave-express.ci"
    phone: str = "+225 0556791431"
    whatsapp: str = "https://wa.me/2250556791431"
    address: str = "Faya Cité Genie 2000, Abidjan"


class SMSingConfig(BaseSettings):
    """SMSing provider credentials for SMS, WhatsApp Business and WhatsApp Cloud."""

    model_config = {"env_prefix": "SHOPNOTIFY_SMSING_"}

    base_url: str = "https://panel.smsing.app/smsAPI"
    api_key: str = ""
    api_token: str = ""
    cloud_api_key: str = ""
    cloud_api_token: str = ""
    sender_id: str = "CAVEEXPRESS"
    logo_url: str = "https://www.cave-express.ci/logo/icon-512.png"
    country_code: str = "225"
    timeout_seconds: float = 15.0
    otp_language: str = "fr"
    use_custom_otp_template: bool = True
    custom_otp_template: str = "caveexpress"


class SchedulerConfig(BaseSettings):
    """Scheduled notification processing."""

    model_config = {"env_prefix": "SHOPNOTIFY_SCHEDULER_"}

    enabled: bool = False
    interval_seconds: int = 300
    max_attempts: int = 3
    review_request_delay_hours: int = 24
    claim_timeout_minutes: int = 15


class NotificationConfig(BaseSettings):
    """Notification engine configuration."""

    model_config = {"env_prefix": "SHOPNOTIFY_NOTIFICATION_"}

    templates_path: str | None = None
    transport: str = "mock"


class DatabaseConfig(BaseSettings):
    """Database connection. An empty URL selects the in-memory stores."""

    model_config = {"env_prefix": "SHOPNOTIFY_DB_"}

    database_url: str = ""
    echo: bool = False
    pool_size: int = 5


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "SHOPNOTIFY_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    store: StoreConfig = Field(default_factory=StoreConfig)
    smsing: SMSingConfig = Field(default_factory=SMSingConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
