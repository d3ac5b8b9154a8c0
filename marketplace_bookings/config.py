from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./marketplace.db"

    # Tokens are issued by the accounts service; we only verify them.
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"

    REDIS_URL: str = "redis://localhost:6379/0"
    BOOKING_RATE_LIMIT_PER_MINUTE: int = 30
    READ_RATE_LIMIT_PER_MINUTE: int = 60

    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    KAFKA_BOOKING_TOPIC: str = "booking_events"
    OUTBOX_POLL_SECONDS: int = 5

    # Set to 60 for local testing, 3600 in production.
    SCHEDULER_POLL_SECONDS: int = 3600

    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    SMTP_USE_SSL: bool = True
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    MAIL_FROM_NAME: str = "SafarHub"
    ADMIN_EMAIL: Optional[str] = None

    DEFAULT_CURRENCY: str = "INR"
    SETTLEMENT_DELAY_DAYS: int = 7

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
