import os
from decimal import Decimal
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

from .url_parser import parser

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", case_sensitive=False
    )

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./visits.db")
    PROJECT_NAME: str = "PROPERTY VISITS AND AGENT COMMISSIONS"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RABBITMQ_MAIN_EXCHANGE: str = "visit_events"
    RABBITMQ_URL: str = os.getenv("RABBITMQ_URL", "")
    RABBITMQ_DLX: str = "dead_letter_exchange"
    RABBITMQ_DLX_QUEUE: str = "dead_letter_queue"
    EMAIL_USER: str | None = os.getenv("EMAIL_USER")
    EMAIL_PASSWORD: str | None = os.getenv("EMAIL_PASSWORD")
    EMAIL_SERVER: str | None = os.getenv("EMAIL_SERVER")
    EMAIL_PORT: int = 587
    EMAIL_USE_TLS: bool = True
    FRONTEND_URL: str | None = os.getenv("FRONTEND_URL")
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "insecure-dev-secret")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    CURRENCY: str = "SAR"
    MAX_VISIT_AMOUNT: Decimal = Decimal("10000")
    REMINDER_HOUR: int = 8
    UNASSIGNED_WARNING_HOUR: int = 9
    UNASSIGNED_WARNING_DAYS_AHEAD: int = 3
    OUTBOX_BATCH_SIZE: int = 100
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_CLAIM_TIMEOUT_SECONDS: int = 300
    ALLOWED_HOSTS_RAW: str = os.getenv("ALLOWED_HOSTS", "")

    @property
    def ALLOWED_HOSTS(self) -> List[str]:
        return parser.parse_url_list(self.ALLOWED_HOSTS_RAW, "ALLOWED_HOSTS")


settings = Settings()
