import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    mongo_uri: str = os.getenv("MONGO_URI", "")
    database_name: str = os.getenv("DATABASE_NAME", "school")
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me-in-production")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_exp_minutes: int = int(os.getenv("JWT_EXP_MINUTES", str(7 * 24 * 60)))
    environment: str = os.getenv("ENVIRONMENT", "development")
    connect_retries: int = int(os.getenv("DB_CONNECT_RETRIES", "3"))
    retry_increment: float = float(os.getenv("DB_RETRY_INCREMENT_SECONDS", "2"))
    wait_timeout: float = float(os.getenv("DB_WAIT_TIMEOUT_SECONDS", "10"))
    reconnect_delay: float = float(os.getenv("DB_RECONNECT_DELAY_SECONDS", "5"))
    port: int = int(os.getenv("PORT", "8000"))
    cors_origins: List[str] = field(default_factory=_origins)

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()
