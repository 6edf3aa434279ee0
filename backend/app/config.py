from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = "sqlite+aiosqlite:///./campus.db"
    debug: bool = False
    log_level: str = "INFO"

    # Cross-college unlock pricing
    payment_amount: float = 10.00
    payment_currency: str = "USD"
    payment_session_ttl_minutes: int = 60

    # "simulated" or "gateway"
    payment_provider: str = "simulated"
    payment_gateway_url: str = ""
    payment_verify_timeout: float = 10.0
    payment_simulated_delay: float = 0.1

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
