# backend/config.py
from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./marketplace.db"

    # Extra origin allowed by CORS (deployed frontend)
    FRONTEND_URL: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    # Max accepted difference between a client price snapshot and the live price
    PRICE_TOLERANCE: Decimal = Decimal("0.01")
    LOW_STOCK_THRESHOLD: int = 5

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
