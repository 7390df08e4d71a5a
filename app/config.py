# app/config.py
from typing import List
import os

from dotenv import load_dotenv
from pydantic import BaseModel

# Завантаження змінних середовища
load_dotenv()


class Settings(BaseModel):
    """
    Налаштування застосунку, зчитані зі змінних середовища один раз під час імпорту.
    """
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./crm.db")
    REDIS_URL: str = os.getenv("REDIS_URL", "")

    JWT_SECRET: str = os.getenv("JWT_SECRET", "")
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "")

    IMPORT_BATCH_SIZE: int = int(os.getenv("IMPORT_BATCH_SIZE", "500"))
    CORS_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
