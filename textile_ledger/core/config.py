from typing import Dict, List

from pydantic import model_validator
from pydantic_settings import BaseSettings
import os


DEFAULT_RATES = {
    "USD": 1.0,
    "AED": 0.2724795640326975,
    "GBP": 1.34,
    "EUR": 1.17,
    "AUD": 0.66,
    "SAR": 0.27,
}


class Settings(BaseSettings):
    APP_ENV: str = "local"

    DATABASE_URL: str = "sqlite:///./textile_ledger.db"
    DATABASE_ECHO: bool = False

    # Accounting
    BASE_CURRENCY: str = "USD"
    BALANCE_TOLERANCE: float = 0.001
    DEFAULT_CURRENCY_RATES: Dict[str, float] = DEFAULT_RATES

    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    LOG_LEVEL: str = "DEBUG"

    class Config:
        env_file = ".env" if os.getenv("APP_ENV", "local") == "local" else ".env.prod"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @model_validator(mode='after')
    def check_base_currency_rate(self):
        """The base currency always converts to itself at 1."""
        rate = self.DEFAULT_CURRENCY_RATES.get(self.BASE_CURRENCY)
        if rate is None:
            self.DEFAULT_CURRENCY_RATES[self.BASE_CURRENCY] = 1.0
        elif rate != 1:
            raise ValueError(f"Rate for base currency {self.BASE_CURRENCY} must be 1, got {rate}")
        return self


settings = Settings()
