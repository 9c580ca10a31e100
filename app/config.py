from pydantic import model_validator
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Database
    database_username: str
    database_password: str
    database_hostname: str
    database_port: str
    database_name: str
    database_pool_min_size: int = 2
    database_pool_max_size: int = 10

    # Auth
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # IntaSend (M-Pesa collection + B2C transfer)
    intasend_publishable_key: str
    intasend_secret_key: str
    intasend_test_mode: bool = True
    intasend_webhook_challenge: Optional[str] = None
    gateway_timeout_seconds: float = 30.0
    backend_url: str = "http://localhost:8000"

    # Money
    currency: str = "KES"
    mpesa_country_code: str = "254"
    platform_fee_rate: float = 0.4
    cleaner_payout_rate: float = 0.6
    # Independent of the cleaner split above; governs team leader earnings only
    team_leader_commission_rate: float = 0.4

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # CORS
    allowed_origins: List[str] = ["*"]

    @model_validator(mode="after")
    def check_split_rates(self):
        if abs(self.platform_fee_rate + self.cleaner_payout_rate - 1) > 1e-9:
            raise ValueError("platform_fee_rate and cleaner_payout_rate must sum to 1")
        return self

    @property
    def intasend_base_url(self) -> str:
        if self.intasend_test_mode:
            return "https://sandbox.intasend.com"
        return "https://payment.intasend.com"

    @property
    def webhook_url(self) -> str:
        return f"{self.backend_url.rstrip('/')}/payments/webhook"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
