from decimal import Decimal
from pathlib import Path
from typing import List

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_PATH = _PROJECT_ROOT / '.env'
_ENV_FILE = _ENV_PATH if _ENV_PATH.exists() else (_PROJECT_ROOT / '.env.example')


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'Ticket Lifecycle Engine'
    VERSION: str = '0.1.0'
    DEBUG: bool = True  # Set to False in production

    # Security (tokens are issued by the external auth service)
    SECRET_KEY: SecretStr = SecretStr('test_secret_key_change_in_production')
    ALGORITHM: str = 'HS256'

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = []

    @field_validator('BACKEND_CORS_ORIGINS', mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and not v.startswith('['):
            return [i.strip() for i in v.split(',')]
        elif isinstance(v, list):
            return v
        return []

    # PostgreSQL
    POSTGRES_SERVER: str = 'localhost'
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = 'postgres'
    POSTGRES_PASSWORD: SecretStr = SecretStr('postgres')
    POSTGRES_DB: str = 'ticket_lifecycle'
    DATABASE_URL_OVERRIDE: str = ''  # e.g. sqlite+aiosqlite:///:memory: for tests

    # Connection pool
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 5
    DB_POOL_RECYCLE: int = 3600
    DB_POOL_PRE_PING: bool = True
    DB_STATEMENT_TIMEOUT_SECONDS: int = 5

    @property
    def DATABASE_URL_ASYNC(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f'postgresql+asyncpg://{self.POSTGRES_USER}:'
            f'{self.POSTGRES_PASSWORD.get_secret_value()}@{self.POSTGRES_SERVER}:'
            f'{self.POSTGRES_PORT}/{self.POSTGRES_DB}'
        )

    # Logging
    LOG_LEVEL: str = ''  # empty: DEBUG when DEBUG is on, INFO otherwise
    LOG_FILE_ENABLED: bool = False  # stdout only unless DEBUG or this is set
    LOG_FILE_ROTATION: str = '1 hour'
    LOG_FILE_RETENTION: str = '7 days'

    # Tracing
    DEPLOY_ENV: str = 'local_dev'
    OTEL_EXPORTER_OTLP_ENDPOINT: str = ''
    OTEL_CONSOLE_EXPORT: bool = False
    OTEL_SAMPLE_RATIO: float = 1.0

    # Lifecycle policy
    DEFAULT_CURRENCY: str = 'USD'
    RESERVATION_TTL_MINUTES: int = 15
    CHECKOUT_TTL_MINUTES: int = 15
    CHECKOUT_HOLDS_INVENTORY: bool = True
    CART_TTL_HOURS: int = 24
    TRANSFER_TTL_DAYS: int = 7
    REFUND_WINDOW_HOURS: int = 24
    SERVICE_FEE_RATE: Decimal = Decimal('0.10')

    # Background sweeps
    SWEEPER_ENABLED: bool = True
    SWEEP_INTERVAL_SECONDS: int = 60
    SWEEP_BATCH_SIZE: int = 100

    @field_validator('SWEEP_INTERVAL_SECONDS')
    @classmethod
    def cap_sweep_interval(cls, v: int) -> int:
        if v < 1:
            raise ValueError('SWEEP_INTERVAL_SECONDS must be positive')
        return min(v, 60)

    @field_validator('SWEEP_BATCH_SIZE')
    @classmethod
    def cap_sweep_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError('SWEEP_BATCH_SIZE must be positive')
        return min(v, 100)

    # Payment gateways
    GATEWAY_TIMEOUT_SECONDS: float = 30.0
    GATEWAY_MAX_ATTEMPTS: int = 3
    GATEWAY_BACKOFF_BASE_SECONDS: float = 0.2
    GATEWAY_BACKOFF_MAX_SECONDS: float = 2.0

    STRIPE_SECRET_KEY: SecretStr = SecretStr('')

    PAYPAL_BASE_URL: str = 'https://api-m.sandbox.paypal.com'
    PAYPAL_CLIENT_ID: str = ''
    PAYPAL_CLIENT_SECRET: SecretStr = SecretStr('')
    PAYPAL_RETURN_URL: str = 'http://localhost:3000/payments/paypal/return'
    PAYPAL_CANCEL_URL: str = 'http://localhost:3000/payments/paypal/cancel'

    ZIM_GATEWAY_BASE_URL: str = 'https://sandbox.zimgateway.example'
    ZIM_GATEWAY_API_KEY: SecretStr = SecretStr('')
    ZIM_GATEWAY_RETURN_URL: str = 'http://localhost:3000/payments/zim/return'


settings = Settings()  # type: ignore
