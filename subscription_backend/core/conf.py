from functools import lru_cache
from typing import Any, Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from subscription_backend.core.path_conf import BASE_PATH


class Settings(BaseSettings):
    """全局配置"""

    model_config = SettingsConfigDict(
        env_file=f'{BASE_PATH}/.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=True,
    )

    # .env 当前环境
    ENVIRONMENT: Literal['dev', 'prod'] = 'dev'

    # FastAPI
    FASTAPI_API_V1_PATH: str = '/api/v1'
    FASTAPI_TITLE: str = 'SubscriptionBackend'
    FASTAPI_DESCRIPTION: str = 'Recurring subscription billing service'
    FASTAPI_DOCS_URL: str | None = '/docs'
    FASTAPI_OPENAPI_URL: str | None = '/openapi'

    # .env 数据库
    DATABASE_HOST: str = '127.0.0.1'
    DATABASE_PORT: int = 5432
    DATABASE_USER: str = 'postgres'
    DATABASE_PASSWORD: str = ''

    # 数据库
    DATABASE_ECHO: bool = False
    DATABASE_SCHEMA: str = 'subscription_backend'
    DATABASE_POOL_SIZE: int = 10

    # 日志（控制台）
    LOG_STD_LEVEL: str = 'INFO'
    LOG_FORMAT: str = '%(name)s | %(message)s'

    # --------------------------------------------------------------------------
    # [Billing & Stripe Configuration]
    # Card vault, recurring charges and renewal scheduling
    # --------------------------------------------------------------------------

    # Stripe API Keys
    STRIPE_SECRET_KEY: str = ''  # Stripe secret key (sk_...)
    STRIPE_PUBLISHABLE_KEY: str = ''  # Stripe publishable key (pk_...)

    # Gateway used for card storage and charges ('scripted' for local runs)
    BILLING_GATEWAY: Literal['stripe', 'scripted'] = 'stripe'

    # Single billing currency (multi-currency is not supported)
    BILLING_CURRENCY: str = 'usd'

    # Renewal defaults used when a plan does not set its own period
    BILLING_DEFAULT_RENEWAL_PERIOD: int = 1
    BILLING_DEFAULT_RENEWAL_INTERVAL: Literal['days', 'weeks', 'months', 'years'] = 'months'

    # Trial expiry notices go out this many days before the trial ends
    BILLING_TRIAL_EXPIRY_NOTICE_DAYS: int = 7

    # Gateway resilience
    GATEWAY_TIMEOUT_SECONDS: float = 30.0
    GATEWAY_CIRCUIT_FAILURE_THRESHOLD: int = 5
    GATEWAY_CIRCUIT_RECOVERY_SECONDS: int = 60

    # Renewal batch driver
    RENEWAL_BATCH_CONCURRENCY: int = 4

    @model_validator(mode='before')
    @classmethod
    def check_env(cls, values: Any) -> Any:
        """检查环境变量"""
        if values.get('ENVIRONMENT') == 'prod':
            # FastAPI
            values['FASTAPI_DOCS_URL'] = None
            values['FASTAPI_OPENAPI_URL'] = None
        return values

    @property
    def DATABASE_URL(self) -> str:
        return (
            f'postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}'
            f'@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_SCHEMA}'
        )


@lru_cache
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings()


# 创建全局配置实例
settings = get_settings()
