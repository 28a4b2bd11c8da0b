"""
Configuration settings for the application
"""
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGS_DIR = Path("./logs")

# Normalized plan IDs
PLAN_FREE_TRIAL = "free_trial"
PLAN_STARTER = "starter"
PLAN_PRO = "pro"
PLAN_AGENCY = "agency"
PLANS = (PLAN_FREE_TRIAL, PLAN_STARTER, PLAN_PRO, PLAN_AGENCY)

# Subscription statuses
STATUS_TRIAL = "trial"
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
SUBSCRIPTION_STATUSES = (STATUS_TRIAL, STATUS_ACTIVE, STATUS_INACTIVE)

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Core authentication and security
    jwt_secret: Optional[str] = Field(default=None, alias="JWT_SECRET")
    user_token_days: int = Field(default=7, alias="USER_TOKEN_DAYS")
    admin_token_hours: int = Field(default=24, alias="ADMIN_TOKEN_HOURS")

    # Infrastructure configuration
    database_url: Optional[str] = Field(
        default="sqlite+aiosqlite:///./marketing_agents.db", alias="DATABASE_URL"
    )
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")

    # Text generation
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    generation_timeout_seconds: float = Field(default=20.0, alias="GENERATION_TIMEOUT_SECONDS")
    placeholder_delay_seconds: float = Field(default=0.0, alias="PLACEHOLDER_DELAY_SECONDS")

    # Rate limiting
    tool_rate_limit: int = Field(default=10, alias="TOOL_RATE_LIMIT")
    tool_rate_window_seconds: float = Field(default=60.0, alias="TOOL_RATE_WINDOW_SECONDS")
    login_rate_limit: int = Field(default=5, alias="LOGIN_RATE_LIMIT")
    login_rate_window_seconds: float = Field(default=900.0, alias="LOGIN_RATE_WINDOW_SECONDS")
    api_rate_limit: int = Field(default=100, alias="API_RATE_LIMIT")
    api_rate_window_seconds: float = Field(default=900.0, alias="API_RATE_WINDOW_SECONDS")

    # Subscription
    trial_days: int = Field(default=7, alias="TRIAL_DAYS")

    # Frontend configuration
    frontend_url: Optional[str] = Field(default="http://localhost:3000", alias="FRONTEND_URL")

    # Environment configuration
    env: Optional[str] = Field(default="development", alias="ENV")


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.env and settings.env.lower() == "production")


def require_jwt_secret() -> str:
    """Fail fast when JWT_SECRET is missing."""
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not set. Please set it in your environment or .env file.")
    return settings.jwt_secret
