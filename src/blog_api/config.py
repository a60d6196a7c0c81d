"""
Process configuration, read from the environment (and ``.env``) by
pydantic-settings. Field names map to upper-case variables: ``db_pool_max``
is ``DB_POOL_MAX``. Values are type-checked, so ``CAPTCHA_ENABLED=ture``
fails at startup instead of quietly switching the gate off.
"""
from typing import Annotated, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide configuration, built once at startup and never mutated."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Database: DATABASE_URL wins; otherwise the DSN is assembled from DB_*.
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = Field(5432, ge=1, le=65535)
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_name: Optional[str] = None

    db_pool_min: int = Field(1, ge=1)
    db_pool_max: int = Field(10, ge=1)
    db_pool_timeout_seconds: float = Field(5.0, gt=0)
    db_connect_timeout_seconds: int = Field(5, ge=1)
    db_statement_timeout_ms: int = Field(10000, ge=0)

    # Required for security; no default.
    access_token_secret: str = Field(..., min_length=1)
    jwt_algorithm: str = "HS256"

    captcha_enabled: bool = True
    recaptcha_secret_key: Optional[str] = None
    recaptcha_verify_url: str = "https://www.google.com/recaptcha/api/siteverify"
    captcha_timeout_seconds: float = Field(5.0, gt=0)

    allow_open_user_creation: bool = False
    cors_allow_origins: Annotated[List[str], NoDecode] = ["*"]

    host: str = "0.0.0.0"
    port: int = Field(3000, ge=1, le=65535)
    shutdown_grace_seconds: int = Field(10, ge=0)
    log_level: str = "INFO"

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def split_origins(cls, v):
        """CORS_ALLOW_ORIGINS is a comma-separated list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()] or ["*"]
        return v

    @model_validator(mode="after")
    def check_dependent_settings(self) -> "Settings":
        if not self.database_url:
            missing = [
                name.upper()
                for name in ("db_user", "db_password", "db_name")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    "DATABASE_URL is not set, so these are required: " + ", ".join(missing)
                )
        if self.captcha_enabled and not self.recaptcha_secret_key:
            raise ValueError("RECAPTCHA_SECRET_KEY is required when CAPTCHA_ENABLED is true")
        if self.db_pool_min > self.db_pool_max:
            raise ValueError("DB_POOL_MIN must not exceed DB_POOL_MAX")
        return self

    @property
    def database_dsn(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


# PUBLIC_INTERFACE
def load_settings(env_file: Optional[str] = ".env") -> Settings:
    """Read configuration from the environment and ``env_file``, if present.

    Raises ``pydantic.ValidationError`` naming every missing or malformed
    variable.
    """
    return Settings(_env_file=env_file)
