from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.enums import StatusPolicy


DEFAULT_COLOR = "Padrão"
DEFAULT_SIZE = "Único"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(..., alias="DATABASE_URL")

    # Comma separated `user:password` pairs, one per staff member.
    basic_auth_users: str = Field(..., alias="BASIC_AUTH_USERS")

    cors_origins: str | None = Field(None, alias="CORS_ORIGINS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # --- Stock engine ---
    order_status_policy: StatusPolicy = Field(StatusPolicy.PERMISSIVE, alias="ORDER_STATUS_POLICY")
    transaction_retry_attempts: int = Field(3, ge=1, alias="TRANSACTION_RETRY_ATTEMPTS")
    low_stock_threshold: int = Field(2, ge=0, alias="LOW_STOCK_THRESHOLD")

    default_color: str = Field(DEFAULT_COLOR, alias="DEFAULT_COLOR")
    default_size: str = Field(DEFAULT_SIZE, alias="DEFAULT_SIZE")

    @field_validator("order_status_policy", mode="before")
    @classmethod
    def _normalize_policy(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().upper() or "INFO"
        return v

    @field_validator("default_color", "default_size", mode="before")
    @classmethod
    def _strip_label(cls, v: object) -> object:
        if isinstance(v, str):
            label = v.strip()
            if not label:
                raise ValueError("Default variant labels must not be empty")
            return label
        return v

    @property
    def staff_credentials(self) -> dict[str, str]:
        """
        Parsed `BASIC_AUTH_USERS`.

        Entries without a `:` separator or with an empty user name are ignored.
        """
        out: dict[str, str] = {}
        for raw in self.basic_auth_users.split(","):
            user, sep, password = raw.strip().partition(":")
            if not sep or not user.strip():
                continue
            out[user.strip()] = password
        return out


@lru_cache
def get_settings() -> Settings:
    return Settings()
