from __future__ import annotations

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    twilio_account_sid: Optional[str] = Field(None, alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: Optional[str] = Field(None, alias="TWILIO_AUTH_TOKEN")
    twilio_phone_from: Optional[str] = Field(None, alias="TWILIO_PHONE_FROM")
    twilio_phone_to: Optional[str] = Field(None, alias="TWILIO_PHONE_TO")
    telegram_token: Optional[str] = Field(None, alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: Optional[str] = Field(None, alias="TELEGRAM_CHAT_ID")
    log_file: str = Field("fare_monitor.log", alias="FARE_MONITOR_LOG")
    request_timeout_s: float = Field(15.0, alias="FARE_MONITOR_TIMEOUT_S")

    @field_validator(
        "twilio_account_sid",
        "twilio_auth_token",
        "twilio_phone_from",
        "twilio_phone_to",
        "telegram_token",
        "telegram_chat_id",
        mode="before",
    )
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("FARE_MONITOR_TIMEOUT_S must be greater than 0")
        return v

    @property
    def twilio_configured(self) -> bool:
        return all(
            (
                self.twilio_account_sid,
                self.twilio_auth_token,
                self.twilio_phone_from,
                self.twilio_phone_to,
            )
        )

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_token and self.telegram_chat_id)


@lru_cache()
def get_settings() -> Settings:
    """Return application settings loaded from the environment."""
    return Settings()  # type: ignore[call-arg]


__all__ = ["Settings", "get_settings"]
