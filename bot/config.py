"""
Configuration for the bookkeeping bot.

Uses pydantic-settings so every value can come from the environment or a
.env file. Nothing here is required at import time: a missing WhatsApp token
only means replies cannot be delivered, and a missing Groq key only disables
voice notes.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WhatsAppSettings(BaseSettings):
    """WhatsApp Cloud API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WHATSAPP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True
    )

    phone_id: str = Field(
        default="",
        description="Phone number ID that sends the replies"
    )
    token: str = Field(
        default="",
        validation_alias=AliasChoices("WHATSAPP_TOKEN", "META_TOKEN"),
        description="Bearer token for the Graph API"
    )
    verify_token: str = Field(
        default="",
        validation_alias=AliasChoices("WHATSAPP_VERIFY_TOKEN", "VERIFY_TOKEN"),
        description="Token Meta sends back during webhook verification"
    )
    graph_version: str = Field(default="v21.0")
    timeout_seconds: float = Field(default=20.0, gt=0)

    @property
    def messages_url(self) -> str:
        return f"https://graph.facebook.com/{self.graph_version}/{self.phone_id}/messages"

    @property
    def media_url(self) -> str:
        return f"https://graph.facebook.com/{self.graph_version}"


class GroqSettings(BaseSettings):
    """Groq speech-to-text configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GROQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(default="", description="Groq API key")
    transcription_model: str = Field(default="whisper-large-v3")
    language: str = Field(default="pt")


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    database_path: str = Field(default="data.db", description="SQLite file")
    timezone: str = Field(
        default="America/Sao_Paulo",
        description="Timezone used to print dates in the history"
    )
    history_limit: int = Field(default=50, ge=1, le=500)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    port: int = Field(default=3000)


class Settings(BaseSettings):
    """
    Root settings container.

    Sub-settings are built on access so a partially configured environment
    still lets the web app start.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def whatsapp(self) -> WhatsAppSettings:
        return WhatsAppSettings()

    @property
    def groq(self) -> GroqSettings:
        return GroqSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """Report which integrations are configured. Useful for startup checks."""
    settings = get_settings()
    whatsapp = settings.whatsapp

    return {
        "whatsapp": bool(whatsapp.phone_id and whatsapp.token),
        "webhook_verification": bool(whatsapp.verify_token),
        "transcription": bool(settings.groq.api_key),
    }
