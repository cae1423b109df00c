from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings

DEFAULT_API_BASE_URL = "http://localhost:3000/api"
DEFAULT_PUSH_URL = "http://localhost:3000"

# Project root (parent of marketsync/) - used so .env is found regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Explicitly load .env into os.environ so it works in tests and subprocesses
load_dotenv(_PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    app_name: str = "market-sync"
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENV", "ENVIRONMENT"),
    )
    log_level: str = Field(default="INFO", json_schema_extra={"env": "LOG_LEVEL"})

    # REST
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL, json_schema_extra={"env": "API_BASE_URL"}
    )
    access_token: Optional[str] = Field(
        default=None, json_schema_extra={"env": "ACCESS_TOKEN"}
    )
    http_timeout_seconds: float = Field(
        default=15.0, gt=0, json_schema_extra={"env": "HTTP_TIMEOUT_SECONDS"}
    )

    # Push channel (Socket.IO)
    push_url: Optional[str] = Field(default=None, json_schema_extra={"env": "PUSH_URL"})
    push_connect_timeout_seconds: float = Field(
        default=10.0, gt=0, json_schema_extra={"env": "PUSH_CONNECT_TIMEOUT_SECONDS"}
    )
    push_reconnection_attempts: int = Field(
        default=0, ge=0, json_schema_extra={"env": "PUSH_RECONNECTION_ATTEMPTS"}
    )  # 0 = retry forever

    # Notifications
    reconcile_interval_seconds: float = Field(
        default=30.0, gt=0, json_schema_extra={"env": "RECONCILE_INTERVAL_SECONDS"}
    )
    notification_page_size: int = Field(
        default=20, ge=1, le=100, json_schema_extra={"env": "NOTIFICATION_PAGE_SIZE"}
    )

    # Popups
    popup_default_duration_ms: int = Field(
        default=5000, json_schema_extra={"env": "POPUP_DEFAULT_DURATION_MS"}
    )
    popup_history_limit: int = Field(
        default=50, ge=0, json_schema_extra={"env": "POPUP_HISTORY_LIMIT"}
    )

    # Chat
    chat_max_attachments: int = Field(
        default=5, ge=1, json_schema_extra={"env": "CHAT_MAX_ATTACHMENTS"}
    )

    # LLM / LiteLLM
    llm_model: str = Field(
        default="gpt-4o-mini", json_schema_extra={"env": "LLM_MODEL"}
    )
    litellm_api_key: Optional[str] = Field(
        default=None, json_schema_extra={"env": "LITELLM_API_KEY"}
    )
    litellm_api_base: Optional[str] = Field(
        default=None, json_schema_extra={"env": "LITELLM_API_BASE"}
    )

    @model_validator(mode="before")
    def set_push_url(cls, values):
        """Default the push URL to the API host when it is not configured."""
        if not values.get("push_url"):
            api_base = values.get("api_base_url") or DEFAULT_API_BASE_URL
            values["push_url"] = _origin_of(api_base) or DEFAULT_PUSH_URL
        return values

    @property
    def is_production(self) -> bool:
        """Check if the current environment is production."""
        return self.environment.lower() == "production"

    @property
    def is_test(self) -> bool:
        """Check if the current environment is test."""
        return self.environment.lower() == "test"

    class ConfigDict:
        env_file = str(_PROJECT_ROOT / ".env")
        env_file_encoding = "utf-8"
        extra = "allow"  # Allow extra environment variables


def _origin_of(url: str) -> Optional[str]:
    """Return scheme://host[:port] of a URL, or None if it has no host."""
    scheme, sep, rest = url.partition("://")
    if not sep or not rest:
        return None
    host = rest.split("/", 1)[0]
    return f"{scheme}://{host}" if host else None


def get_settings() -> Settings:
    """Get application settings from the environment."""
    return Settings()
