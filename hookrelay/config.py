"""hookrelay configuration."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven settings for the webhook relay."""

    # Messaging platform
    validation_token: str = ""
    page_access_token: str = ""
    app_secret: str = ""
    send_api_url: str = "https://graph.facebook.com/v2.6/me/messages"
    reply_metadata: str = "DEVELOPER_DEFINED_METADATA"
    local_message_path: str = "/"
    http_timeout: float = 10.0

    # Error reporting (sink is only registered when a token is set)
    rollbar_token: str = ""
    environment: str = "development"

    # Analytics
    ga_tracking_code: str = ""
    analytics_url: str = "https://www.google-analytics.com/batch"

    # Console + request log filtering
    console_log_level: str = "debug"
    console_colorize: bool = False
    excluded_path_prefixes: list[str] = ["/css", "/javascripts", "/img"]
    healthcheck_user_agents: list[str] = ["ELB-HealthChecker"]

    model_config = {"env_prefix": "HOOKRELAY_", "env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()
