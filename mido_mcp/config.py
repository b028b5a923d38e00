"""Configuration management for the MIDO MCP Server."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_ORIGINS = "https://claude.ai,https://www.claude.ai,https://console.anthropic.com"


def split_csv(value: str | None) -> list[str]:
    """Split a comma separated env value, dropping blanks."""
    return [part.strip() for part in (value or "").split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    # Server Settings
    mcp_host: str = Field(default="0.0.0.0", description="MCP Server host")
    mcp_port: int = Field(default=8022, description="MCP Server port")
    server_name: str = Field(default="MIDO Macro Economic MCP Server")
    server_description: str = Field(default="Family Office Macro Dashboard")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    debug: bool = Field(default=False)

    # Admission
    # Empty token list disables bearer auth entirely.
    mcp_api_tokens: str = Field(
        default="",
        description="Comma separated bearer tokens accepted on /mcp and /mcp/info",
    )
    mcp_allowed_origins: str = Field(
        default=DEFAULT_ALLOWED_ORIGINS,
        description="Comma separated exact Origin values accepted on /mcp",
    )
    mcp_allow_missing_origin: bool = Field(
        default=True,
        description="Accept requests without an Origin header (same-origin and non-browser clients)",
    )

    # Sessions
    mcp_session_ttl_sec: int = Field(default=3600, description="Sliding session TTL")
    mcp_session_sweep_interval_sec: int = Field(
        default=60,
        description="How often expired sessions are purged from memory",
    )
    mcp_require_session: bool = Field(
        default=False,
        description="Reject non-initialize POSTs that carry no Mcp-Session-Id header",
    )

    # Notification stream
    mcp_sse_keepalive_sec: float = Field(default=15.0, description="SSE keep-alive comment interval")
    mcp_sse_max_duration_sec: float = Field(default=300.0, description="SSE stream lifetime cap")

    # Errors
    mcp_sanitize_internal_errors: bool = Field(
        default=False,
        description="Replace tool exception text in -32603 errors with a generic message",
    )

    # Market data
    yahoo_chart_url: str = Field(default="https://query1.finance.yahoo.com/v8/finance/chart/")
    market_cache_ttl_sec: int = Field(default=900)
    market_request_timeout_sec: int = Field(default=15)

    @property
    def api_token_list(self) -> list[str]:
        """Configured bearer tokens."""
        return split_csv(self.mcp_api_tokens)

    @property
    def allowed_origin_list(self) -> list[str]:
        return split_csv(self.mcp_allowed_origins)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
