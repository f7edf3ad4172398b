"""callgate — Engine configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. System config: /etc/callgate/config.yaml
    3. User config:   ~/.callgate/config.yaml
    4. An explicit config file passed to ``Settings.load()``
    5. Environment variables prefixed with CALLGATE_

Call ``Settings.load()`` once at host startup and hand the instance to
``Inspector.from_settings()``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from callgate.security.rate_limiter import RateLimitConfig

# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class EngineConfig(BaseModel):
    unregistered_method_policy: Literal["accept", "reject"] = Field(
        default="accept",
        description="Verdict for calls to methods with no registered validator.",
    )
    skip_read_only_inspection: bool = Field(
        default=False,
        description=(
            "When True, boundary checks admit read-only calls without running "
            "their rules (hosts where queries never reach inspection)."
        ),
    )
    record_rate_limits_on_accept: bool = Field(
        default=True,
        description="Record rate-limited calls once the whole rule list has passed.",
    )


class RateLimitSettings(BaseModel):
    cleanup_interval_seconds: Annotated[float, Field(ge=1.0, le=86_400.0)] = Field(
        default=300.0,
        description="Minimum seconds between opportunistic history cleanups.",
    )
    global_limit: RateLimitConfig | None = Field(
        default=None,
        description="Limit applied to every caller across all methods.",
    )
    method_limits: dict[str, RateLimitConfig] = Field(
        default_factory=dict,
        description="Per-method limits, checked before the global limit.",
    )


class SessionConfig(BaseModel):
    default_session_ttl_seconds: Annotated[float, Field(gt=0)] | None = Field(
        default=3600.0,
        description="Session lifetime when create_session() gets no override. None = no expiry.",
    )
    permission_cache_ttl_seconds: Annotated[float, Field(ge=0)] = Field(
        default=300.0,
        description="Lifetime of a caller's flattened-permission cache entry.",
    )
    cleanup_interval_seconds: Annotated[float, Field(ge=1.0, le=86_400.0)] = 300.0
    allow_anonymous_read: bool = Field(
        default=False,
        description="Grant anonymous callers the permissions matching anonymous_read_patterns.",
    )
    anonymous_read_patterns: list[str] = Field(
        default_factory=lambda: ["read", "*.read", "read:*"],
        description="fnmatch patterns of permissions open to anonymous callers.",
    )
    unknown_permission_mode: Literal["deny", "report"] = Field(
        default="deny",
        description=(
            "deny   — a permission no role defines is a plain denial. "
            "report — it is reported as UNKNOWN_PERMISSION."
        ),
    )


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CALLGATE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    engine: EngineConfig = Field(default_factory=EngineConfig)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from file + environment variables."""
        data: dict[str, object] = {}

        candidates = [
            Path("/etc/callgate/config.yaml"),
            Path.home() / ".callgate" / "config.yaml",
        ]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data.update(loaded)

        return cls(**data)


# Module-level singleton, replaced by ``Settings.load()`` at host startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
