"""Runtime configuration for the chart pipeline."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from errors import ConfigurationError

KWORB_URL = "https://kworb.net/spotify/country/global_weekly.html"
DEFAULT_MANUS_API_BASE_URL = "https://api.manus.ai"


def _env_int(env: Mapping[str, str], name: str, default: int, *, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(str(raw).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_str(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class PipelineConfig:
    manus_api_key: Optional[str] = None
    manus_api_base_url: str = DEFAULT_MANUS_API_BASE_URL
    youtube_api_key: Optional[str] = None
    data_dir: Path = Path("data")
    output_dir: Path = Path("dist")
    template_dir: Path = Path("templates")
    chart_url: str = KWORB_URL
    chart_range: int = 30
    # 30 s x 60 attempts: a credits job may take up to half an hour
    poll_interval_ms: int = 30_000
    max_attempts: int = 60
    inter_request_delay_ms: int = 1_000
    request_timeout: int = 300
    search_max_results: int = 10
    search_region_code: str = "US"

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None, *, dotenv_path: Optional[str] = ".env"
    ) -> "PipelineConfig":
        if env is None:
            if dotenv_path:
                load_dotenv(dotenv_path=dotenv_path, override=False)
            env = os.environ

        return cls(
            manus_api_key=_env_str(env, "MANUS_API_KEY"),
            manus_api_base_url=_env_str(env, "MANUS_API_BASE_URL")
            or DEFAULT_MANUS_API_BASE_URL,
            youtube_api_key=_env_str(env, "YOUTUBE_API_KEY"),
            data_dir=Path(_env_str(env, "DATA_DIR") or "data"),
            output_dir=Path(_env_str(env, "OUTPUT_DIR") or "dist"),
            template_dir=Path(_env_str(env, "TEMPLATE_DIR") or "templates"),
            chart_url=_env_str(env, "CHART_URL") or KWORB_URL,
            chart_range=_env_int(env, "CHART_RANGE", 30, minimum=1),
            poll_interval_ms=_env_int(env, "POLL_INTERVAL_MS", 30_000),
            max_attempts=_env_int(env, "MAX_ATTEMPTS", 60, minimum=1),
            inter_request_delay_ms=_env_int(env, "INTER_REQUEST_DELAY_MS", 1_000),
            request_timeout=_env_int(env, "REQUEST_TIMEOUT", 300, minimum=1),
            search_max_results=_env_int(env, "SEARCH_MAX_RESULTS", 10, minimum=1),
            search_region_code=_env_str(env, "SEARCH_REGION_CODE") or "US",
        )

    def with_overrides(self, **changes) -> "PipelineConfig":
        """Return a copy with the non-None keyword values applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def require_manus_key(self) -> str:
        if not self.manus_api_key:
            raise ConfigurationError(
                "MANUS_API_KEY is not configured. Please set it in your environment."
            )
        return self.manus_api_key

    def require_youtube_key(self) -> str:
        if not self.youtube_api_key:
            raise ConfigurationError(
                "YOUTUBE_API_KEY is not configured. Please set it in your environment."
            )
        return self.youtube_api_key


__all__ = ["PipelineConfig", "KWORB_URL", "DEFAULT_MANUS_API_BASE_URL"]
