import os
from pathlib import Path

import pytest

from config import KWORB_URL, PipelineConfig
from errors import ConfigurationError


def test_defaults_from_empty_environment():
    config = PipelineConfig.from_env({})
    assert config.manus_api_key is None
    assert config.manus_api_base_url == "https://api.manus.ai"
    assert config.chart_url == KWORB_URL
    assert config.chart_range == 30
    assert (config.poll_interval_ms, config.max_attempts) == (30_000, 60)
    assert config.inter_request_delay_ms == 1_000
    assert config.data_dir == Path("data")


def test_values_from_environment():
    config = PipelineConfig.from_env(
        {
            "MANUS_API_KEY": " token ",
            "YOUTUBE_API_KEY": "yt",
            "DATA_DIR": "/tmp/charts",
            "CHART_RANGE": "50",
            "POLL_INTERVAL_MS": "500",
            "MAX_ATTEMPTS": "3",
            "INTER_REQUEST_DELAY_MS": "0",
        }
    )
    assert config.require_manus_key() == "token"
    assert config.require_youtube_key() == "yt"
    assert config.data_dir == Path("/tmp/charts")
    assert (config.chart_range, config.poll_interval_ms, config.max_attempts) == (50, 500, 3)
    assert config.inter_request_delay_ms == 0


@pytest.mark.parametrize(
    "env",
    [{"MAX_ATTEMPTS": "many"}, {"MAX_ATTEMPTS": "0"}, {"POLL_INTERVAL_MS": "-1"}],
)
def test_invalid_numbers_are_rejected(env):
    with pytest.raises(ConfigurationError):
        PipelineConfig.from_env(env)


def test_missing_credentials_are_fatal():
    config = PipelineConfig.from_env({})
    with pytest.raises(ConfigurationError, match="MANUS_API_KEY"):
        config.require_manus_key()
    with pytest.raises(ConfigurationError, match="YOUTUBE_API_KEY"):
        config.require_youtube_key()


def test_with_overrides_ignores_none():
    config = PipelineConfig().with_overrides(data_dir=None, output_dir=Path("site"))
    assert config.data_dir == Path("data")
    assert config.output_dir == Path("site")


def test_from_env_reads_dotenv_file(tmp_path, monkeypatch):
    monkeypatch.setattr(os, "environ", {k: v for k, v in os.environ.items() if k != "CHART_RANGE"})
    dotenv_file = tmp_path / ".env"
    dotenv_file.write_text("CHART_RANGE=7\n", encoding="utf-8")
    config = PipelineConfig.from_env(dotenv_path=str(dotenv_file))
    assert config.chart_range == 7
