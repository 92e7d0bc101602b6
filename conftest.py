"""Shared fakes for the remote task API and the video search provider."""
from __future__ import annotations

from typing import Dict, List, Optional

import pytest
import requests

from config import PipelineConfig
from models import VideoCandidate


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Stands in for ``requests.Session``; GET responses are served in order."""

    def __init__(self, post_response=None, get_responses=()):
        self.headers: Dict[str, str] = {}
        self.post_response = post_response
        self.get_responses = list(get_responses)
        self.posts: List[tuple] = []
        self.gets: List[str] = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json))
        if isinstance(self.post_response, Exception):
            raise self.post_response
        return self.post_response

    def get(self, url, timeout=None):
        self.gets.append(url)
        response = self.get_responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


def status(value: str, result=None, error=None) -> FakeResponse:
    return FakeResponse(payload={"status": value, "result": result, "error": error})


class FakeSearchProvider:
    def __init__(self, results: Dict[str, object], access_error: Optional[Exception] = None):
        self.results = results
        self.access_error = access_error
        self.access_checks = 0
        self.queries: List[tuple] = []

    def check_access(self) -> None:
        self.access_checks += 1
        if self.access_error is not None:
            raise self.access_error

    def search(self, artist: str, title: str) -> List[VideoCandidate]:
        self.queries.append((artist, title))
        result = self.results.get(title, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


@pytest.fixture
def config(tmp_path) -> PipelineConfig:
    return PipelineConfig(
        manus_api_key="secret-token",
        manus_api_base_url="https://agent.test",
        youtube_api_key="yt-key",
        data_dir=tmp_path / "data",
        output_dir=tmp_path / "dist",
        template_dir=tmp_path / "templates",
        poll_interval_ms=0,
        max_attempts=5,
        inter_request_delay_ms=250,
    )
