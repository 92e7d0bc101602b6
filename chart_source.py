"""Scrape the global Spotify weekly chart published on kworb.net."""
from __future__ import annotations

import logging
from typing import List, Optional

import requests
from bs4 import BeautifulSoup
from requests import Session

from config import PipelineConfig
from errors import ChartSourceError
from models import ChartEntry

logger = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
_REQUEST_TIMEOUT = 30
UNKNOWN_ARTIST = "Unknown Artist"


def split_artist_title(text: str) -> tuple[str, str]:
    parts = text.split(" - ")
    if len(parts) >= 2:
        return parts[0].strip(), " - ".join(parts[1:]).strip()
    return UNKNOWN_ARTIST, text


def parse_chart_html(html: str, limit: int) -> List[ChartEntry]:
    """Read ``limit`` ranked rows from the first table of a kworb chart page."""
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table")
    if table is None:
        return []

    entries: List[ChartEntry] = []
    for index, row in enumerate(table.find_all("tr")):
        if index == 0:
            continue
        if len(entries) >= limit:
            break
        cells = row.find_all("td")
        if len(cells) < 2:
            continue
        text = cells[1].get_text().strip()
        if not text:
            continue
        artist, title = split_artist_title(text)
        entries.append(
            ChartEntry(rank=len(entries) + 1, artist=artist, title=title, raw_text=text)
        )
        logger.debug(f"{entries[-1].rank}. {artist} - {title}")
    return entries


class KworbChartSource:
    def __init__(self, config: PipelineConfig, session: Optional[Session] = None):
        self.url = config.chart_url
        self.limit = config.chart_range
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": _USER_AGENT})

    def fetch(self) -> List[ChartEntry]:
        logger.info(f"🌐 Scraping chart data from: {self.url} (range 1-{self.limit})")
        try:
            response = self.session.get(self.url, timeout=_REQUEST_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ChartSourceError(f"Failed to fetch {self.url}: {exc}") from exc

        entries = parse_chart_html(response.text, self.limit)
        if not entries:
            raise ChartSourceError(
                "No chart data found. Website structure might have changed."
            )
        logger.info(f"✅ Scraped {len(entries)} chart entries")
        return entries


__all__ = ["KworbChartSource", "parse_chart_html", "split_artist_title", "UNKNOWN_ARTIST"]
