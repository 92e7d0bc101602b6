"""Pick the official music video for each credited chart entry."""
from __future__ import annotations

import logging
import sys
import time
from typing import Any, Callable, List, Optional, Sequence

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from tqdm import tqdm

from config import PipelineConfig
from errors import SearchError
from models import CreditedEntry, EnrichedEntry, VideoCandidate, VideoMatch

logger = logging.getLogger(__name__)

MUSIC_CATEGORY_ID = "10"

OFFICIAL_CHANNEL_KEYWORDS = ("vevo", "records", "music", "official")
OFFICIAL_TITLE_KEYWORDS = ("official", "music video")
EXCLUDE_KEYWORDS = ("cover", "remix", "live", "acoustic", "karaoke", "instrumental")

OFFICIAL_CHANNEL_SCORE = 10
TITLE_MATCH_SCORE = 5
OFFICIAL_TITLE_SCORE = 3
EXCLUDED_KEYWORD_PENALTY = 5
FIRST_RESULT_BONUS = 2


def score_candidate(candidate: VideoCandidate, artist: str, title: str, position: int) -> int:
    """Score one search result; ``position`` is its 0-based index in provider order."""
    artist_lower = artist.lower()
    title_lower = title.lower()
    channel = candidate.channel_title.lower()
    video_title = candidate.title.lower()

    score = 0
    channel_keywords = OFFICIAL_CHANNEL_KEYWORDS + (artist_lower,)
    if any(keyword in channel for keyword in channel_keywords):
        score += OFFICIAL_CHANNEL_SCORE
    if artist_lower in video_title and title_lower in video_title:
        score += TITLE_MATCH_SCORE
    if any(keyword in video_title for keyword in OFFICIAL_TITLE_KEYWORDS):
        score += OFFICIAL_TITLE_SCORE
    if any(keyword in video_title for keyword in EXCLUDE_KEYWORDS):
        score -= EXCLUDED_KEYWORD_PENALTY
    if position == 0:
        score += FIRST_RESULT_BONUS
    return score


def select_best(
    candidates: Sequence[VideoCandidate], artist: str, title: str
) -> Optional[VideoMatch]:
    """Return the highest scoring candidate, or ``None`` for an empty list.

    Ties keep the earlier candidate. The winner is returned whatever its sign:
    a field of uniformly poor results still yields the least bad one.
    """
    best: Optional[VideoCandidate] = None
    best_score = 0
    for position, candidate in enumerate(candidates):
        score = score_candidate(candidate, artist, title, position)
        logger.debug(f"   {score:+d} {candidate.channel_title} | {candidate.title}")
        if best is None or score > best_score:
            best = candidate
            best_score = score
    if best is None:
        return None
    return VideoMatch.from_candidate(best)


def _candidate_from_item(item: dict) -> Optional[VideoCandidate]:
    video_id = (item.get("id") or {}).get("videoId")
    if not video_id:
        return None
    snippet = item.get("snippet") or {}
    return VideoCandidate(
        video_id=video_id,
        title=snippet.get("title") or "",
        channel_title=snippet.get("channelTitle") or "",
        published_at=snippet.get("publishedAt"),
        thumbnails=snippet.get("thumbnails") or {},
    )


class YouTubeSearchProvider:
    """YouTube Data API v3 search restricted to the music category."""

    def __init__(self, config: PipelineConfig, client: Any = None):
        self._config = config
        self._client = client
        self.max_results = config.search_max_results
        self.region_code = config.search_region_code

    @property
    def client(self):
        if self._client is None:
            self._client = build(
                "youtube",
                "v3",
                developerKey=self._config.require_youtube_key(),
                cache_discovery=False,
            )
        return self._client

    def search(self, artist: str, title: str) -> List[VideoCandidate]:
        query = f"{artist} {title}"
        logger.debug(f"🔍 Searching YouTube for: {query}")
        try:
            response = (
                self.client.search()
                .list(
                    part="snippet",
                    q=query,
                    type="video",
                    maxResults=self.max_results,
                    order="relevance",
                    videoCategoryId=MUSIC_CATEGORY_ID,
                    regionCode=self.region_code,
                )
                .execute()
            )
        except HttpError as exc:
            raise SearchError(f"YouTube API error for {query!r}: {exc}") from exc

        candidates = []
        for item in response.get("items", []) or []:
            candidate = _candidate_from_item(item)
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def check_access(self) -> None:
        try:
            self.client.search().list(part="snippet", q="test", maxResults=1).execute()
        except HttpError as exc:
            if "quota" in str(exc).lower():
                raise SearchError(
                    "YouTube API quota exceeded. Please try again tomorrow."
                ) from exc
            raise SearchError(f"YouTube API is not accessible: {exc}") from exc
        logger.info("✅ YouTube API is accessible")


class VideoMatcher:
    def __init__(
        self,
        config: PipelineConfig,
        provider,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.delay_seconds = config.inter_request_delay_ms / 1000
        self._sleep = sleep

    def pause(self) -> None:
        """Wait between two search requests to stay under the provider rate limit."""
        if self.delay_seconds > 0:
            logger.debug(f"⏳ Waiting {self.delay_seconds:.1f}s before next request...")
            self._sleep(self.delay_seconds)

    def check_access(self) -> None:
        self.provider.check_access()

    def search(self, artist: str, title: str) -> List[VideoCandidate]:
        return self.provider.search(artist, title)

    def select_best(
        self, candidates: Sequence[VideoCandidate], artist: str, title: str
    ) -> Optional[VideoMatch]:
        return select_best(candidates, artist, title)

    def match(self, entry: CreditedEntry) -> Optional[VideoMatch]:
        candidates = self.search(entry.artist, entry.title)
        if not candidates:
            logger.warning(f"⚠️ No videos found for: {entry.artist} {entry.title}")
            return None
        best = self.select_best(candidates, entry.artist, entry.title)
        if best is not None:
            logger.info(f"   ✓ {best.url} ({best.channel_title})")
        return best

    def enrich_all(self, entries: Sequence[CreditedEntry]) -> List[EnrichedEntry]:
        """Match every entry, one request at a time.

        A failure for one entry is logged and recorded as no match; the
        remaining entries are still processed.
        """
        total = len(entries)
        logger.info(f"📺 Collecting YouTube links for {total} songs...")
        results: List[EnrichedEntry] = []

        for index, entry in enumerate(
            tqdm(entries, desc="Videos", unit="song", disable=not sys.stdout.isatty())
        ):
            logger.info(f"📊 Processing {entry.rank}/{total}: {entry.artist} - {entry.title}")
            try:
                youtube = self.match(entry)
            except Exception as exc:  # noqa: BLE001
                logger.error(f"❌ Error processing {entry.artist} - {entry.title}: {exc}")
                youtube = None
            results.append(EnrichedEntry(**entry.model_dump(exclude={"youtube"}), youtube=youtube))

            if index < total - 1:
                self.pause()

        matched = sum(1 for item in results if item.youtube is not None)
        rate = round(matched / total * 100) if total else 0
        logger.info(f"✅ YouTube link collection completed: {matched}/{total} ({rate}%)")
        return results


__all__ = [
    "VideoMatcher",
    "YouTubeSearchProvider",
    "score_candidate",
    "select_best",
    "OFFICIAL_CHANNEL_KEYWORDS",
    "OFFICIAL_TITLE_KEYWORDS",
    "EXCLUDE_KEYWORDS",
]
