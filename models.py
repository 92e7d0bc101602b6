"""Core data models passed between the chart pipeline stages."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


TaskStatus = Literal["pending", "running", "completed", "failed"]


class TrackEntry(BaseModel):
    rank: int = Field(ge=1)
    artist: str
    title: str


class ChartEntry(TrackEntry):
    raw_text: Optional[str] = Field(default=None, alias="rawText")

    model_config = ConfigDict(populate_by_name=True)


class CreditLine(BaseModel):
    role: str = Field(min_length=1)
    people: str = Field(min_length=1)


class CreditedEntry(TrackEntry):
    album: str = ""
    credits: List[CreditLine] = Field(default_factory=list)


class VideoCandidate(BaseModel):
    video_id: str
    title: str = ""
    channel_title: str = ""
    published_at: Optional[str] = None
    thumbnails: Dict[str, Any] = Field(default_factory=dict)


class VideoMatch(BaseModel):
    video_id: str = Field(alias="videoId")
    url: str
    title: str
    channel_title: str = Field(alias="channelTitle")
    published_at: Optional[str] = Field(default=None, alias="publishedAt")
    thumbnails: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_candidate(cls, candidate: VideoCandidate) -> "VideoMatch":
        return cls(
            video_id=candidate.video_id,
            url=f"https://www.youtube.com/watch?v={candidate.video_id}",
            title=candidate.title,
            channel_title=candidate.channel_title,
            published_at=candidate.published_at,
            thumbnails=candidate.thumbnails,
        )


class EnrichedEntry(CreditedEntry):
    youtube: Optional[VideoMatch] = None


class RemoteTask(BaseModel):
    id: str
    status: TaskStatus
    result: Any = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")


class Snapshot(BaseModel):
    timestamp: str
    source: str
    range: Optional[int] = None
    count: int = 0
    data: List[Any] = Field(default_factory=list)


@dataclass
class PageStats:
    total_tracks: int
    tracks_with_videos: int
    unique_artists: int
    video_success_rate: int
    top_producers: Dict[str, int] = field(default_factory=dict)


def dump_entries(entries) -> List[dict]:
    """Serialize models with their wire (alias) keys for snapshot files."""
    return [entry.model_dump(mode="json", by_alias=True) for entry in entries]


__all__ = [
    "TaskStatus",
    "TrackEntry",
    "ChartEntry",
    "CreditLine",
    "CreditedEntry",
    "VideoCandidate",
    "VideoMatch",
    "EnrichedEntry",
    "RemoteTask",
    "Snapshot",
    "PageStats",
    "dump_entries",
]
