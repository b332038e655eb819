"""
TagTune - Domain records

Plain dataclasses shared by both store backends and the services.  Stores
build these from database rows (or keep them directly, for the memory
store); the API serialises them with ``to_dict()``.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utc_timestamp() -> str:
    """Return the current UTC time in SQLite's ``CURRENT_TIMESTAMP`` format."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class User:
    """An account anchored on an external provider id."""

    id: int
    provider_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    created_at: str = ""

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "displayName": self.display_name,
        }


@dataclass
class ExternalSongRecord:
    """Canonical form of one song coming from an import feed."""

    external_id: str
    title: str
    artist: str
    album: str
    artwork_url: Optional[str] = None


@dataclass
class Song:
    """A song in one user's library."""

    id: int
    external_id: str
    title: str
    artist: str
    album: str
    user_id: int
    artwork_url: Optional[str] = None
    created_at: str = ""
    # Names of the tags assigned to this song; filled by the services
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Tag:
    """A user-defined label with a display colour and position."""

    id: int
    name: str
    color: str
    user_id: int
    order_index: int = 0
    is_visible: bool = True
    created_at: str = ""
    # Number of songs carrying this tag; only filled by list_tags()
    song_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SongPage:
    """One page of a song listing."""

    songs: List[Song]
    page: int
    limit: int
    # True when the page came back full; there *may* be more rows
    has_more: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "songs": [s.to_dict() for s in self.songs],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "hasMore": self.has_more,
            },
        }
