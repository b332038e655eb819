"""
TagTune - Import Reconciler

Merges an externally supplied song list into a user's library without
duplicating entries.

External feeds do not agree on a payload shape: Apple Music style records
nest everything under ``attributes`` (``name``, ``artistName``,
``albumName``, ``artwork.url``) while other clients send flat ``title`` /
``artist`` / ``album`` fields.  ``normalize_record()`` maps both onto one
``ExternalSongRecord`` so nothing past this module sees the variation.
"""

from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from tagtune.config import UNKNOWN_ALBUM, UNKNOWN_ARTIST, UNKNOWN_TITLE
from tagtune.errors import InvalidArgument
from tagtune.models import ExternalSongRecord
from tagtune.store.base import EntityStore

_ID_KEYS = ("id", "externalId", "external_id", "apple_music_id")


def _first(*values: Any) -> Optional[str]:
    """Return the first value that is a non-empty string (numbers are stringified)."""
    for value in values:
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (int, float)):
            value = str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def normalize_record(raw: Any, index: int = 0) -> ExternalSongRecord:
    """Map one external song payload onto the canonical record.

    Raises ``InvalidArgument`` when the payload is not an object or carries
    no external id.
    """
    if not isinstance(raw, dict):
        raise InvalidArgument(f"Song at index {index} must be an object")

    attributes = raw.get("attributes")
    if not isinstance(attributes, dict):
        attributes = {}
    artwork = attributes.get("artwork")
    if not isinstance(artwork, dict):
        artwork = {}

    external_id = _first(*(raw.get(key) for key in _ID_KEYS))
    if external_id is None:
        raise InvalidArgument(f"Song at index {index} is missing an id")

    return ExternalSongRecord(
        external_id=external_id,
        title=_first(attributes.get("name"), raw.get("title")) or UNKNOWN_TITLE,
        artist=_first(attributes.get("artistName"), raw.get("artist"))
        or UNKNOWN_ARTIST,
        album=_first(attributes.get("albumName"), raw.get("album")) or UNKNOWN_ALBUM,
        artwork_url=_first(
            artwork.get("url"), raw.get("artworkUrl"), raw.get("artwork_url")
        ),
    )


def normalize_records(songs: Any) -> List[ExternalSongRecord]:
    """Validate and normalise a whole batch before anything is written."""
    if not isinstance(songs, (list, tuple)):
        raise InvalidArgument("Songs array required")
    return [normalize_record(raw, i) for i, raw in enumerate(songs)]


async def import_songs(
    store: EntityStore, user_id: int, songs: Sequence[Dict[str, Any]]
) -> int:
    """
    Import *songs* into the library of *user_id*.

    Records are processed in input order; a song whose external id is
    already in the user's library is skipped and never overwritten.  The
    batch is not atomic: a store failure part-way leaves the prefix
    imported, which is harmless because re-importing is idempotent.

    Returns the number of records submitted, not the number inserted.
    """
    records = normalize_records(songs)

    inserted = 0
    for record in records:
        if await store.insert_song_if_absent(user_id, record):
            inserted += 1

    logger.info(
        "📥 Import for user {}: {} submitted, {} new, {} already present",
        user_id,
        len(records),
        inserted,
        len(records) - inserted,
    )
    return len(records)
