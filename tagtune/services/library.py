"""
TagTune - Library Aggregator

Groups a user's songs into album and artist summaries for browsing, and
lists the songs of one album or artist.

Grouping and sorting happen here in Python on top of ``list_songs()`` so
that both store backends produce identical summaries.
"""

from typing import Any, Dict, List, Optional, Tuple

from tagtune.errors import InvalidArgument
from tagtune.models import Song
from tagtune.services.query import attach_tags
from tagtune.store.base import EntityStore

ORGANIZE_KINDS = ("albums", "artists")
CATEGORY_KINDS = ("album", "artist")


def display_sort_key(text: str) -> Tuple[str, str]:
    """Locale-style ordering: case-insensitive first, exact text as tie-break."""
    return (text.casefold(), text)


def _add_artwork(urls: List[str], url: Optional[str]) -> None:
    if url and url not in urls:
        urls.append(url)


def group_albums(songs: List[Song]) -> List[Dict[str, Any]]:
    """Group by ``(album, artist)``; same-named albums by different artists stay apart."""
    groups: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for song in sorted(songs, key=lambda s: s.id):
        if not song.album or not song.artist:
            continue
        group = groups.setdefault(
            (song.album, song.artist),
            {
                "name": song.album,
                "artist": song.artist,
                "song_count": 0,
                "artwork_urls": [],
            },
        )
        group["song_count"] += 1
        _add_artwork(group["artwork_urls"], song.artwork_url)

    return sorted(
        groups.values(),
        key=lambda g: display_sort_key(g["name"]) + display_sort_key(g["artist"]),
    )


def group_artists(songs: List[Song]) -> List[Dict[str, Any]]:
    """Group by artist name."""
    groups: Dict[str, Dict[str, Any]] = {}
    for song in sorted(songs, key=lambda s: s.id):
        if not song.artist:
            continue
        group = groups.setdefault(
            song.artist,
            {"name": song.artist, "song_count": 0, "artwork_urls": []},
        )
        group["song_count"] += 1
        _add_artwork(group["artwork_urls"], song.artwork_url)

    return sorted(groups.values(), key=lambda g: display_sort_key(g["name"]))


async def organize(store: EntityStore, user_id: int, kind: str) -> List[Dict[str, Any]]:
    """Return album or artist summaries for *user_id*.

    Songs with an empty album (albums view) or empty artist (both views)
    are left out.
    """
    if kind not in ORGANIZE_KINDS:
        raise InvalidArgument('Invalid organization type. Use "albums" or "artists"')

    songs = await store.list_songs(user_id)
    if kind == "albums":
        return group_albums(songs)
    return group_artists(songs)


async def songs_by_category(
    store: EntityStore,
    user_id: int,
    kind: str,
    name: str,
    artist: Optional[str] = None,
) -> List[Song]:
    """
    List the songs of one artist or album, with tags attached.

    Artist listings are ordered by album then title; album listings by
    title alone, since no track numbers are stored.
    """
    if kind not in CATEGORY_KINDS:
        raise InvalidArgument('Invalid type. Use "album" or "artist"')

    if kind == "artist":
        songs = await store.list_songs(user_id, artist=name)
        songs.sort(key=lambda s: (s.album, s.title, s.id))
    else:
        songs = await store.list_songs(user_id, album=name, artist=artist or None)
        songs.sort(key=lambda s: (s.title, s.id))

    return await attach_tags(store, songs)
