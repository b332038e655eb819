"""
TagTune - Song Query Engine

Search, AND-tag filtering and pagination for the song listing.
"""

from typing import Iterable, List, Optional, Union

from tagtune.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from tagtune.errors import InvalidArgument
from tagtune.models import Song, SongPage
from tagtune.store.base import EntityStore, fits_row_id


def parse_tag_names(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Turn ``"Pop, Chill,,Pop"`` (or a list) into ``["Pop", "Chill"]``.

    Entries are stripped, blanks dropped and duplicates collapsed; first
    occurrence order is kept.
    """
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    names: List[str] = []
    for part in parts:
        name = str(part).strip()
        if name and name not in names:
            names.append(name)
    return names


async def attach_tags(store: EntityStore, songs: List[Song]) -> List[Song]:
    """Fill each song's ``tags`` with its tag names, in tag display order."""
    tag_map = await store.tag_names_for_songs([s.id for s in songs])
    for song in songs:
        song.tags = tag_map.get(song.id, [])
    return songs


async def list_songs(
    store: EntityStore,
    user_id: int,
    search: Optional[str] = None,
    tag_names: Union[str, Iterable[str], None] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> SongPage:
    """
    Return one page of the user's songs.

    - *search* keeps songs whose title or artist contains the text,
      case-insensitively.
    - *tag_names* keeps songs carrying **all** of the named tags.  Unknown
      names simply match nothing.
    - Songs are ordered by title then id, so identical queries always
      return identical pages.
    - *page_size* must be between 1 and ``MAX_PAGE_SIZE``; the offset is
      always ``(page - 1) * page_size``.
    - ``has_more`` is True when the page is full.  That is an
      approximation: a full last page still reports ``has_more``.
    """
    if isinstance(page_size, bool) or not isinstance(page_size, int):
        raise InvalidArgument("limit must be an integer")
    if page_size <= 0:
        raise InvalidArgument("limit must be greater than 0")
    if page_size > MAX_PAGE_SIZE:
        raise InvalidArgument(f"limit must be at most {MAX_PAGE_SIZE}")
    page = max(int(page), 1)

    search_text = search.strip() if search else None
    names = parse_tag_names(tag_names)

    offset = (page - 1) * page_size
    if not fits_row_id(offset):
        # No library is that large
        return SongPage(songs=[], page=page, limit=page_size, has_more=False)

    songs = await store.search_songs(
        user_id,
        search=search_text or None,
        tag_names=names,
        limit=page_size,
        offset=offset,
    )
    await attach_tags(store, songs)

    return SongPage(
        songs=songs,
        page=page,
        limit=page_size,
        has_more=len(songs) == page_size,
    )
