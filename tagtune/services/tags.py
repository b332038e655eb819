"""
TagTune - Tag Lifecycle Manager

Create, assign, unassign, reorder, hide/show and list a user's tags.

Assign and unassign share one ownership policy: if the song or the tag is
missing or belongs to another user the call fails with ``NotFound``.
Unassigning a pair that is not assigned is a no-op.
"""

from typing import Any, List, Optional, Sequence

from loguru import logger

from tagtune.config import DEFAULT_TAG_COLOR, MAX_TAG_NAME_LENGTH
from tagtune.errors import InvalidArgument, NotFound
from tagtune.models import Tag
from tagtune.store.base import EntityStore, fits_row_id


def _require_id(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{field} must be an integer")
    return value


async def create_tag(
    store: EntityStore, user_id: int, name: Any, color: Optional[str] = None
) -> Tag:
    """Create a tag at the end of the user's order.

    Raises ``Conflict`` when the user already has a tag with that name,
    compared case-insensitively.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgument("Tag name required")
    name = name.strip()
    if len(name) > MAX_TAG_NAME_LENGTH:
        raise InvalidArgument(
            f"Tag name must be at most {MAX_TAG_NAME_LENGTH} characters"
        )
    if color is not None and not isinstance(color, str):
        raise InvalidArgument("color must be a string")

    return await store.create_tag(user_id, name, color or DEFAULT_TAG_COLOR)


async def _check_ownership(
    store: EntityStore, user_id: int, song_id: Any, tag_id: Any
) -> None:
    song_id = _require_id(song_id, "songId")
    tag_id = _require_id(tag_id, "tagId")
    if not fits_row_id(song_id) or await store.get_song(user_id, song_id) is None:
        raise NotFound("Song", song_id)
    if not fits_row_id(tag_id) or await store.get_tag(user_id, tag_id) is None:
        raise NotFound("Tag", tag_id)


async def assign_tag(store: EntityStore, user_id: int, song_id: Any, tag_id: Any) -> bool:
    """Attach a tag to a song.  Re-assigning is a no-op; returns True if added."""
    await _check_ownership(store, user_id, song_id, tag_id)
    return await store.add_song_tag(song_id, tag_id)


async def remove_tag(store: EntityStore, user_id: int, song_id: Any, tag_id: Any) -> bool:
    """Detach a tag from a song.  Returns True if an assignment was removed."""
    await _check_ownership(store, user_id, song_id, tag_id)
    return await store.remove_song_tag(song_id, tag_id)


async def reorder_tags(store: EntityStore, user_id: int, tag_ids: Any) -> int:
    """
    Persist a new display order.

    ``tag_ids[i]`` gets position ``i``.  Ids the user does not own are
    ignored; owned tags missing from the list keep their relative order
    after the listed ones.  The whole order becomes visible at once.
    """
    if not isinstance(tag_ids, (list, tuple)):
        raise InvalidArgument("tagIds must be an array")
    ids: List[int] = [_require_id(t, "tagIds entries") for t in tag_ids]

    moved = await store.set_tag_order(user_id, [t for t in ids if fits_row_id(t)])
    if moved < len(set(ids)):
        logger.debug(
            "Ignored {} tag id(s) not owned by user {}", len(set(ids)) - moved, user_id
        )
    return moved


async def set_visibility(
    store: EntityStore, user_id: int, tag_id: Any, is_visible: Any
) -> None:
    """Show or hide a tag."""
    if not isinstance(is_visible, bool):
        raise InvalidArgument("isVisible must be a boolean")
    tag_id = _require_id(tag_id, "tag id")
    if not fits_row_id(tag_id) or not await store.set_tag_visibility(
        user_id, tag_id, is_visible
    ):
        raise NotFound("Tag", tag_id)


async def list_tags(store: EntityStore, user_id: int) -> Sequence[Tag]:
    """All of the user's tags with song counts, in display order."""
    return await store.list_tags(user_id)
