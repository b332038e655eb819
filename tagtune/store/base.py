"""
TagTune - Entity store interface

Both backends (``SQLiteStore`` and ``MemoryStore``) implement this contract
and must return identical results for identical data:

- Case-insensitive comparisons use ``str.casefold`` on both backends.
- Orderings compare text by code point and fall back to ``id``.
- Uniqueness invariants are enforced at the point of mutation:
  ``(external_id, user_id)`` for songs, ``(user_id, casefold(name))`` for
  tags and ``(song_id, tag_id)`` for assignments.

Every method is scoped by owner id where the entity has an owner.  Methods
that look an owned entity up return ``None`` when it is missing *or*
belongs to someone else; turning that into ``NotFound`` is the services'
job.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from tagtune.models import ExternalSongRecord, Song, Tag, User


#: Ids and offsets are bound as signed 64-bit SQLite INTEGERs
MAX_ROW_ID = 2**63 - 1


def fits_row_id(value: int) -> bool:
    """True when *value* can be bound as a SQLite INTEGER.

    No row can carry an id outside this range, so the services treat such
    ids as unknown instead of handing them to a backend.
    """
    return -MAX_ROW_ID - 1 <= value <= MAX_ROW_ID


def name_key(name: str) -> str:
    """Key used for case-insensitive tag name uniqueness."""
    return name.casefold()


def contains_text(haystack: Optional[str], needle_key: str) -> bool:
    """Case-insensitive substring test; *needle_key* must already be casefolded."""
    return needle_key in (haystack or "").casefold()


class EntityStore(ABC):
    """Owner-scoped access to users, songs, tags and song/tag assignments."""

    #: Short backend name reported by the health endpoint
    backend = "abstract"

    async def init(self) -> None:
        """Prepare the store (create schema, run migrations)."""

    async def close(self) -> None:
        """Release any resources held by the store."""

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    @abstractmethod
    async def get_or_create_user(
        self,
        provider_id: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Tuple[User, bool]:
        """Return ``(user, created)``; an existing user is never modified."""

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]:
        """Fetch a user by id."""

    # ------------------------------------------------------------------
    # Songs
    # ------------------------------------------------------------------
    @abstractmethod
    async def insert_song_if_absent(
        self, user_id: int, record: ExternalSongRecord
    ) -> bool:
        """Insert *record* unless ``(external_id, user_id)`` exists.

        Returns True when a row was inserted.  Existing rows are left
        untouched.
        """

    @abstractmethod
    async def search_songs(
        self,
        user_id: int,
        search: Optional[str] = None,
        tag_names: Sequence[str] = (),
        limit: int = 50,
        offset: int = 0,
    ) -> List[Song]:
        """Return one page of owned songs ordered by ``(title, id)``.

        *search* keeps songs whose title or artist contains it
        (case-insensitive).  *tag_names* keeps songs carrying every one of
        the named tags.  Returned songs do not have ``tags`` filled in.
        """

    @abstractmethod
    async def list_songs(
        self,
        user_id: int,
        album: Optional[str] = None,
        artist: Optional[str] = None,
    ) -> List[Song]:
        """Return all owned songs ordered by id, optionally matching album/artist exactly."""

    @abstractmethod
    async def get_song(self, user_id: int, song_id: int) -> Optional[Song]:
        """Fetch an owned song."""

    @abstractmethod
    async def count_songs(self, user_id: int) -> int:
        """Number of songs owned by *user_id*."""

    @abstractmethod
    async def tag_names_for_songs(self, song_ids: Sequence[int]) -> Dict[int, List[str]]:
        """Map each song id to its tag names in tag display order.

        Songs without tags map to an empty list.
        """

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------
    @abstractmethod
    async def create_tag(self, user_id: int, name: str, color: str) -> Tag:
        """Insert a tag at the end of the owner's order.

        Raises ``Conflict`` if the owner already has a tag with the same
        name (case-insensitively).
        """

    @abstractmethod
    async def get_tag(self, user_id: int, tag_id: int) -> Optional[Tag]:
        """Fetch an owned tag."""

    @abstractmethod
    async def list_tags(self, user_id: int) -> List[Tag]:
        """Owned tags with ``song_count``, ordered by ``(order_index, name, id)``."""

    @abstractmethod
    async def add_song_tag(self, song_id: int, tag_id: int) -> bool:
        """Insert the pair if absent.  Returns True when a row was inserted."""

    @abstractmethod
    async def remove_song_tag(self, song_id: int, tag_id: int) -> bool:
        """Delete the pair if present.  Returns True when a row was deleted."""

    @abstractmethod
    async def set_tag_order(self, user_id: int, tag_ids: Sequence[int]) -> int:
        """Atomically reposition the owner's tags.

        Owned ids in *tag_ids* take positions ``0..n-1`` in list order
        (duplicates keep their first position, foreign ids are ignored);
        owned tags not listed follow in their previous relative order.
        Returns the number of listed tags that were repositioned.
        """

    @abstractmethod
    async def set_tag_visibility(
        self, user_id: int, tag_id: int, is_visible: bool
    ) -> bool:
        """Update the flag.  Returns False if the tag is not owned."""


def plan_tag_order(current: Sequence[Tag], tag_ids: Sequence[int]) -> List[Tuple[int, int]]:
    """Compute ``(tag_id, order_index)`` pairs for a reorder request.

    *current* must be the owner's tags in their present display order.
    Shared by both backends so they agree on the resulting order.
    """
    owned = {t.id for t in current}
    listed: List[int] = []
    seen = set()
    for tag_id in tag_ids:
        if tag_id in owned and tag_id not in seen:
            seen.add(tag_id)
            listed.append(tag_id)
    rest = [t.id for t in current if t.id not in seen]
    return [(tag_id, index) for index, tag_id in enumerate(listed + rest)]


def tag_sort_key(tag: Tag):
    """Display order of tags: position, then name, then id."""
    return (tag.order_index, tag.name, tag.id)
