"""
TagTune - In-memory entity store

Process-local backend used for development, demos and tests.  It mirrors
``SQLiteStore`` operation for operation, including ordering and
tie-breaks, so the rest of the application cannot tell them apart.

No method awaits between reading and writing its collections, so the event
loop serialises every operation; that is what makes ``set_tag_order`` and
the insert-if-absent methods atomic here.
"""

from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from tagtune.errors import Conflict
from tagtune.models import ExternalSongRecord, Song, Tag, User, utc_timestamp
from tagtune.store.base import (
    EntityStore,
    contains_text,
    name_key,
    plan_tag_order,
    tag_sort_key,
)


class MemoryStore(EntityStore):
    """Entity store holding everything in Python collections."""

    backend = "memory"

    def __init__(self) -> None:
        self._users: Dict[int, User] = {}
        self._songs: Dict[int, Song] = {}
        self._tags: Dict[int, Tag] = {}
        # (external_id, user_id) -> song id
        self._song_index: Dict[Tuple[str, int], int] = {}
        # song_id -> {tag_id: created_at}, in insertion order
        self._song_tags: Dict[int, Dict[int, str]] = {}
        self._next_user_id = 1
        self._next_song_id = 1
        self._next_tag_id = 1

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    async def get_or_create_user(
        self,
        provider_id: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Tuple[User, bool]:
        for user in self._users.values():
            if user.provider_id == provider_id:
                return replace(user), False

        user = User(
            id=self._next_user_id,
            provider_id=provider_id,
            email=email,
            display_name=display_name,
            created_at=utc_timestamp(),
        )
        self._next_user_id += 1
        self._users[user.id] = user
        logger.success(f"✅ User created (id={user.id}): {provider_id}")
        return replace(user), True

    async def get_user(self, user_id: int) -> Optional[User]:
        user = self._users.get(user_id)
        return replace(user) if user else None

    # ------------------------------------------------------------------
    # Songs
    # ------------------------------------------------------------------
    async def insert_song_if_absent(
        self, user_id: int, record: ExternalSongRecord
    ) -> bool:
        key = (record.external_id, user_id)
        if key in self._song_index:
            logger.debug(
                "Song {} already in library of user {}, skipping",
                record.external_id,
                user_id,
            )
            return False

        song = Song(
            id=self._next_song_id,
            external_id=record.external_id,
            title=record.title,
            artist=record.artist,
            album=record.album,
            user_id=user_id,
            artwork_url=record.artwork_url,
            created_at=utc_timestamp(),
        )
        self._next_song_id += 1
        self._songs[song.id] = song
        self._song_index[key] = song.id
        logger.debug("Song added for user {}: {} - {}", user_id, song.title, song.artist)
        return True

    def _owned_songs(self, user_id: int) -> List[Song]:
        return [s for s in self._songs.values() if s.user_id == user_id]

    def _tag_names_of(self, song_id: int, user_id: Optional[int] = None) -> List[str]:
        tags = [
            self._tags[tag_id]
            for tag_id in self._song_tags.get(song_id, {})
            if user_id is None or self._tags[tag_id].user_id == user_id
        ]
        return [t.name for t in sorted(tags, key=tag_sort_key)]

    async def search_songs(
        self,
        user_id: int,
        search: Optional[str] = None,
        tag_names: Sequence[str] = (),
        limit: int = 50,
        offset: int = 0,
    ) -> List[Song]:
        songs = self._owned_songs(user_id)

        if search:
            needle = search.casefold()
            songs = [
                s
                for s in songs
                if contains_text(s.title, needle) or contains_text(s.artist, needle)
            ]

        wanted = set(tag_names)
        if wanted:
            songs = [
                s for s in songs if wanted <= set(self._tag_names_of(s.id, user_id))
            ]

        songs.sort(key=lambda s: (s.title, s.id))
        return [replace(s, tags=[]) for s in songs[offset : offset + limit]]

    async def list_songs(
        self,
        user_id: int,
        album: Optional[str] = None,
        artist: Optional[str] = None,
    ) -> List[Song]:
        songs = [
            s
            for s in self._owned_songs(user_id)
            if (album is None or s.album == album)
            and (artist is None or s.artist == artist)
        ]
        songs.sort(key=lambda s: s.id)
        return [replace(s, tags=[]) for s in songs]

    async def get_song(self, user_id: int, song_id: int) -> Optional[Song]:
        song = self._songs.get(song_id)
        if song is None or song.user_id != user_id:
            return None
        return replace(song, tags=[])

    async def count_songs(self, user_id: int) -> int:
        return len(self._owned_songs(user_id))

    async def tag_names_for_songs(self, song_ids: Sequence[int]) -> Dict[int, List[str]]:
        return {song_id: self._tag_names_of(song_id) for song_id in song_ids}

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------
    def _owned_tags(self, user_id: int) -> List[Tag]:
        return sorted(
            (t for t in self._tags.values() if t.user_id == user_id), key=tag_sort_key
        )

    async def create_tag(self, user_id: int, name: str, color: str) -> Tag:
        key = name_key(name)
        owned = self._owned_tags(user_id)
        if any(name_key(t.name) == key for t in owned):
            raise Conflict("Tag name already exists")

        tag = Tag(
            id=self._next_tag_id,
            name=name,
            color=color,
            user_id=user_id,
            order_index=max((t.order_index for t in owned), default=-1) + 1,
            is_visible=True,
            created_at=utc_timestamp(),
        )
        self._next_tag_id += 1
        self._tags[tag.id] = tag
        logger.success(f"🏷️ Tag created (id={tag.id}) for user {user_id}: {name}")
        return replace(tag)

    async def get_tag(self, user_id: int, tag_id: int) -> Optional[Tag]:
        tag = self._tags.get(tag_id)
        if tag is None or tag.user_id != user_id:
            return None
        return replace(tag, song_count=0)

    async def list_tags(self, user_id: int) -> List[Tag]:
        counts: Dict[int, int] = {}
        for tag_ids in self._song_tags.values():
            for tag_id in tag_ids:
                counts[tag_id] = counts.get(tag_id, 0) + 1
        return [
            replace(t, song_count=counts.get(t.id, 0)) for t in self._owned_tags(user_id)
        ]

    async def add_song_tag(self, song_id: int, tag_id: int) -> bool:
        assigned = self._song_tags.setdefault(song_id, {})
        if tag_id in assigned:
            return False
        assigned[tag_id] = utc_timestamp()
        logger.info("🏷️ Song id={} +tag id={}", song_id, tag_id)
        return True

    async def remove_song_tag(self, song_id: int, tag_id: int) -> bool:
        if self._song_tags.get(song_id, {}).pop(tag_id, None) is None:
            return False
        logger.info("🏷️ Song id={} -tag id={}", song_id, tag_id)
        return True

    async def set_tag_order(self, user_id: int, tag_ids: Sequence[int]) -> int:
        current = self._owned_tags(user_id)
        for tag_id, index in plan_tag_order(current, tag_ids):
            self._tags[tag_id].order_index = index

        owned = {t.id for t in current}
        listed = len({t for t in tag_ids if t in owned})
        logger.info("↕️ Reordered {} tag(s) for user {}", listed, user_id)
        return listed

    async def set_tag_visibility(
        self, user_id: int, tag_id: int, is_visible: bool
    ) -> bool:
        tag = self._tags.get(tag_id)
        if tag is None or tag.user_id != user_id:
            return False
        tag.is_visible = is_visible
        logger.info(
            "👁️ Tag id={} visibility set to {} (user {})", tag_id, is_visible, user_id
        )
        return True
