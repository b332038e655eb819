"""
TagTune - Entity Store Tests

Contract tests run against both backends, plus SQLite-specific checks:
- User provisioning is insert-if-absent
- Song and tag uniqueness
- Owner scoping of lookups
- Identical concurrent writes leave one row and report Conflict to the losers
- Schema migrations for databases created by older versions
- Persistence across store instances
- sqlite errors surface as Internal
"""

import asyncio
import sqlite3
from pathlib import Path

import pytest

from tagtune.errors import Conflict, Internal
from tagtune.models import Tag
from tagtune.services import tags as tag_service
from tagtune.services.importer import import_songs
from tagtune.store import MemoryStore, SQLiteStore, create_store
from tagtune.store.base import MAX_ROW_ID, fits_row_id, plan_tag_order, tag_sort_key
from tests.conftest import add_songs, make_record

# ===========================================================================
# Contract tests (both backends)
# ===========================================================================


class TestUsers:
    """Test user provisioning."""

    async def test_create_then_reuse(self, store):
        first, created = await store.get_or_create_user("p1", "a@b.c", "A")
        again, created_again = await store.get_or_create_user("p1", "x@y.z", "X")
        assert created is True
        assert created_again is False
        assert again.id == first.id
        assert again.email == "a@b.c"

    async def test_get_user(self, store):
        user, _ = await store.get_or_create_user("p1")
        assert (await store.get_user(user.id)).provider_id == "p1"
        assert await store.get_user(9999) is None


class TestSongs:
    """Test song storage."""

    async def test_insert_if_absent(self, store, user):
        record = make_record("x1", "Title")
        assert await store.insert_song_if_absent(user.id, record) is True
        assert await store.insert_song_if_absent(user.id, make_record("x1", "Other")) is False
        (song,) = await store.list_songs(user.id)
        assert song.title == "Title"

    async def test_get_song_is_owner_scoped(self, store, user, other_user):
        songs = await add_songs(store, user.id, [make_record("x1", "Mine")])
        assert (await store.get_song(user.id, songs["x1"])).title == "Mine"
        assert await store.get_song(other_user.id, songs["x1"]) is None

    async def test_list_songs_filters_exactly(self, store, user):
        await add_songs(
            store,
            user.id,
            [
                make_record("x1", "One", "Artist", "Album"),
                make_record("x2", "Two", "artist", "album"),
            ],
        )
        assert [s.title for s in await store.list_songs(user.id, artist="Artist")] == ["One"]
        assert [s.title for s in await store.list_songs(user.id, album="album")] == ["Two"]

    async def test_artwork_round_trip(self, store, user):
        await add_songs(store, user.id, [make_record("x1", "T", artwork_url="https://a/b.jpg")])
        (song,) = await store.list_songs(user.id)
        assert song.artwork_url == "https://a/b.jpg"

    async def test_tag_names_for_songs_without_tags(self, store, user):
        songs = await add_songs(store, user.id, [make_record("x1", "T")])
        assert await store.tag_names_for_songs([songs["x1"]]) == {songs["x1"]: []}
        assert await store.tag_names_for_songs([]) == {}

    async def test_large_library_reimport(self, store, user, other_user):
        records = [make_record(f"x{i:04d}", f"Song {i:04d}") for i in range(300)]
        for record in records:
            await store.insert_song_if_absent(user.id, record)
        assert not any([await store.insert_song_if_absent(user.id, r) for r in records])
        assert await store.insert_song_if_absent(other_user.id, records[0]) is True
        assert await store.count_songs(user.id) == 300
        assert await store.count_songs(other_user.id) == 1

    async def test_tag_names_only_for_requested_songs(self, store, user, tagged_library):
        songs = tagged_library["songs"]
        names = await store.tag_names_for_songs([songs["s2"], songs["s3"]])
        assert names == {songs["s2"]: ["A"], songs["s3"]: ["B"]}


class TestTags:
    """Test tag storage."""

    async def test_conflict_is_case_insensitive(self, store, user):
        await store.create_tag(user.id, "Straße", "#000000")
        with pytest.raises(Conflict):
            await store.create_tag(user.id, "STRASSE", "#000000")

    async def test_order_index_appends(self, store, user):
        a = await store.create_tag(user.id, "a", "#000000")
        b = await store.create_tag(user.id, "b", "#000000")
        assert (a.order_index, b.order_index) == (0, 1)

    async def test_add_and_remove_pair(self, store, user, tagged_library):
        song_id = tagged_library["songs"]["s2"]
        tag = tagged_library["tags"]["B"]
        assert await store.add_song_tag(song_id, tag.id) is True
        assert await store.add_song_tag(song_id, tag.id) is False
        assert await store.remove_song_tag(song_id, tag.id) is True
        assert await store.remove_song_tag(song_id, tag.id) is False

    async def test_visibility_owner_scoped(self, store, user, other_user):
        tag = await store.create_tag(user.id, "t", "#000000")
        assert await store.set_tag_visibility(other_user.id, tag.id, False) is False
        assert await store.set_tag_visibility(user.id, tag.id, False) is True
        assert (await store.get_tag(user.id, tag.id)).is_visible is False


class TestConcurrency:
    """Identical requests racing each other leave exactly one row behind."""

    async def test_duplicate_create_tag(self, store, user):
        results = await asyncio.gather(
            *(store.create_tag(user.id, "Dup", "#000000") for _ in range(8)),
            return_exceptions=True,
        )
        created = [r for r in results if isinstance(r, Tag)]
        conflicts = [r for r in results if isinstance(r, Conflict)]
        assert len(created) == 1
        assert len(conflicts) == 7
        (tag,) = await store.list_tags(user.id)
        assert tag.id == created[0].id
        assert tag.order_index == 0

    async def test_duplicate_create_tag_through_service(self, store, user):
        results = await asyncio.gather(
            *(tag_service.create_tag(store, user.id, name) for name in ["Mix", "MIX", "mix"]),
            return_exceptions=True,
        )
        assert sum(isinstance(r, Tag) for r in results) == 1
        assert sum(isinstance(r, Conflict) for r in results) == 2

    async def test_duplicate_insert_song(self, store, user):
        record = make_record("x1", "Only Once")
        results = await asyncio.gather(
            *(store.insert_song_if_absent(user.id, record) for _ in range(8))
        )
        assert results.count(True) == 1
        assert await store.count_songs(user.id) == 1

    async def test_duplicate_imports(self, store, user):
        batch = [{"id": "a", "title": "A"}, {"id": "b", "title": "B"}]
        counts = await asyncio.gather(*(import_songs(store, user.id, batch) for _ in range(5)))
        assert counts == [2] * 5
        assert [s.external_id for s in await store.list_songs(user.id)] == ["a", "b"]

    async def test_duplicate_assign(self, store, user):
        songs = await add_songs(store, user.id, [make_record("x1", "T")])
        tag = await store.create_tag(user.id, "t", "#000000")
        results = await asyncio.gather(
            *(store.add_song_tag(songs["x1"], tag.id) for _ in range(6))
        )
        assert results.count(True) == 1
        (listed,) = await store.list_tags(user.id)
        assert listed.song_count == 1

    async def test_duplicate_user_provisioning(self, store):
        results = await asyncio.gather(
            *(store.get_or_create_user("provider-carol") for _ in range(6))
        )
        assert [created for _, created in results].count(True) == 1
        assert len({u.id for u, _ in results}) == 1


class TestFitsRowId:
    def test_bounds(self):
        assert fits_row_id(MAX_ROW_ID)
        assert fits_row_id(-MAX_ROW_ID - 1)
        assert not fits_row_id(MAX_ROW_ID + 1)
        assert not fits_row_id(-MAX_ROW_ID - 2)


class TestPlanTagOrder:
    """Test the reorder planner shared by both backends."""

    def _tags(self, *ids):
        return [Tag(id=i, name=str(i), color="", user_id=1, order_index=n) for n, i in enumerate(ids)]

    def test_listed_first_then_rest(self):
        assert plan_tag_order(self._tags(1, 2, 3, 4), [3, 1]) == [(3, 0), (1, 1), (2, 2), (4, 3)]

    def test_ignores_unknown_and_duplicates(self):
        assert plan_tag_order(self._tags(1, 2), [9, 2, 2, 1]) == [(2, 0), (1, 1)]

    def test_empty(self):
        assert plan_tag_order([], [1, 2]) == []

    def test_equal_positions_fall_back_to_name_then_id(self):
        tags = [
            Tag(id=1, name="b", color="", user_id=1),
            Tag(id=3, name="a", color="", user_id=1),
            Tag(id=2, name="a", color="", user_id=1),
        ]
        assert [t.id for t in sorted(tags, key=tag_sort_key)] == [2, 3, 1]


# ===========================================================================
# create_store
# ===========================================================================


class TestCreateStore:
    def test_mock_selects_memory(self, tmp_path: Path):
        assert isinstance(create_store(True, tmp_path / "x.db"), MemoryStore)

    def test_missing_path_selects_memory(self):
        assert isinstance(create_store(False, None), MemoryStore)

    def test_path_selects_sqlite(self, tmp_path: Path):
        store = create_store(False, tmp_path / "x.db")
        assert isinstance(store, SQLiteStore)
        assert store.backend == "sqlite"


# ===========================================================================
# SQLite specifics
# ===========================================================================


class TestSQLiteStore:
    """Checks that only make sense for the SQLite backend."""

    async def test_init_creates_parent_directory(self, tmp_path: Path):
        store = SQLiteStore(tmp_path / "nested" / "dir" / "tagtune.db")
        await store.init()
        assert (tmp_path / "nested" / "dir" / "tagtune.db").exists()

    async def test_init_is_idempotent(self, sqlite_store):
        await sqlite_store.init()
        await sqlite_store.init()

    async def test_data_survives_reopen(self, tmp_path: Path):
        path = tmp_path / "tagtune.db"
        first = SQLiteStore(path)
        await first.init()
        user, _ = await first.get_or_create_user("p1")
        await add_songs(first, user.id, [make_record("x1", "Persisted")])

        second = SQLiteStore(path)
        await second.init()
        (song,) = await second.list_songs(user.id)
        assert song.title == "Persisted"

    async def test_migrates_old_tags_table(self, tmp_path: Path):
        """A database whose tags table predates ordering and visibility."""
        path = tmp_path / "old.db"
        with sqlite3.connect(str(path)) as conn:
            conn.executescript(
                """
                CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    provider_id TEXT UNIQUE NOT NULL,
                    email TEXT,
                    display_name TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
                CREATE TABLE tags (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    name_key TEXT NOT NULL,
                    color TEXT NOT NULL DEFAULT '#3B82F6',
                    user_id INTEGER NOT NULL REFERENCES users(id),
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (user_id, name_key)
                );
                INSERT INTO users (provider_id) VALUES ('p1');
                INSERT INTO tags (name, name_key, user_id) VALUES ('Second', 'second', 1);
                INSERT INTO tags (name, name_key, user_id) VALUES ('First', 'first', 1);
                """
            )
            conn.commit()

        store = SQLiteStore(path)
        await store.init()
        tags = await store.list_tags(1)
        # Existing tags keep creation order after the migration
        assert [(t.name, t.order_index, t.is_visible) for t in tags] == [
            ("Second", 1, True),
            ("First", 2, True),
        ]

    async def test_sqlite_error_becomes_internal(self, tmp_path: Path):
        # A directory cannot be opened as a database file
        store = SQLiteStore(tmp_path)
        with pytest.raises(Internal):
            await store.count_songs(1)

    async def test_foreign_keys_enforced(self, sqlite_store):
        with pytest.raises(Internal):
            await sqlite_store.add_song_tag(12345, 67890)
