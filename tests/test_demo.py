"""
TagTune - Demo Library Tests

Tests for tagtune/demo.py seeding against both store backends.
"""

from tagtune.demo import (
    DEMO_ASSIGNMENTS,
    DEMO_LIBRARY,
    DEMO_PROVIDER_ID,
    DEMO_SONGS,
    DEMO_TAGS,
    seed_demo_data,
)
from tagtune.services.importer import normalize_records
from tagtune.services.query import list_songs


class TestSeedDemoData:
    """Test seed_demo_data()."""

    async def test_seeds_once(self, store):
        assert await seed_demo_data(store) is True
        assert await seed_demo_data(store) is False

        user, created = await store.get_or_create_user(DEMO_PROVIDER_ID)
        assert created is False
        assert await store.count_songs(user.id) == len(DEMO_SONGS)
        assert len(await store.list_tags(user.id)) == len(DEMO_TAGS)

    async def test_tag_counts(self, store):
        await seed_demo_data(store)
        user, _ = await store.get_or_create_user(DEMO_PROVIDER_ID)
        counts = {t.name: t.song_count for t in await store.list_tags(user.id)}
        assert sum(counts.values()) == len(DEMO_ASSIGNMENTS)
        assert counts["Pop"] == 5
        assert counts["Road Trip"] == 1

    async def test_and_filter_on_demo_library(self, store):
        await seed_demo_data(store)
        user, _ = await store.get_or_create_user(DEMO_PROVIDER_ID)
        page = await list_songs(store, user.id, tag_names="Pop,Favorites")
        assert [s.title for s in page.songs] == ["Blinding Lights", "Good 4 U"]

    async def test_skips_when_demo_user_exists(self, store):
        await store.get_or_create_user(DEMO_PROVIDER_ID)
        assert await seed_demo_data(store) is False


class TestDemoLibrary:
    def test_sample_records_normalise(self):
        records = normalize_records(DEMO_LIBRARY)
        assert [r.external_id for r in records] == ["mock_song_1", "mock_song_2", "mock_song_3"]
        assert all(r.artwork_url for r in records)
