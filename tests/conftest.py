"""
TagTune - Pytest Configuration & Shared Fixtures

Provides reusable fixtures for:
- Both entity store backends (memory and SQLite in a temp directory)
- A ``store`` fixture parametrised over both backends for contract tests
- Users with small, known libraries
- A FastAPI TestClient wired to a fresh store of each backend
- Sample external song records in the shapes import feeds send
"""

from pathlib import Path
from typing import Any, Dict, List

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from tagtune.main import create_app
from tagtune.models import ExternalSongRecord
from tagtune.store import MemoryStore, SQLiteStore

# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def memory_store() -> MemoryStore:
    """Provide an empty in-memory store."""
    store = MemoryStore()
    await store.init()
    return store


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> SQLiteStore:
    """Provide an empty SQLite store in a temporary directory."""
    store = SQLiteStore(tmp_path / "db" / "tagtune.db")
    await store.init()
    return store


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path: Path):
    """Run the test once against each backend."""
    if request.param == "memory":
        s = MemoryStore()
    else:
        s = SQLiteStore(tmp_path / "tagtune.db")
    await s.init()
    yield s
    await s.close()


# ---------------------------------------------------------------------------
# Library fixtures
# ---------------------------------------------------------------------------


def make_record(
    external_id: str,
    title: str,
    artist: str = "Artist",
    album: str = "Album",
    artwork_url: str | None = None,
) -> ExternalSongRecord:
    """Build a canonical record with sensible defaults."""
    return ExternalSongRecord(external_id, title, artist, album, artwork_url)


async def add_songs(store, user_id: int, records: List[ExternalSongRecord]) -> Dict[str, int]:
    """Insert *records* and return ``{external_id: song_id}``."""
    for record in records:
        await store.insert_song_if_absent(user_id, record)
    return {s.external_id: s.id for s in await store.list_songs(user_id)}


@pytest_asyncio.fixture
async def user(store):
    """A user with an empty library."""
    u, _ = await store.get_or_create_user("provider-alice", "alice@example.com", "Alice")
    return u


@pytest_asyncio.fixture
async def other_user(store):
    """A second user, for ownership isolation tests."""
    u, _ = await store.get_or_create_user("provider-bob", "bob@example.com", "Bob")
    return u


@pytest_asyncio.fixture
async def tagged_library(store, user) -> Dict[str, Any]:
    """
    Three songs and two tags:

    - S1 "Alpha"   tags A, B
    - S2 "Bravo"   tag  A
    - S3 "Charlie" tag  B
    """
    songs = await add_songs(
        store,
        user.id,
        [
            make_record("s1", "Alpha", "First Artist", "One"),
            make_record("s2", "Bravo", "Second Artist", "Two"),
            make_record("s3", "Charlie", "First Artist", "One"),
        ],
    )
    tag_a = await store.create_tag(user.id, "A", "#111111")
    tag_b = await store.create_tag(user.id, "B", "#222222")
    await store.add_song_tag(songs["s1"], tag_a.id)
    await store.add_song_tag(songs["s1"], tag_b.id)
    await store.add_song_tag(songs["s2"], tag_a.id)
    await store.add_song_tag(songs["s3"], tag_b.id)
    return {"songs": songs, "tags": {"A": tag_a, "B": tag_b}}


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(params=["memory", "sqlite"])
def client(request, tmp_path: Path):
    """TestClient bound to a fresh store of each backend (no demo data)."""
    if request.param == "memory":
        s = MemoryStore()
    else:
        s = SQLiteStore(tmp_path / "api.db")
    app = create_app(store=s, seed_demo=False)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def login(client):
    """
    Factory fixture: call with a provider id to sign in and get the
    ``Authorization`` headers for that user.
    """

    def _login(provider_id: str = "provider-alice") -> Dict[str, str]:
        resp = client.post("/api/auth/login", json={"providerId": provider_id})
        assert resp.status_code == 200
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login


# ---------------------------------------------------------------------------
# External record samples
# ---------------------------------------------------------------------------


@pytest.fixture
def apple_music_record() -> Dict[str, Any]:
    """A record in Apple Music library shape."""
    return {
        "id": "i.abc123",
        "attributes": {
            "name": "Song A",
            "artistName": "Artist 1",
            "albumName": "Album X",
            "artwork": {"url": "https://example.com/{w}x{h}bb.jpg"},
        },
    }


@pytest.fixture
def flat_record() -> Dict[str, Any]:
    """A record in the flat shape some clients send."""
    return {
        "id": "flat-1",
        "title": "Flat Song",
        "artist": "Flat Artist",
        "album": "Flat Album",
        "artwork_url": "https://example.com/flat.jpg",
    }
