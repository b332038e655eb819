"""
TagTune - SQLite entity store

Embedded relational backend.  Uses aiosqlite for async operations within
FastAPI and plain sqlite3 for schema creation and migrations.

Uniqueness invariants live in the schema so that concurrent identical
requests cannot create duplicates:

- ``songs``     UNIQUE (external_id, user_id)
- ``tags``      UNIQUE (user_id, name_key) where name_key = casefold(name)
- ``song_tags`` PRIMARY KEY (song_id, tag_id)

Case-insensitive search uses a ``casefold()`` SQL function registered on
every connection so results match the memory store exactly.
"""

import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiosqlite
from loguru import logger

from tagtune.errors import Conflict, Internal
from tagtune.models import ExternalSongRecord, Song, Tag, User
from tagtune.store.base import EntityStore, name_key, plan_tag_order

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    provider_id TEXT UNIQUE NOT NULL,
    email TEXT,
    display_name TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS songs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT NOT NULL,
    title TEXT NOT NULL,
    artist TEXT NOT NULL,
    album TEXT NOT NULL DEFAULT '',
    artwork_url TEXT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (external_id, user_id)
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    name_key TEXT NOT NULL,
    color TEXT NOT NULL DEFAULT '#3B82F6',
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    order_index INTEGER NOT NULL DEFAULT 0,
    is_visible INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, name_key)
);

CREATE TABLE IF NOT EXISTS song_tags (
    song_id INTEGER NOT NULL REFERENCES songs(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (song_id, tag_id)
);

CREATE INDEX IF NOT EXISTS idx_songs_user_title ON songs(user_id, title);
CREATE INDEX IF NOT EXISTS idx_songs_user_artist ON songs(user_id, artist);
CREATE INDEX IF NOT EXISTS idx_song_tags_tag ON song_tags(tag_id);
"""

# ---------------------------------------------------------------------------
# Migration helpers
# ---------------------------------------------------------------------------
_MIGRATIONS = [
    # Migration 1: Tag ordering (databases created before tags were sortable)
    {
        "check": "SELECT COUNT(*) FROM pragma_table_info('tags') WHERE name='order_index'",
        "apply": [
            "ALTER TABLE tags ADD COLUMN order_index INTEGER NOT NULL DEFAULT 0",
            "UPDATE tags SET order_index = id",
        ],
        "description": "Add tags.order_index column",
    },
    # Migration 2: Tag visibility toggle
    {
        "check": "SELECT COUNT(*) FROM pragma_table_info('tags') WHERE name='is_visible'",
        "apply": [
            "ALTER TABLE tags ADD COLUMN is_visible INTEGER NOT NULL DEFAULT 1",
        ],
        "description": "Add tags.is_visible column",
    },
    # Migration 3: Index supporting list_tags() ordering
    {
        "check": "SELECT COUNT(*) FROM sqlite_master WHERE type='index' AND name='idx_tags_user_order'",
        "apply": [
            "CREATE INDEX IF NOT EXISTS idx_tags_user_order ON tags(user_id, order_index)",
        ],
        "description": "Add tags(user_id, order_index) index",
    },
]


def _run_migrations(conn: sqlite3.Connection) -> None:
    """Run any pending schema migrations."""
    for migration in _MIGRATIONS:
        cursor = conn.execute(str(migration["check"]))
        (count,) = cursor.fetchone()
        if count == 0:
            logger.info("🔄 Running migration: {}", migration["description"])
            for stmt in migration["apply"]:
                conn.execute(stmt)
            conn.commit()
            logger.success("✅ Migration applied: {}", migration["description"])


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------
def row_to_dict(row) -> Dict[str, Any]:
    """Convert a database row to a plain dictionary."""
    if row is None:
        return {}
    return dict(row)


def _user_from_row(row) -> User:
    r = row_to_dict(row)
    return User(
        id=r["id"],
        provider_id=r["provider_id"],
        email=r["email"],
        display_name=r["display_name"],
        created_at=str(r["created_at"] or ""),
    )


def _song_from_row(row) -> Song:
    r = row_to_dict(row)
    return Song(
        id=r["id"],
        external_id=r["external_id"],
        title=r["title"],
        artist=r["artist"],
        album=r["album"],
        user_id=r["user_id"],
        artwork_url=r["artwork_url"],
        created_at=str(r["created_at"] or ""),
    )


def _tag_from_row(row) -> Tag:
    r = row_to_dict(row)
    return Tag(
        id=r["id"],
        name=r["name"],
        color=r["color"],
        user_id=r["user_id"],
        order_index=r["order_index"],
        is_visible=bool(r["is_visible"]),
        created_at=str(r["created_at"] or ""),
        song_count=r.get("song_count", 0) or 0,
    )


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


class SQLiteStore(EntityStore):
    """Entity store backed by a single SQLite file."""

    backend = "sqlite"

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------
    async def init(self) -> None:
        """Create tables and run migrations."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                conn.executescript(SCHEMA_SQL)
                conn.commit()
                _run_migrations(conn)
            logger.success(f"✅ Database initialized at {self.db_path}")
        except Exception as e:
            logger.critical(f"❌ Failed to initialize database: {e}")
            raise

    @asynccontextmanager
    async def _connect(self):
        """Async context manager for an aiosqlite connection with row factory.

        Any sqlite error escaping the block is re-raised as ``Internal``.
        """
        try:
            db = await aiosqlite.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise Internal(f"Cannot open database: {e}") from e
        db.row_factory = aiosqlite.Row
        try:
            await db.execute("PRAGMA foreign_keys = ON")
            await db.create_function("casefold", 1, _casefold, deterministic=True)
            yield db
        except sqlite3.Error as e:
            raise Internal(f"Database error: {e}") from e
        finally:
            await db.close()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    async def get_or_create_user(
        self,
        provider_id: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Tuple[User, bool]:
        async with self._connect() as db:
            cursor = await db.execute(
                """
                INSERT OR IGNORE INTO users (provider_id, email, display_name)
                VALUES (?, ?, ?)
                """,
                (provider_id, email, display_name),
            )
            created = cursor.rowcount > 0
            await db.commit()
            cursor = await db.execute(
                "SELECT * FROM users WHERE provider_id = ?", (provider_id,)
            )
            row = await cursor.fetchone()
        user = _user_from_row(row)
        if created:
            logger.success(f"✅ User created (id={user.id}): {provider_id}")
        return user, created

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = await cursor.fetchone()
            return _user_from_row(row) if row else None

    # ------------------------------------------------------------------
    # Songs
    # ------------------------------------------------------------------
    async def insert_song_if_absent(
        self, user_id: int, record: ExternalSongRecord
    ) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                """
                INSERT OR IGNORE INTO songs
                    (external_id, title, artist, album, artwork_url, user_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.external_id,
                    record.title,
                    record.artist,
                    record.album,
                    record.artwork_url,
                    user_id,
                ),
            )
            await db.commit()
            inserted = cursor.rowcount > 0
        if inserted:
            logger.debug(
                "Song added for user {}: {} - {}", user_id, record.title, record.artist
            )
        else:
            logger.debug(
                "Song {} already in library of user {}, skipping",
                record.external_id,
                user_id,
            )
        return inserted

    async def search_songs(
        self,
        user_id: int,
        search: Optional[str] = None,
        tag_names: Sequence[str] = (),
        limit: int = 50,
        offset: int = 0,
    ) -> List[Song]:
        query = "SELECT s.* FROM songs s WHERE s.user_id = ?"
        params: List[Any] = [user_id]

        if search:
            needle = search.casefold()
            query += """
                AND (instr(casefold(s.title), ?) > 0
                     OR instr(casefold(s.artist), ?) > 0)
            """
            params.extend([needle, needle])

        names = list(dict.fromkeys(tag_names))
        if names:
            query += f"""
                AND s.id IN (
                    SELECT st.song_id
                    FROM song_tags st
                    JOIN tags t ON st.tag_id = t.id
                    WHERE t.user_id = ? AND t.name IN ({_placeholders(names)})
                    GROUP BY st.song_id
                    HAVING COUNT(DISTINCT t.name) = ?
                )
            """
            params.append(user_id)
            params.extend(names)
            params.append(len(names))

        query += " ORDER BY s.title, s.id LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [_song_from_row(r) for r in rows]

    async def list_songs(
        self,
        user_id: int,
        album: Optional[str] = None,
        artist: Optional[str] = None,
    ) -> List[Song]:
        query = "SELECT * FROM songs WHERE user_id = ?"
        params: List[Any] = [user_id]
        if album is not None:
            query += " AND album = ?"
            params.append(album)
        if artist is not None:
            query += " AND artist = ?"
            params.append(artist)
        query += " ORDER BY id"

        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [_song_from_row(r) for r in rows]

    async def get_song(self, user_id: int, song_id: int) -> Optional[Song]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM songs WHERE id = ? AND user_id = ?", (song_id, user_id)
            )
            row = await cursor.fetchone()
            return _song_from_row(row) if row else None

    async def count_songs(self, user_id: int) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) as cnt FROM songs WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
            return row["cnt"] if row else 0

    async def tag_names_for_songs(self, song_ids: Sequence[int]) -> Dict[int, List[str]]:
        result: Dict[int, List[str]] = {song_id: [] for song_id in song_ids}
        if not result:
            return result

        ids = list(result)
        async with self._connect() as db:
            cursor = await db.execute(
                f"""
                SELECT st.song_id, t.name
                FROM song_tags st
                JOIN tags t ON st.tag_id = t.id
                WHERE st.song_id IN ({_placeholders(ids)})
                ORDER BY st.song_id, t.order_index, t.name, t.id
                """,
                ids,
            )
            rows = await cursor.fetchall()

        for row in rows:
            result[row["song_id"]].append(row["name"])
        return result

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------
    async def create_tag(self, user_id: int, name: str, color: str) -> Tag:
        key = name_key(name)
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id FROM tags WHERE user_id = ? AND name_key = ?",
                (user_id, key),
            )
            if await cursor.fetchone():
                raise Conflict("Tag name already exists")

            try:
                cursor = await db.execute(
                    """
                    INSERT INTO tags (name, name_key, color, user_id, order_index)
                    VALUES (?, ?, ?, ?, (
                        SELECT COALESCE(MAX(order_index), -1) + 1
                        FROM tags WHERE user_id = ?
                    ))
                    """,
                    (name, key, color, user_id, user_id),
                )
                await db.commit()
            except sqlite3.IntegrityError:
                # Lost a race against an identical request
                await db.rollback()
                raise Conflict("Tag name already exists")

            tag_id = cursor.lastrowid
            cursor = await db.execute("SELECT * FROM tags WHERE id = ?", (tag_id,))
            row = await cursor.fetchone()

        tag = _tag_from_row(row)
        logger.success(f"🏷️ Tag created (id={tag.id}) for user {user_id}: {name}")
        return tag

    async def get_tag(self, user_id: int, tag_id: int) -> Optional[Tag]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM tags WHERE id = ? AND user_id = ?", (tag_id, user_id)
            )
            row = await cursor.fetchone()
            return _tag_from_row(row) if row else None

    async def list_tags(self, user_id: int) -> List[Tag]:
        async with self._connect() as db:
            cursor = await db.execute(
                """
                SELECT t.*, COUNT(st.song_id) AS song_count
                FROM tags t
                LEFT JOIN song_tags st ON t.id = st.tag_id
                WHERE t.user_id = ?
                GROUP BY t.id
                ORDER BY t.order_index, t.name, t.id
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [_tag_from_row(r) for r in rows]

    async def add_song_tag(self, song_id: int, tag_id: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO song_tags (song_id, tag_id) VALUES (?, ?)",
                (song_id, tag_id),
            )
            await db.commit()
            added = cursor.rowcount > 0
        if added:
            logger.info("🏷️ Song id={} +tag id={}", song_id, tag_id)
        return added

    async def remove_song_tag(self, song_id: int, tag_id: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM song_tags WHERE song_id = ? AND tag_id = ?",
                (song_id, tag_id),
            )
            await db.commit()
            removed = cursor.rowcount > 0
        if removed:
            logger.info("🏷️ Song id={} -tag id={}", song_id, tag_id)
        return removed

    async def set_tag_order(self, user_id: int, tag_ids: Sequence[int]) -> int:
        async with self._connect() as db:
            # Take the write lock before reading so concurrent reorders serialise
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    """
                    SELECT * FROM tags WHERE user_id = ?
                    ORDER BY order_index, name, id
                    """,
                    (user_id,),
                )
                current = [_tag_from_row(r) for r in await cursor.fetchall()]
                plan = plan_tag_order(current, tag_ids)
                await db.executemany(
                    "UPDATE tags SET order_index = ? WHERE id = ? AND user_id = ?",
                    [(index, tag_id, user_id) for tag_id, index in plan],
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        owned = {t.id for t in current}
        listed = len({t for t in tag_ids if t in owned})
        logger.info("↕️ Reordered {} tag(s) for user {}", listed, user_id)
        return listed

    async def set_tag_visibility(
        self, user_id: int, tag_id: int, is_visible: bool
    ) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE tags SET is_visible = ? WHERE id = ? AND user_id = ?",
                (1 if is_visible else 0, tag_id, user_id),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        if updated:
            logger.info(
                "👁️ Tag id={} visibility set to {} (user {})", tag_id, is_visible, user_id
            )
        return updated
