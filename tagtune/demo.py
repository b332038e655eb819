"""
TagTune - Demo library

A small ready-made library (one user, ten songs, five tags) so the app can
be explored without a database or a music provider, plus a few external
records that clients can feed to the import endpoint.
"""

from typing import Any, Dict, List

from loguru import logger

from tagtune.models import ExternalSongRecord
from tagtune.store.base import EntityStore

DEMO_PROVIDER_ID = "demo_user_123"

DEMO_SONGS = [
    ExternalSongRecord(
        "song_1",
        "Blinding Lights",
        "The Weeknd",
        "After Hours",
        "https://i.scdn.co/image/ab67616d0000b273ef6f049cce6544d3f0c5c3c7",
    ),
    ExternalSongRecord(
        "song_2",
        "Shape of You",
        "Ed Sheeran",
        "÷ (Divide)",
        "https://i.scdn.co/image/ab67616d0000b273ba5db46f4b838ef6027e6f96",
    ),
    ExternalSongRecord(
        "song_3",
        "Watermelon Sugar",
        "Harry Styles",
        "Fine Line",
        "https://i.scdn.co/image/ab67616d0000b273277b3ff8e3114a8b3c1c5ac1",
    ),
    ExternalSongRecord(
        "song_4",
        "Good 4 U",
        "Olivia Rodrigo",
        "SOUR",
        "https://i.scdn.co/image/ab67616d0000b273a91c10fe9472d9bd89802e5a",
    ),
    ExternalSongRecord(
        "song_5",
        "Levitating",
        "Dua Lipa",
        "Future Nostalgia",
        "https://i.scdn.co/image/ab67616d0000b273ef5c39b3b0b84b4b8b8b8b8b",
    ),
    ExternalSongRecord(
        "song_6",
        "drivers license",
        "Olivia Rodrigo",
        "SOUR",
        "https://i.scdn.co/image/ab67616d0000b273a91c10fe9472d9bd89802e5a",
    ),
    ExternalSongRecord(
        "song_7",
        "Stay",
        "The Kid LAROI & Justin Bieber",
        "F*CK LOVE 3: OVER YOU",
        "https://i.scdn.co/image/ab67616d0000b273e2e352d89826aef6dbd5ff8f",
    ),
    ExternalSongRecord(
        "song_8",
        "Industry Baby",
        "Lil Nas X & Jack Harlow",
        "MONTERO",
        "https://i.scdn.co/image/ab67616d0000b273be82673b5f79d9658ec0a9fd",
    ),
    ExternalSongRecord(
        "song_9",
        "Heat Waves",
        "Glass Animals",
        "Dreamland",
        "https://i.scdn.co/image/ab67616d0000b2739e495fb707973f3390850eea",
    ),
    ExternalSongRecord(
        "song_10",
        "As It Was",
        "Harry Styles",
        "Harry's House",
        "https://i.scdn.co/image/ab67616d0000b273be82673b5f79d9658ec0a9fd",
    ),
]

# (name, color)
DEMO_TAGS = [
    ("Pop", "#FF6B6B"),
    ("Favorites", "#4ECDC4"),
    ("Workout", "#45B7D1"),
    ("Chill", "#96CEB4"),
    ("Road Trip", "#FECA57"),
]

# (song external id, tag name)
DEMO_ASSIGNMENTS = [
    ("song_1", "Pop"),
    ("song_1", "Favorites"),
    ("song_2", "Pop"),
    ("song_2", "Workout"),
    ("song_3", "Pop"),
    ("song_3", "Chill"),
    ("song_4", "Pop"),
    ("song_4", "Favorites"),
    ("song_5", "Pop"),
    ("song_5", "Workout"),
    ("song_5", "Road Trip"),
    ("song_7", "Favorites"),
    ("song_8", "Workout"),
    ("song_9", "Chill"),
    ("song_10", "Favorites"),
    ("song_10", "Chill"),
]

# Sample records in the provider's own shape, for trying out the import
DEMO_LIBRARY: List[Dict[str, Any]] = [
    {
        "id": "mock_song_1",
        "attributes": {
            "name": "Anti-Hero",
            "artistName": "Taylor Swift",
            "albumName": "Midnights",
            "artwork": {
                "url": "https://is1-ssl.mzstatic.com/image/thumb/Music122/v4/h5/8e/b5/h58eb5d7-8f8b-2c2e-7c6f-8b8b8b8b8b8b/886449895496.jpg/{w}x{h}bb.jpg"
            },
        },
    },
    {
        "id": "mock_song_2",
        "attributes": {
            "name": "Flowers",
            "artistName": "Miley Cyrus",
            "albumName": "Endless Summer Vacation",
            "artwork": {
                "url": "https://is1-ssl.mzstatic.com/image/thumb/Music116/v4/i6/8e/b5/i68eb5d7-8f8b-2c2e-7c6f-8b8b8b8b8b8b/886449895503.jpg/{w}x{h}bb.jpg"
            },
        },
    },
    {
        "id": "mock_song_3",
        "attributes": {
            "name": "Unholy",
            "artistName": "Sam Smith & Kim Petras",
            "albumName": "Gloria",
            "artwork": {
                "url": "https://is1-ssl.mzstatic.com/image/thumb/Music112/v4/j7/8e/b5/j78eb5d7-8f8b-2c2e-7c6f-8b8b8b8b8b8b/886449895510.jpg/{w}x{h}bb.jpg"
            },
        },
    },
]


async def seed_demo_data(store: EntityStore) -> bool:
    """Populate *store* with the demo library.

    Only runs when the demo user does not exist yet, so restarting against
    a persistent store does not duplicate anything.  Returns True if the
    data was seeded.
    """
    user, created = await store.get_or_create_user(
        DEMO_PROVIDER_ID, "demo@example.com", "Demo User"
    )
    if not created:
        logger.debug("Demo user already present, skipping demo seed")
        return False

    for record in DEMO_SONGS:
        await store.insert_song_if_absent(user.id, record)
    song_ids = {s.external_id: s.id for s in await store.list_songs(user.id)}

    tag_ids = {}
    for name, color in DEMO_TAGS:
        tag = await store.create_tag(user.id, name, color)
        tag_ids[name] = tag.id

    for external_id, tag_name in DEMO_ASSIGNMENTS:
        await store.add_song_tag(song_ids[external_id], tag_ids[tag_name])

    logger.success(
        "🌱 Demo library seeded: {} songs, {} tags, {} assignments",
        len(DEMO_SONGS),
        len(DEMO_TAGS),
        len(DEMO_ASSIGNMENTS),
    )
    return True
