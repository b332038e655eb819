"""
TagTune - Music library tagging service.

Import a music library, attach your own tags to songs and browse by tags,
albums and artists.  A single FastAPI service backed by SQLite or by an
in-memory store.
"""
