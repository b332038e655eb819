"""
TagTune - JSON API Routes

Provides all REST API endpoints for:
- Login / user provisioning
- Song import, listing with search + tag filters, album/artist browsing
- Tag CRUD: create, assign/unassign, reorder, visibility
- Health check

Routes stay thin: they read the request, resolve the caller, call one
service function against the injected store and shape the JSON.  Errors
raised by the services are turned into ``{"error": ...}`` responses by the
handlers registered in ``tagtune.main``.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from tagtune.auth import get_current_user_id, login
from tagtune.config import APP_VERSION, DEFAULT_PAGE_SIZE
from tagtune.demo import DEMO_LIBRARY
from tagtune.errors import InvalidArgument
from tagtune.services import importer, library, query, tags
from tagtune.store.base import EntityStore

router = APIRouter(prefix="/api", tags=["API"])


def get_store(request: Request) -> EntityStore:
    """Return the entity store attached to the app at startup."""
    return request.app.state.store


# ---------------------------------------------------------------------------
# Pydantic models
#
# Fields the core validates itself (ids, flags, arrays) are typed ``Any`` so
# that wrong types reach the services and produce their error messages
# instead of being coerced.
# ---------------------------------------------------------------------------
class LoginRequest(BaseModel):
    providerId: Optional[str] = None
    # Older clients send the Apple Music id under its own name
    appleMusicId: Optional[str] = None
    email: Optional[str] = None
    displayName: Optional[str] = None


class ImportRequest(BaseModel):
    songs: Any = None


class TagCreate(BaseModel):
    name: Any = None
    color: Optional[str] = None


class TagAssignment(BaseModel):
    songId: Any = None
    tagId: Any = None


class TagOrder(BaseModel):
    tagIds: Any = None


class TagVisibility(BaseModel):
    isVisible: Any = None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@router.get("/health")
async def health_check(store: EntityStore = Depends(get_store)):
    """Health check endpoint for the service."""
    return {
        "status": "ok",
        "backend": store.backend,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": APP_VERSION,
    }


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
@router.post("/auth/login")
async def api_login(body: LoginRequest, store: EntityStore = Depends(get_store)):
    """Sign in with a provider id, creating the account on first use."""
    token, user = await login(
        store,
        body.providerId or body.appleMusicId,
        email=body.email,
        display_name=body.displayName,
    )
    return {"token": token, "user": user.to_public_dict()}


@router.get("/auth/me")
async def api_me(
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Return the signed-in user."""
    user = await store.get_user(user_id)
    return user.to_public_dict()


# ---------------------------------------------------------------------------
# Songs
# ---------------------------------------------------------------------------
@router.post("/songs/import")
async def api_import_songs(
    body: ImportRequest,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Import songs from the user's music provider (idempotent per song id)."""
    count = await importer.import_songs(store, user_id, body.songs)
    return {"message": "Songs imported successfully", "count": count}


@router.get("/songs")
async def api_list_songs(
    search: Optional[str] = Query(None),
    tags_filter: Optional[str] = Query(None, alias="tags"),
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """List songs with optional search, comma-separated AND tag filter and pagination."""
    result = await query.list_songs(
        store,
        user_id,
        search=search,
        tag_names=tags_filter,
        page=page,
        page_size=limit,
    )
    return result.to_dict()


@router.get("/songs/sample-library")
async def api_sample_library(user_id: int = Depends(get_current_user_id)):
    """Sample provider records that can be posted straight to /songs/import."""
    return {"songs": DEMO_LIBRARY}


@router.get("/songs/organize/{kind}")
async def api_organize(
    kind: str,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Album or artist summaries with song counts and artwork."""
    return await library.organize(store, user_id, kind)


@router.get("/songs/by/{kind}/{name:path}")
async def api_songs_by_category(
    kind: str,
    name: str,
    artist: Optional[str] = Query(None),
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Songs of one album (optionally narrowed to an artist) or one artist."""
    songs = await library.songs_by_category(store, user_id, kind, name, artist=artist)
    return {"songs": [s.to_dict() for s in songs]}


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
@router.get("/tags")
async def api_list_tags(
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """The user's tags with song counts, in display order."""
    return [t.to_dict() for t in await tags.list_tags(store, user_id)]


@router.post("/tags", status_code=201)
async def api_create_tag(
    body: TagCreate,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Create a tag.  409 when the name is already taken (case-insensitive)."""
    tag = await tags.create_tag(store, user_id, body.name, body.color)
    return tag.to_dict()


@router.post("/tags/assign")
async def api_assign_tag(
    body: TagAssignment,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Attach a tag to a song."""
    await tags.assign_tag(store, user_id, body.songId, body.tagId)
    return {"message": "Tag assigned successfully"}


@router.delete("/tags/assign")
async def api_remove_tag(
    body: TagAssignment,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Detach a tag from a song."""
    await tags.remove_tag(store, user_id, body.songId, body.tagId)
    return {"message": "Tag removed successfully"}


@router.put("/tags/order")
async def api_reorder_tags(
    body: TagOrder,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Persist the display order of the user's tags."""
    await tags.reorder_tags(store, user_id, body.tagIds)
    return {"message": "Tag order updated successfully"}


@router.put("/tags/{tag_id}/visibility")
async def api_set_visibility(
    tag_id: str,
    body: TagVisibility,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Show or hide a tag."""
    if not (tag_id.isascii() and tag_id.isdigit()):
        raise InvalidArgument("Tag id must be an integer")
    await tags.set_visibility(store, user_id, int(tag_id), body.isVisible)
    return {"message": "Tag visibility updated successfully"}
