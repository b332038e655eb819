"""
TagTune - Bearer token auth

Users sign in with the id their music provider gave them.  The first login
provisions the account; every login returns a signed bearer token.

Token format: ``<base64url(json payload)>.<hex HMAC-SHA256 signature>``
where the payload is ``{"uid": <user id>, "pid": <provider id>, "ts": <issued at>}``.

Usage:
    - Call ``login()`` from the login route.
    - Add ``Depends(get_current_user_id)`` to every protected route.
"""

import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Any, Optional, Tuple

from fastapi import Request
from loguru import logger

from tagtune.config import SECRET_KEY, TOKEN_MAX_AGE
from tagtune.errors import InvalidArgument, Unauthenticated
from tagtune.models import User
from tagtune.store.base import EntityStore

# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def _sign(payload: str) -> str:
    """Create an HMAC-SHA256 signature for a payload string."""
    return hmac.new(
        SECRET_KEY.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def create_token(user: User) -> str:
    """Create a signed bearer token for *user*."""
    data = json.dumps(
        {
            "uid": user.id,
            "pid": user.provider_id,
            "ts": int(time.time()),
        },
        separators=(",", ":"),
    )
    encoded = base64.urlsafe_b64encode(data.encode("utf-8")).decode("ascii")
    return f"{encoded}.{_sign(encoded)}"


def parse_token(token: str) -> Optional[dict[str, Any]]:
    """Parse and verify a token.  Returns the payload dict or None."""
    if not token or "." not in token:
        return None

    try:
        data_part, sig_part = token.rsplit(".", 1)
        if not hmac.compare_digest(sig_part, _sign(data_part)):
            return None

        payload = json.loads(base64.urlsafe_b64decode(data_part.encode("ascii")))
        if not isinstance(payload, dict) or not isinstance(payload.get("uid"), int):
            return None

        # Check expiry
        created = payload.get("ts", 0)
        if time.time() - created > TOKEN_MAX_AGE:
            return None

        return payload
    except (ValueError, TypeError, binascii.Error):
        return None


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Access token required")
    return token.strip()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def login(
    store: EntityStore,
    provider_id: Any,
    email: Optional[str] = None,
    display_name: Optional[str] = None,
) -> Tuple[str, User]:
    """Find or provision the user for *provider_id* and issue a token."""
    if not isinstance(provider_id, str) or not provider_id.strip():
        raise InvalidArgument("Provider ID required")

    user, created = await store.get_or_create_user(
        provider_id.strip(), email or None, display_name or None
    )
    if not created:
        logger.info("🔓 User id={} logged in", user.id)
    return create_token(user), user


async def get_current_user_id(request: Request) -> int:
    """FastAPI dependency: resolve the caller's user id from the bearer token."""
    payload = parse_token(_bearer_token(request))
    if payload is None:
        raise Unauthenticated("Invalid or expired token")

    store: EntityStore = request.app.state.store
    user = await store.get_user(payload["uid"])
    if user is None or user.provider_id != payload.get("pid"):
        raise Unauthenticated("Invalid or expired token")
    return user.id
