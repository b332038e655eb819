"""
TagTune - Error taxonomy

Every failure the core reports to a caller is one of these exceptions.  The
API layer turns them into ``{"error": <message>}`` responses using the
``status_code`` carried by each class.
"""

from typing import Any


class TagTuneError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class InvalidArgument(TagTuneError):
    """Malformed or missing input.  Raised before any store mutation."""

    status_code = 400


class Unauthenticated(TagTuneError):
    """Missing, malformed, tampered or expired credential."""

    status_code = 401


class NotFound(TagTuneError):
    """Referenced entity is absent *or* owned by another user.

    Both causes share one error so that existence is never leaked across
    owners.
    """

    status_code = 404

    def __init__(self, entity_type: str, entity_id: Any = None) -> None:
        if entity_id is None:
            message = f"{entity_type} not found"
        else:
            message = f"{entity_type} {entity_id} not found"
        super().__init__(message)
        self.entity_type = entity_type
        self.entity_id = entity_id


class Conflict(TagTuneError):
    """Uniqueness violation, e.g. a duplicate tag name."""

    status_code = 409


class Internal(TagTuneError):
    """Store or connectivity failure.  Callers only see a generic message."""

    status_code = 500
