"""Helpers for moving documents between MongoDB and JSON responses."""

from datetime import datetime
from typing import Any, Iterable

from bson import ObjectId
from bson.errors import InvalidId

from webnest.errors import NotFoundError

SENSITIVE_FIELDS = (
    "password",
    "reset_password_token",
    "reset_password_expires",
    "otp",
    "otp_expiry",
    "otp_attempts",
)


def to_object_id(value: Any, label: str = "Resource") -> ObjectId:
    """
    Coerce a path parameter into an `ObjectId`.

    A malformed id can never match a document, so it is reported as not found.
    """
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFoundError(f"{label} not found")


def serialize_document(doc: Any, hidden: Iterable[str] = SENSITIVE_FIELDS) -> Any:
    """Recursively convert ObjectIds and datetimes and drop credential fields."""
    if doc is None:
        return None
    if isinstance(doc, list):
        return [serialize_document(item, hidden) for item in doc]
    if isinstance(doc, dict):
        hidden = tuple(hidden)
        result = {}
        for key, value in doc.items():
            if key in hidden:
                continue
            result["id" if key == "_id" else key] = serialize_document(value, hidden)
        return result
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    return doc


def serialize_documents(docs: Iterable[dict], hidden: Iterable[str] = SENSITIVE_FIELDS) -> list:
    return [serialize_document(doc, hidden) for doc in docs]
