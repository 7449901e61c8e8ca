import threading
from datetime import datetime, timezone as dt_timezone

from bson import ObjectId
from bson.errors import InvalidId
from django.conf import settings
from pymongo import MongoClient


_CLIENT_CACHE = {"client": None}
_CLIENT_LOCK = threading.Lock()


def get_client():
    client = _CLIENT_CACHE["client"]
    if client is not None:
        return client
    with _CLIENT_LOCK:
        if _CLIENT_CACHE["client"] is None:
            _CLIENT_CACHE["client"] = MongoClient(settings.MONGODB_URI)
        return _CLIENT_CACHE["client"]


def set_client(client):
    """Replace the cached client; ``None`` makes the next call reconnect."""
    with _CLIENT_LOCK:
        _CLIENT_CACHE["client"] = client


def get_db():
    return get_client()[settings.MONGODB_DB_NAME]


def get_collection(name):
    return get_db()[name]


def utcnow():
    # Naive UTC, matching what pymongo hands back on reads.
    return datetime.now(dt_timezone.utc).replace(tzinfo=None)


def to_object_id(value):
    if isinstance(value, ObjectId):
        return value
    if value is None:
        return None
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize_document(value):
    """Convert ObjectIds (at any depth) into strings for JSON rendering."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {key: serialize_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_document(item) for item in value]
    return value
