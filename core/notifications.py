import logging
import re

from rest_framework.exceptions import NotFound

from .database import get_collection, to_object_id, utcnow
from .documents import NOTIFICATIONS
from .documents.notification import DEFAULT_PRIORITY, STAT_CATEGORIES, SYSTEM_TYPES
from .parallel import gather


logger = logging.getLogger(__name__)


def create_notification(
    notification_type,
    title,
    message,
    *,
    user_id=None,
    data=None,
    priority=DEFAULT_PRIORITY,
    created_by=None,
):
    """Insert an unread notification. Without ``user_id`` it is global."""
    now = utcnow()
    document = {
        "type": notification_type,
        "title": title,
        "message": message,
        "data": data or {},
        "priority": priority or DEFAULT_PRIORITY,
        "read": False,
        "createdAt": now,
        "updatedAt": now,
    }
    if user_id is not None:
        document["userId"] = to_object_id(user_id)
    if created_by is not None:
        document["createdBy"] = to_object_id(created_by)

    result = get_collection(NOTIFICATIONS).insert_one(document)
    document["_id"] = result.inserted_id
    logger.debug("Created %s notification %s", notification_type, result.inserted_id)
    return document


def admin_inbox_filter(admin_id):
    return {
        "$or": [
            {"userId": to_object_id(admin_id)},
            {"userId": {"$exists": False}},
            {"type": {"$in": list(SYSTEM_TYPES)}},
        ]
    }


def _contains(value):
    return {"$regex": re.escape(value), "$options": "i"}


def _combine(*clauses):
    clauses = [clause for clause in clauses if clause]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def build_admin_query(admin_id, *, notification_type="", read="", search=""):
    clauses = [admin_inbox_filter(admin_id)]
    if notification_type and notification_type != "all":
        clauses.append({"type": _contains(notification_type)})
    if read in {"true", "false"}:
        clauses.append({"read": read == "true"})
    if search:
        clauses.append({"$or": [{"title": _contains(search)}, {"message": _contains(search)}]})
    return _combine(*clauses)


def list_admin_notifications(admin_id, *, notification_type="", read="", search="", skip=0, limit=20):
    collection = get_collection(NOTIFICATIONS)
    query = build_admin_query(
        admin_id,
        notification_type=notification_type,
        read=read,
        search=search,
    )
    results = gather(
        notifications=lambda: list(
            collection.find(query).sort("createdAt", -1).skip(skip).limit(limit)
        ),
        total=lambda: collection.count_documents(query),
    )
    return results["notifications"], results["total"]


def _scoped_ids(admin_id, notification_ids):
    return _combine(
        admin_inbox_filter(admin_id),
        {"_id": {"$in": [to_object_id(value) for value in notification_ids]}},
    )


def mark_read(admin_id, notification_ids):
    now = utcnow()
    result = get_collection(NOTIFICATIONS).update_many(
        _scoped_ids(admin_id, notification_ids),
        {"$set": {"read": True, "readAt": now, "updatedAt": now}},
    )
    return result.modified_count


def mark_unread(admin_id, notification_ids):
    result = get_collection(NOTIFICATIONS).update_many(
        _scoped_ids(admin_id, notification_ids),
        {"$set": {"read": False, "updatedAt": utcnow()}, "$unset": {"readAt": ""}},
    )
    return result.modified_count


def delete_notifications(admin_id, notification_ids):
    result = get_collection(NOTIFICATIONS).delete_many(_scoped_ids(admin_id, notification_ids))
    return result.deleted_count


def mark_all_read(admin_id):
    now = utcnow()
    result = get_collection(NOTIFICATIONS).update_many(
        _combine(admin_inbox_filter(admin_id), {"read": False}),
        {"$set": {"read": True, "readAt": now, "updatedAt": now}},
    )
    return result.modified_count


def notification_stats(admin_id):
    collection = get_collection(NOTIFICATIONS)
    inbox = admin_inbox_filter(admin_id)

    def count(extra=None):
        return lambda: collection.count_documents(_combine(inbox, extra))

    tasks = {
        "total": count(),
        "unread": count({"read": False}),
        "read": count({"read": True}),
    }
    for category in STAT_CATEGORIES:
        tasks[f"{category}_notifications"] = count({"type": {"$regex": re.escape(category)}})
    return gather(**tasks)


def list_user_notifications(user_id, *, unread_only=False, skip=0, limit=20):
    collection = get_collection(NOTIFICATIONS)
    owner = {"userId": to_object_id(user_id)}
    query = {**owner, "read": False} if unread_only else owner
    results = gather(
        notifications=lambda: list(
            collection.find(query).sort("createdAt", -1).skip(skip).limit(limit)
        ),
        total=lambda: collection.count_documents(query),
        unread_count=lambda: collection.count_documents({**owner, "read": False}),
    )
    return results["notifications"], results["total"], results["unread_count"]


def mark_user_notification_read(user_id, notification_id):
    now = utcnow()
    result = get_collection(NOTIFICATIONS).update_one(
        {"_id": to_object_id(notification_id), "userId": to_object_id(user_id)},
        {"$set": {"read": True, "readAt": now, "updatedAt": now}},
    )
    if result.matched_count == 0:
        raise NotFound("Notification not found")


def mark_all_user_notifications_read(user_id):
    now = utcnow()
    result = get_collection(NOTIFICATIONS).update_many(
        {"userId": to_object_id(user_id), "read": False},
        {"$set": {"read": True, "readAt": now, "updatedAt": now}},
    )
    return result.modified_count
