import re

from rest_framework.exceptions import NotFound

from .database import get_collection, to_object_id, utcnow
from .documents import MENTOR_PROFILES, PSYCHOMETRIC_TESTS, SESSIONS, USERS
from .documents.psychometric_test import TEST_COMPLETED, transform_test_result
from .documents.session import PAYMENT_SUCCEEDED, SESSION_COMPLETED
from .documents.user import (
    MENTEE_PROFILE_FIELDS,
    ROLE_MENTEE,
    ROLE_MENTOR,
    from_api_role,
    split_name,
    strip_private_fields,
    to_api_role,
)
from .parallel import gather


def build_user_query(search="", role="", status=""):
    query = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"firstName": pattern},
            {"lastName": pattern},
            {"name": pattern},
            {"email": pattern},
        ]
    if role and role != "all":
        query["role"] = from_api_role(role)
    if status == "active":
        query["isActive"] = True
    elif status == "inactive":
        query["isActive"] = False
    return query


def _tested_user_ids(users):
    mentee_ids = [user["_id"] for user in users if user.get("role") == ROLE_MENTEE]
    if not mentee_ids:
        return set()
    tests = get_collection(PSYCHOMETRIC_TESTS).find(
        {"userId": {"$in": mentee_ids}, "status": TEST_COMPLETED},
        {"userId": 1},
    )
    return {str(test["userId"]) for test in tests}


def present_user(user, tested_user_ids=frozenset()):
    """Flatten a stored user into the dashboard's list row."""
    is_mentee = user.get("role") == ROLE_MENTEE
    if is_mentee:
        first_name, last_name = split_name(user.get("name"))
        is_verified = bool(user.get("isEmailVerified"))
        is_test_given = user.get("isTestGiven") is True or str(user["_id"]) in tested_user_ids
    else:
        first_name = user.get("firstName") or "Unknown"
        last_name = user.get("lastName") or ""
        is_verified = bool(user.get("isVerified"))
        is_test_given = False

    row = {
        "_id": user["_id"],
        "firstName": first_name,
        "lastName": last_name,
        "email": user.get("email"),
        "role": to_api_role(user.get("role")),
        "isActive": user.get("isActive"),
        "isVerified": is_verified,
        "isTestGiven": is_test_given,
        "createdAt": user.get("createdAt"),
        "lastLoginAt": user.get("lastLoginAt"),
    }
    if is_mentee:
        for field in MENTEE_PROFILE_FIELDS:
            row[field] = user.get(field)
    else:
        row["theme"] = user.get("theme")
    return row


def find_users(query, *, skip=0, limit=None):
    cursor = get_collection(USERS).find(query).sort("createdAt", -1).skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    users = [strip_private_fields(user) for user in cursor]
    tested_user_ids = _tested_user_ids(users)
    return [present_user(user, tested_user_ids) for user in users]


def list_users(*, search="", role="", status="", skip=0, limit=20):
    query = build_user_query(search, role, status)
    results = gather(
        users=lambda: find_users(query, skip=skip, limit=limit),
        total=lambda: get_collection(USERS).count_documents(query),
    )
    return results["users"], results["total"]


def _session_stats(match, spend_key):
    rows = list(
        get_collection(SESSIONS).aggregate(
            [
                {"$match": match},
                {
                    "$group": {
                        "_id": None,
                        "totalSessions": {"$sum": 1},
                        "completedSessions": {
                            "$sum": {"$cond": [{"$eq": ["$status", SESSION_COMPLETED]}, 1, 0]}
                        },
                        spend_key: {
                            "$sum": {
                                "$cond": [
                                    {"$eq": ["$payment.status", PAYMENT_SUCCEEDED]},
                                    "$payment.amount",
                                    0,
                                ]
                            }
                        },
                    }
                },
            ]
        )
    )
    if not rows:
        return {"totalSessions": 0, "completedSessions": 0, spend_key: 0}
    row = rows[0]
    return {
        "totalSessions": row["totalSessions"],
        "completedSessions": row["completedSessions"],
        spend_key: row[spend_key],
    }


def _load_user(user_id, extra=None):
    object_id = to_object_id(user_id)
    user = None
    if object_id is not None:
        user = get_collection(USERS).find_one({"_id": object_id, **(extra or {})})
    return user


def get_user_detail(user_id):
    user = _load_user(user_id)
    if not user:
        raise NotFound("User not found")

    detail = {"user": strip_private_fields(user)}
    if user.get("role") == ROLE_MENTOR:
        results = gather(
            profile=lambda: get_collection(MENTOR_PROFILES).find_one({"userId": user["_id"]}),
            stats=lambda: _session_stats({"mentorId": user["_id"]}, "totalEarnings"),
        )
        detail.update(results)
    elif user.get("role") == ROLE_MENTEE:
        detail["stats"] = _session_stats({"studentId": user["_id"]}, "totalSpent")
    return detail


def update_user(user_id, changes):
    object_id = to_object_id(user_id)
    update = dict(changes)
    if "role" in update:
        update["role"] = from_api_role(update["role"])
    update["updatedAt"] = utcnow()

    matched = 0
    if object_id is not None:
        matched = get_collection(USERS).update_one({"_id": object_id}, {"$set": update}).matched_count
    if not matched:
        raise NotFound("User not found")


def get_test_results(user_id):
    user = _load_user(user_id, {"role": ROLE_MENTEE})
    if not user:
        raise NotFound("Student not found")
    test = get_collection(PSYCHOMETRIC_TESTS).find_one({"userId": user["_id"], "status": TEST_COMPLETED})
    if not test:
        raise NotFound("No test results found for this student")
    return transform_test_result(test)


def list_sessions(*, status="", skip=0, limit=20):
    query = {}
    if status and status != "all":
        query["status"] = status
    sessions = get_collection(SESSIONS)
    pipeline = [
        {"$match": query},
        {"$lookup": {"from": USERS, "localField": "mentorId", "foreignField": "_id", "as": "mentor"}},
        {"$lookup": {"from": USERS, "localField": "studentId", "foreignField": "_id", "as": "student"}},
        {"$unwind": "$mentor"},
        {"$unwind": "$student"},
        {"$sort": {"scheduledAt": -1}},
        {"$skip": skip},
        {"$limit": limit},
    ]
    results = gather(
        sessions=lambda: list(sessions.aggregate(pipeline)),
        total=lambda: sessions.count_documents(query),
    )
    rows = []
    for session in results["sessions"]:
        session["mentor"] = strip_private_fields(session["mentor"])
        session["student"] = strip_private_fields(session["student"])
        rows.append(session)
    return rows, results["total"]
