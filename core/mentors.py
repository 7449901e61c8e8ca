import re

from .database import get_collection
from .documents import MENTOR_PROFILES, USERS
from .documents.mentor import DEFAULT_SEARCH_RATING


DEFAULT_SEARCH_LIMIT = 50

PUBLIC_PROFILE_FIELDS = (
    "_id",
    "displayName",
    "bio",
    "location",
    "expertise",
    "languages",
    "profilePicture",
    "createdAt",
)


def build_search_match(*, expertise=None, location=None, languages=None, min_price=None, max_price=None):
    match = {
        "isProfileComplete": True,
        "applicationSubmitted": True,
        "isVerified": True,
    }
    if expertise:
        match["expertise"] = {"$in": list(expertise)}
    if location:
        match["location"] = {"$regex": re.escape(location), "$options": "i"}
    if languages:
        match["languages"] = {"$in": list(languages)}
    price = {}
    if min_price is not None:
        price["$gte"] = min_price
    if max_price is not None:
        price["$lte"] = max_price
    if price:
        match["pricing.hourlyRate"] = price
    return match


def present_mentor(profile):
    row = {field: profile.get(field) for field in PUBLIC_PROFILE_FIELDS}
    row["hourlyRate"] = (profile.get("pricing") or {}).get("hourlyRate")
    rating = profile.get("rating")
    row["rating"] = DEFAULT_SEARCH_RATING if rating is None else rating
    row["totalSessions"] = profile.get("totalSessions") or 0
    return row


def search_mentors(*, limit=DEFAULT_SEARCH_LIMIT, **filters):
    """Verified, complete mentor profiles ordered by rating then experience."""
    profiles = get_collection(MENTOR_PROFILES).aggregate(
        [
            {"$match": build_search_match(**filters)},
            {"$lookup": {"from": USERS, "localField": "userId", "foreignField": "_id", "as": "user"}},
            {"$unwind": "$user"},
            {"$match": {"user.isActive": True, "user.isVerified": True}},
        ]
    )
    mentors = [present_mentor(profile) for profile in profiles]
    mentors.sort(key=lambda item: (item["rating"], item["totalSessions"]), reverse=True)
    return mentors[:limit]
