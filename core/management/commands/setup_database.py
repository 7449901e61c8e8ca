from django.core.management.base import BaseCommand
from pymongo import ASCENDING, DESCENDING

from core.database import get_collection
from core.documents import MENTOR_PROFILES, MENTOR_VERIFICATIONS, NOTIFICATIONS, SESSIONS, USERS


INDEXES = {
    USERS: [
        ([("email", ASCENDING)], {"unique": True}),
        ([("role", ASCENDING)], {}),
        ([("createdAt", DESCENDING)], {}),
    ],
    MENTOR_PROFILES: [
        ([("userId", ASCENDING)], {"unique": True}),
        ([("expertise", ASCENDING)], {}),
        ([("isProfileComplete", ASCENDING)], {}),
    ],
    SESSIONS: [
        ([("mentorId", ASCENDING)], {}),
        ([("studentId", ASCENDING)], {}),
        ([("scheduledAt", DESCENDING)], {}),
        ([("status", ASCENDING)], {}),
    ],
    MENTOR_VERIFICATIONS: [
        ([("userId", ASCENDING)], {"unique": True}),
        ([("status", ASCENDING)], {}),
        ([("createdAt", DESCENDING)], {}),
    ],
    NOTIFICATIONS: [
        ([("userId", ASCENDING), ("createdAt", DESCENDING)], {}),
        ([("read", ASCENDING)], {}),
    ],
}


def ensure_indexes():
    created = []
    for collection_name, indexes in INDEXES.items():
        collection = get_collection(collection_name)
        for keys, options in indexes:
            created.append(f"{collection_name}.{collection.create_index(keys, **options)}")
    return created


class Command(BaseCommand):
    help = "Create the MongoDB indexes used by the admin API."

    def handle(self, *args, **options):
        for name in ensure_indexes():
            self.stdout.write(f"  {name}")
        self.stdout.write(self.style.SUCCESS("Database indexes created successfully."))
