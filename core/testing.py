"""Fixtures shared by the test modules: an in-memory MongoDB and document factories."""
from datetime import timedelta

import mongomock
from django.contrib.auth.hashers import make_password

from .auth import build_auth_token_payload
from .database import get_collection, set_client, utcnow
from .documents import MENTOR_PROFILES, MENTOR_VERIFICATIONS, SESSIONS, USERS
from .documents.mentor import VERIFICATION_PENDING
from .documents.session import PAYMENT_SUCCEEDED, SESSION_COMPLETED
from .documents.user import ROLE_ADMIN, ROLE_MENTEE, ROLE_MENTOR


DEFAULT_PASSWORD = "Password123!"


class MongoTestMixin:
    def setUp(self):
        super().setUp()
        set_client(mongomock.MongoClient())
        self.addCleanup(set_client, None)

    def create_user(self, role=ROLE_MENTEE, password=DEFAULT_PASSWORD, **fields):
        now = utcnow()
        count = get_collection(USERS).count_documents({})
        user = {
            "email": f"{role}{count + 1}@example.com",
            "passwordHash": make_password(password),
            "role": role,
            "isActive": True,
            "createdAt": now,
            "updatedAt": now,
        }
        if role == ROLE_MENTEE:
            user["name"] = "Sam Student"
            user["isEmailVerified"] = True
        else:
            user["firstName"] = "Alex"
            user["lastName"] = "Mentor" if role == ROLE_MENTOR else "Admin"
            user["isVerified"] = role == ROLE_ADMIN
        user.update(fields)
        user["_id"] = get_collection(USERS).insert_one(user).inserted_id
        return user

    def create_admin(self, **fields):
        return self.create_user(ROLE_ADMIN, **fields)

    def create_mentor(self, profile=None, **fields):
        mentor = self.create_user(ROLE_MENTOR, **fields)
        now = utcnow()
        document = {
            "userId": mentor["_id"],
            "displayName": f"{mentor['firstName']} {mentor['lastName']}",
            "expertise": ["Mathematics"],
            "languages": ["English"],
            "location": "Chennai",
            "pricing": {"hourlyRate": 40},
            "isProfileComplete": True,
            "applicationSubmitted": True,
            "isVerified": False,
            "createdAt": now,
            "updatedAt": now,
        }
        document.update(profile or {})
        get_collection(MENTOR_PROFILES).insert_one(document)
        return mentor

    def create_verification(self, user, status=VERIFICATION_PENDING, **fields):
        now = utcnow()
        verification = {
            "userId": user["_id"],
            "status": status,
            "documents": [],
            "createdAt": now,
            "updatedAt": now,
        }
        verification.update(fields)
        verification["_id"] = get_collection(MENTOR_VERIFICATIONS).insert_one(verification).inserted_id
        return verification

    def create_session(self, mentor, student, status=SESSION_COMPLETED, amount=5000, **fields):
        now = utcnow()
        session = {
            "mentorId": mentor["_id"],
            "studentId": student["_id"],
            "status": status,
            "scheduledAt": now - timedelta(days=1),
            "duration": 60,
            "payment": {"amount": amount, "status": PAYMENT_SUCCEEDED},
            "createdAt": now - timedelta(days=2),
            "updatedAt": now,
        }
        session.update(fields)
        session["_id"] = get_collection(SESSIONS).insert_one(session).inserted_id
        return session

    def authenticate(self, user):
        tokens = build_auth_token_payload(user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        return tokens

    def clear_authentication(self):
        self.client.credentials()
