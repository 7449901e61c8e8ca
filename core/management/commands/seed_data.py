import random
from datetime import timedelta

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from core.database import get_collection, utcnow
from core.documents import (
    MENTOR_PROFILES,
    MENTOR_VERIFICATIONS,
    NOTIFICATIONS,
    PSYCHOMETRIC_TESTS,
    SESSIONS,
    USERS,
)
from core.documents.mentor import (
    DOCUMENT_STATUS_PENDING,
    VERIFICATION_APPROVED,
    VERIFICATION_INFO_REQUESTED,
    VERIFICATION_PENDING,
    VERIFICATION_REJECTED,
)
from core.documents.psychometric_test import TEST_COMPLETED
from core.documents.session import (
    PAYMENT_PENDING,
    PAYMENT_SUCCEEDED,
    SESSION_CANCELLED,
    SESSION_COMPLETED,
    SESSION_SCHEDULED,
)
from core.documents.user import ROLE_MENTEE, ROLE_MENTOR
from core.notifications import create_notification


TEST_DOMAIN = "mentormatch.local"


class Command(BaseCommand):
    help = "Seed sample mentors, students, verifications, sessions and notifications."

    def add_arguments(self, parser):
        parser.add_argument(
            "--count",
            type=int,
            default=10,
            help="Number of mentors and students to create (default: 10).",
        )
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Remove previously seeded documents before seeding.",
        )

    def reset(self):
        users = get_collection(USERS)
        seeded_ids = [user["_id"] for user in users.find({"email": {"$regex": f"@{TEST_DOMAIN}$"}}, {"_id": 1})]
        get_collection(MENTOR_PROFILES).delete_many({"userId": {"$in": seeded_ids}})
        get_collection(MENTOR_VERIFICATIONS).delete_many({"userId": {"$in": seeded_ids}})
        get_collection(PSYCHOMETRIC_TESTS).delete_many({"userId": {"$in": seeded_ids}})
        get_collection(NOTIFICATIONS).delete_many({"userId": {"$in": seeded_ids}})
        get_collection(SESSIONS).delete_many(
            {"$or": [{"mentorId": {"$in": seeded_ids}}, {"studentId": {"$in": seeded_ids}}]}
        )
        users.delete_many({"_id": {"$in": seeded_ids}})
        self.stdout.write(f"Removed {len(seeded_ids)} seeded users.")

    def handle(self, *args, **options):
        count = options["count"]
        random.seed(42)
        if options["reset"]:
            self.reset()

        first_names = ["Priya", "Rahul", "Ananya", "Karthik", "Meera", "Arjun", "Nila", "Vikram"]
        last_names = ["Sharma", "Iyer", "Patel", "Rao", "Menon", "Gupta", "Nair", "Singh"]
        subjects = ["Mathematics", "Physics", "Career Guidance", "Computer Science", "English", "Chemistry"]
        languages = ["English", "Hindi", "Tamil", "Spanish"]
        locations = ["Chennai", "Bengaluru", "Mumbai", "London", "Toronto"]
        study_levels = ["High School", "Undergraduate", "Postgraduate"]
        verification_statuses = [
            VERIFICATION_PENDING,
            VERIFICATION_PENDING,
            VERIFICATION_APPROVED,
            VERIFICATION_INFO_REQUESTED,
            VERIFICATION_REJECTED,
        ]

        users = get_collection(USERS)
        now = utcnow()
        password_hash = make_password("password123")

        students = []
        for i in range(count):
            created_at = now - timedelta(days=random.randint(0, 90))
            student = {
                "email": f"student{i+1}@{TEST_DOMAIN}",
                "passwordHash": password_hash,
                "role": ROLE_MENTEE,
                "name": f"{random.choice(first_names)} {random.choice(last_names)}",
                "isActive": True,
                "isEmailVerified": True,
                "studyLevel": random.choice(study_levels),
                "location": random.choice(locations),
                "isTestGiven": False,
                "createdAt": created_at,
                "updatedAt": created_at,
            }
            student["_id"] = users.insert_one(student).inserted_id
            students.append(student)

        mentors = []
        for i in range(count):
            created_at = now - timedelta(days=random.randint(0, 90))
            status = random.choice(verification_statuses)
            first_name = random.choice(first_names)
            last_name = random.choice(last_names)
            mentor = {
                "email": f"mentor{i+1}@{TEST_DOMAIN}",
                "passwordHash": password_hash,
                "role": ROLE_MENTOR,
                "firstName": first_name,
                "lastName": last_name,
                "isActive": True,
                "isVerified": status == VERIFICATION_APPROVED,
                "createdAt": created_at,
                "updatedAt": created_at,
            }
            mentor["_id"] = users.insert_one(mentor).inserted_id
            mentors.append(mentor)

            get_collection(MENTOR_PROFILES).insert_one(
                {
                    "userId": mentor["_id"],
                    "displayName": f"{first_name} {last_name}",
                    "bio": "Helping students find their footing in exams and careers.",
                    "location": random.choice(locations),
                    "expertise": random.sample(subjects, k=random.randint(1, 3)),
                    "languages": random.sample(languages, k=random.randint(1, 2)),
                    "pricing": {"hourlyRate": random.choice([25, 40, 55, 70])},
                    "rating": round(random.uniform(4.0, 5.0), 1),
                    "totalSessions": 0,
                    "isProfileComplete": True,
                    "applicationSubmitted": True,
                    "isVerified": status == VERIFICATION_APPROVED,
                    "createdAt": created_at,
                    "updatedAt": created_at,
                }
            )
            verification = {
                "userId": mentor["_id"],
                "status": status,
                "documents": [
                    {
                        "id": f"doc-{i+1}",
                        "type": "id_proof",
                        "fileName": f"id-{i+1}.pdf",
                        "fileUrl": f"/uploads/verifications/id-{i+1}.pdf",
                        "uploadedAt": created_at,
                        "status": DOCUMENT_STATUS_PENDING,
                    }
                ],
                "createdAt": created_at,
                "updatedAt": created_at,
            }
            if status == VERIFICATION_INFO_REQUESTED:
                verification["requestedInfo"] = "Please upload a teaching certificate."
            if status == VERIFICATION_REJECTED:
                verification["rejectionReason"] = "Documents could not be verified."
            get_collection(MENTOR_VERIFICATIONS).insert_one(verification)

        sessions = get_collection(SESSIONS)
        session_count = 0
        for student in students:
            for _ in range(random.randint(1, 3)):
                mentor = random.choice(mentors)
                scheduled_at = now + timedelta(days=random.randint(-30, 14), hours=random.randint(8, 20))
                status = SESSION_SCHEDULED if scheduled_at > now else random.choice(
                    [SESSION_COMPLETED, SESSION_COMPLETED, SESSION_CANCELLED]
                )
                sessions.insert_one(
                    {
                        "mentorId": mentor["_id"],
                        "studentId": student["_id"],
                        "scheduledAt": scheduled_at,
                        "duration": random.choice([30, 60]),
                        "status": status,
                        "payment": {
                            "amount": random.choice([2500, 4000, 5500]),
                            "status": PAYMENT_SUCCEEDED if status == SESSION_COMPLETED else PAYMENT_PENDING,
                        },
                        "createdAt": scheduled_at - timedelta(days=random.randint(1, 7)),
                        "updatedAt": now,
                    }
                )
                session_count += 1

        for student in random.sample(students, k=len(students) // 2):
            get_collection(PSYCHOMETRIC_TESTS).insert_one(
                {
                    "userId": student["_id"],
                    "status": TEST_COMPLETED,
                    "riasecResult": {
                        "scores": {key: random.randint(5, 40) for key in "RIASEC"},
                        "hollandCode": "".join(random.sample("RIASEC", k=3)),
                    },
                    "brainProfileResult": {
                        "quadrantScores": {key: random.randint(10, 40) for key in ("L1", "L2", "R1", "R2")},
                        "dominantQuadrants": ["L1"],
                    },
                    "completedAt": now,
                    "createdAt": now,
                }
            )
            users.update_one({"_id": student["_id"]}, {"$set": {"isTestGiven": True}})

        for mentor in mentors[:3]:
            create_notification(
                "system_alert",
                "Welcome to MentorMatch",
                "Complete your profile to start receiving session requests.",
                user_id=mentor["_id"],
            )

        self.stdout.write(
            self.style.SUCCESS(
                f"Seeded {len(students)} students, {len(mentors)} mentors and {session_count} sessions."
            )
        )
