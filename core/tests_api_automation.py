import tempfile
import warnings
from pathlib import Path
from unittest.mock import patch

from bson import ObjectId
from django.core import mail
from django.test import override_settings
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.schemas.openapi import SchemaGenerator
from rest_framework.test import APISimpleTestCase
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.auth import (
    MentorMatchAdminTokenObtainPairSerializer,
    MentorMatchTokenObtainPairSerializer,
    MentorMatchTokenObtainPairView,
    MentorMatchTokenRefreshView,
)
from core.database import get_collection
from core.documents import MENTOR_VERIFICATIONS, NOTIFICATIONS, PSYCHOMETRIC_TESTS, USERS
from core.documents.user import ROLE_MENTEE
from core.notifications import create_notification
from core.schema import PUBLIC_PATHS
from core.testing import DEFAULT_PASSWORD, MongoTestMixin


class ApiAutomationCoverageTests(MongoTestMixin, APISimpleTestCase):
    def setUp(self):
        super().setUp()
        self.client.defaults["HTTP_HOST"] = "testserver"
        self.admin = self.create_admin(email="admin@example.com")
        self.mentor = self.create_mentor(email="mentor@example.com", firstName="Asha")
        self.student = self.create_user(ROLE_MENTEE, email="student@example.com", name="Riya Kapoor")
        self.verification = self.create_verification(self.mentor)

    def _schema_paths(self):
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message="You have a duplicated operationId in your OpenAPI schema*")
            schema = SchemaGenerator(title="MentorMatch API").get_schema(public=True)
        return schema.get("paths", {}) if schema else {}

    def _resolve_path(self, schema_path):
        return (
            schema_path.replace("{user_id}", str(self.student["_id"]))
            .replace("{verification_id}", str(self.verification["_id"]))
            .replace("{file_path}", "uploads/id.pdf")
        )

    def test_all_protected_operations_reject_unauthenticated_requests(self):
        paths = self._schema_paths()
        self.assertIn("/api/admin/verifications/{verification_id}/action/", paths)

        for schema_path, operations in sorted(paths.items()):
            if schema_path in PUBLIC_PATHS:
                continue
            for method in sorted(m for m in operations if m in {"get", "post", "put", "patch", "delete"}):
                self.clear_authentication()
                response = getattr(self.client, method)(self._resolve_path(schema_path), {}, format="json")
                self.assertEqual(
                    response.status_code,
                    401,
                    f"Expected unauth rejection for {schema_path} {method.upper()}, got {response.status_code}",
                )
                self.assertFalse(response.data["success"])

    def test_admin_operations_forbid_other_roles(self):
        paths = self._schema_paths()
        self.authenticate(self.mentor)

        for schema_path, operations in sorted(paths.items()):
            if not schema_path.startswith("/api/admin/") or schema_path in PUBLIC_PATHS:
                continue
            for method in sorted(m for m in operations if m in {"get", "post", "put", "patch", "delete"}):
                response = getattr(self.client, method)(self._resolve_path(schema_path), {}, format="json")
                self.assertEqual(
                    response.status_code,
                    403,
                    f"Expected mentor to be forbidden on {schema_path} {method.upper()}, got {response.status_code}",
                )

    def test_schema_endpoint_marks_public_paths(self):
        response = self.client.get("/api/schema/")

        self.assertEqual(response.status_code, 200)
        paths = response.data["paths"]
        self.assertNotIn("security", paths["/api/mentors/search/"]["get"])
        self.assertEqual(paths["/api/admin/stats/"]["get"]["security"], [{"HTTPBearer": []}])
        self.assertEqual(paths["/api/admin/stats/"]["get"]["tags"], ["Admin"])


class AuthEndpointTests(MongoTestMixin, APISimpleTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.create_admin(email="admin@example.com")
        self.mentor = self.create_mentor(email="mentor@example.com")

    def test_admin_login_returns_token_pair_and_stamps_last_login(self):
        response = self.client.post(
            "/api/admin/auth/login/",
            {"email": "ADMIN@example.com", "password": DEFAULT_PASSWORD},
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertTrue(response.data["success"])
        self.assertIn("access", response.data["data"])
        self.assertEqual(response.data["data"]["user"]["role"], "admin")
        self.assertIn("lastLoginAt", get_collection(USERS).find_one({"_id": self.admin["_id"]}))

    def test_login_serializer_checks_credentials_against_users(self):
        serializer = MentorMatchTokenObtainPairSerializer(
            data={"email": "MENTOR@example.com", "password": DEFAULT_PASSWORD}
        )
        self.assertTrue(serializer.is_valid(), serializer.errors)
        self.assertEqual(serializer.validated_data["user"]["id"], str(self.mentor["_id"]))
        self.assertIn("refresh", serializer.validated_data)
        self.assertIn("lastLoginAt", get_collection(USERS).find_one({"_id": self.mentor["_id"]}))

        refused = MentorMatchAdminTokenObtainPairSerializer(
            data={"email": "mentor@example.com", "password": DEFAULT_PASSWORD}
        )
        with self.assertRaises(AuthenticationFailed):
            refused.is_valid()

    def test_token_views_build_on_simplejwt(self):
        self.assertTrue(issubclass(MentorMatchTokenObtainPairView, TokenObtainPairView))
        self.assertTrue(issubclass(MentorMatchTokenRefreshView, TokenRefreshView))

    def test_admin_login_refuses_wrong_password_and_other_roles(self):
        wrong = self.client.post(
            "/api/admin/auth/login/",
            {"email": "admin@example.com", "password": "wrong-pass"},
            format="json",
        )
        mentor = self.client.post(
            "/api/admin/auth/login/",
            {"email": "mentor@example.com", "password": DEFAULT_PASSWORD},
            format="json",
        )

        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(wrong.data["message"], "Invalid credentials or insufficient permissions")
        self.assertEqual(mentor.status_code, 401)

    def test_app_login_refuses_admins(self):
        admin = self.client.post(
            "/api/login/",
            {"email": "admin@example.com", "password": DEFAULT_PASSWORD},
            format="json",
        )
        mentor = self.client.post(
            "/api/login/",
            {"email": "mentor@example.com", "password": DEFAULT_PASSWORD},
            format="json",
        )

        self.assertEqual(admin.status_code, 401)
        self.assertEqual(mentor.status_code, 200)

    def test_login_validation_uses_envelope(self):
        response = self.client.post("/api/login/", {"email": "not-an-email"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["message"], "Validation failed")
        self.assertIn("email", response.data["errors"])
        self.assertIn("password", response.data["errors"])

    def test_refresh_rechecks_user_is_active(self):
        tokens = self.authenticate(self.admin)
        self.clear_authentication()

        ok = self.client.post("/api/token/refresh/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(ok.status_code, 200)
        self.assertIn("access", ok.data["data"])

        get_collection(USERS).update_one({"_id": self.admin["_id"]}, {"$set": {"isActive": False}})
        refused = self.client.post("/api/token/refresh/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(refused.status_code, 401)

        invalid = self.client.post("/api/token/refresh/", {"refresh": "invalid-token"}, format="json")
        self.assertEqual(invalid.status_code, 401)

    def test_me_and_logout(self):
        self.authenticate(self.admin)

        me = self.client.get("/api/admin/auth/me/")
        logout = self.client.post("/api/admin/auth/logout/")

        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.data["data"]["user"]["email"], "admin@example.com")
        self.assertNotIn("passwordHash", me.data["data"]["user"])
        self.assertEqual(logout.status_code, 200)


class AdminVerificationEndpointTests(MongoTestMixin, APISimpleTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.create_admin()
        self.mentor = self.create_mentor(email="mentor@example.com")
        self.verification = self.create_verification(self.mentor)
        self.authenticate(self.admin)

    def _action_url(self, verification_id):
        return f"/api/admin/verifications/{verification_id}/action/"

    def test_reject_action(self):
        response = self.client.post(
            self._action_url(self.verification["_id"]),
            {"action": "reject", "notes": "incomplete docs"},
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["message"], "Verification rejected successfully")
        self.assertEqual(response.data["data"]["status"], "rejected")

        stored = get_collection(MENTOR_VERIFICATIONS).find_one({"_id": self.verification["_id"]})
        self.assertEqual(stored["rejectionReason"], "incomplete docs")
        notification = get_collection(NOTIFICATIONS).find_one({"userId": self.mentor["_id"]})
        self.assertEqual(notification["type"], "verification_rejected")
        self.assertFalse(notification["read"])
        self.assertEqual(len(mail.outbox), 1)

    @patch("core.emails.send_mentor_approval_email", side_effect=RuntimeError("SMTP down"))
    def test_approve_succeeds_when_email_fails(self, _mock_send):
        response = self.client.post(self._action_url(self.verification["_id"]), {"action": "approve"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["status"], "approved")

    def test_invalid_action_is_a_validation_error(self):
        response = self.client.post(self._action_url(self.verification["_id"]), {"action": "archive"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertIn("action", response.data["errors"])

    def test_action_on_terminal_state_is_refused(self):
        get_collection(MENTOR_VERIFICATIONS).update_one(
            {"_id": self.verification["_id"]}, {"$set": {"status": "approved"}}
        )

        response = self.client.post(self._action_url(self.verification["_id"]), {"action": "reject"}, format="json")

        self.assertEqual(response.status_code, 400)

    def test_malformed_and_unknown_ids_are_not_found(self):
        malformed = self.client.post(self._action_url("abc"), {"action": "approve"}, format="json")
        unknown = self.client.get(f"/api/admin/verifications/{ObjectId()}/")

        self.assertEqual(malformed.status_code, 404)
        self.assertEqual(malformed.data, {"success": False, "message": "Verification not found"})
        self.assertEqual(unknown.status_code, 404)

    def test_list_and_detail(self):
        listing = self.client.get("/api/admin/verifications/")
        detail = self.client.get(f"/api/admin/verifications/{self.verification['_id']}/")

        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.data["data"]["pagination"]["total"], 1)
        self.assertEqual(listing.data["data"]["pagination"]["limit"], 10)
        self.assertEqual(listing.data["data"]["verifications"][0]["_id"], str(self.verification["_id"]))
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.data["data"]["user"]["email"], "mentor@example.com")


class MentorVerificationEndpointTests(MongoTestMixin, APISimpleTestCase):
    def setUp(self):
        super().setUp()
        self.mentor = self.create_mentor()
        self.verification = self.create_verification(
            self.mentor,
            status="info_requested",
            requestedInfo="Upload a degree certificate",
        )
        self.authenticate(self.mentor)

    def test_mentor_reads_status(self):
        response = self.client.get("/api/mentors/verification/update/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["requestedInfo"], "Upload a degree certificate")

    def test_mentor_submits_additional_info(self):
        response = self.client.post(
            "/api/mentors/verification/update/",
            {
                "additionalInfo": "Uploaded it",
                "updatedDocuments": [
                    {
                        "type": "degree",
                        "fileName": "deg.pdf",
                        "fileUrl": "/uploads/deg.pdf",
                        "fileSize": 2048,
                        "mimeType": "application/pdf",
                    }
                ],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["data"]["status"], "pending")
        stored = get_collection(MENTOR_VERIFICATIONS).find_one({"_id": self.verification["_id"]})
        self.assertEqual(stored["documents"][0]["fileName"], "deg.pdf")
        self.assertEqual(stored["documents"][0]["fileSize"], 2048)
        self.assertEqual(stored["documents"][0]["mimeType"], "application/pdf")
        self.assertEqual(stored["documents"][0]["status"], "pending")

    def test_empty_submission_is_rejected(self):
        response = self.client.post("/api/mentors/verification/update/", {}, format="json")

        self.assertEqual(response.status_code, 400)

    def test_students_cannot_use_mentor_endpoint(self):
        self.authenticate(self.create_user())

        response = self.client.get("/api/mentors/verification/update/")

        self.assertEqual(response.status_code, 403)


class AdminUserEndpointTests(MongoTestMixin, APISimpleTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.create_admin()
        self.mentor = self.create_mentor(email="mentor@example.com")
        self.student = self.create_user(ROLE_MENTEE, email="student@example.com", name="Riya Kapoor")
        self.authenticate(self.admin)

    def test_list_users_with_filters(self):
        response = self.client.get("/api/admin/users/", {"role": "student", "limit": 5})

        self.assertEqual(response.status_code, 200)
        data = response.data["data"]
        self.assertEqual(data["pagination"], {"page": 1, "limit": 5, "total": 1, "pages": 1})
        self.assertEqual(data["users"][0]["email"], "student@example.com")
        self.assertEqual(data["users"][0]["role"], "student")

    def test_patch_user(self):
        response = self.client.patch(
            f"/api/admin/users/{self.mentor['_id']}/",
            {"isActive": False},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertFalse(get_collection(USERS).find_one({"_id": self.mentor["_id"]})["isActive"])

    def test_patch_user_requires_a_field(self):
        response = self.client.patch(f"/api/admin/users/{self.mentor['_id']}/", {}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("non_field_errors", response.data["errors"])

    def test_unknown_user_is_not_found(self):
        response = self.client.get(f"/api/admin/users/{ObjectId()}/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["message"], "User not found")

    def test_test_results(self):
        get_collection(PSYCHOMETRIC_TESTS).insert_one(
            {
                "userId": self.student["_id"],
                "status": "completed",
                "employabilityResult": {"scores": {"teamWork": 7}, "overallScore": 6.5},
            }
        )

        response = self.client.get(f"/api/admin/users/{self.student['_id']}/test-results/")

        self.assertEqual(response.status_code, 200)
        employability = response.data["data"]["sections"]["employability"]
        self.assertEqual(employability["teamWork"], 7)
        self.assertEqual(employability["quotient"], 6.5)

    def test_export_csv(self):
        response = self.client.get("/api/admin/users/export/", {"format": "csv"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        self.assertIn("attachment; filename=\"users_export_", response["Content-Disposition"])
        lines = response.content.decode().strip().split("\n")
        self.assertEqual(len(lines), 4)

    def test_export_unknown_format_is_rejected(self):
        response = self.client.get("/api/admin/users/export/", {"format": "pdf"})

        self.assertEqual(response.status_code, 400)
        self.assertIn("format", response.data["errors"])

    def test_sessions_list(self):
        self.create_session(self.mentor, self.student)

        response = self.client.get("/api/admin/sessions/")

        self.assertEqual(response.status_code, 200)
        session = response.data["data"]["sessions"][0]
        self.assertEqual(session["mentor"]["email"], "mentor@example.com")
        self.assertNotIn("passwordHash", session["student"])

    def test_dashboard_endpoints(self):
        self.create_session(self.mentor, self.student)

        stats = self.client.get("/api/admin/stats/")
        overview = self.client.get("/api/admin/overview/")
        analytics = self.client.get("/api/admin/analytics/", {"timeRange": "7d"})

        self.assertEqual(stats.status_code, 200)
        self.assertEqual(stats.data["data"]["totalUsers"], 3)
        self.assertEqual(overview.status_code, 200)
        self.assertIn("quickActions", overview.data["data"])
        self.assertEqual(analytics.status_code, 200)
        self.assertEqual(analytics.data["data"]["timeRange"], "7d")
        self.assertEqual(analytics.data["data"]["platformHealth"]["systemUptime"], 99.9)


class AdminNotificationEndpointTests(MongoTestMixin, APISimpleTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.create_admin()
        self.student = self.create_user(email="student@example.com", name="Riya Kapoor")
        self.authenticate(self.admin)

    def test_create_targets_admin_by_default(self):
        response = self.client.post(
            "/api/admin/notifications/create/",
            {"type": "system_alert", "title": "Heads up", "message": "Maintenance tonight"},
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        stored = get_collection(NOTIFICATIONS).find_one({"_id": ObjectId(response.data["data"]["notificationId"])})
        self.assertEqual(stored["userId"], self.admin["_id"])
        self.assertEqual(stored["priority"], "medium")

    def test_create_global(self):
        response = self.client.post(
            "/api/admin/notifications/create/",
            {"type": "platform_update", "title": "New", "message": "Release", "isGlobal": True},
            format="json",
        )

        stored = get_collection(NOTIFICATIONS).find_one({"_id": ObjectId(response.data["data"]["notificationId"])})
        self.assertNotIn("userId", stored)

    def test_bulk_operations(self):
        first = create_notification("user_registered", "One", "First", user_id=self.admin["_id"])
        second = create_notification("payment_failed", "Two", "Second")
        ids = [str(first["_id"]), str(second["_id"])]

        marked = self.client.patch("/api/admin/notifications/mark-read/", {"notificationIds": ids}, format="json")
        self.assertEqual(marked.data["data"]["modifiedCount"], 2)

        unmarked = self.client.patch(
            "/api/admin/notifications/mark-unread/", {"notificationIds": ids[:1]}, format="json"
        )
        self.assertEqual(unmarked.data["data"]["modifiedCount"], 1)

        stats = self.client.get("/api/admin/notifications/stats/")
        self.assertEqual(stats.data["data"]["unread"], 1)
        self.assertEqual(stats.data["data"]["payment_notifications"], 1)

        all_read = self.client.patch("/api/admin/notifications/mark-all-read/", {}, format="json")
        self.assertEqual(all_read.data["data"]["modifiedCount"], 1)

        deleted = self.client.delete("/api/admin/notifications/delete/", {"notificationIds": ids}, format="json")
        self.assertEqual(deleted.data["data"]["deletedCount"], 2)

        listing = self.client.get("/api/admin/notifications/")
        self.assertEqual(listing.data["data"]["pagination"]["total"], 0)

    def test_bulk_operations_require_ids(self):
        response = self.client.patch("/api/admin/notifications/mark-read/", {"notificationIds": []}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("notificationIds", response.data["errors"])

    def test_send_message(self):
        response = self.client.post(
            "/api/admin/messages/send/",
            {"userId": str(self.student["_id"]), "message": "Please update your profile."},
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["data"]["sentTo"], "student@example.com")
        notification = get_collection(NOTIFICATIONS).find_one({"userId": self.student["_id"]})
        self.assertEqual(notification["type"], "admin_message")
        self.assertEqual(notification["data"]["adminName"], "Alex Admin")
        self.assertEqual(mail.outbox[0].to, ["student@example.com"])

    def test_send_message_validation(self):
        too_long = self.client.post(
            "/api/admin/messages/send/",
            {"userId": str(self.student["_id"]), "message": "x" * 501},
            format="json",
        )
        bad_id = self.client.post(
            "/api/admin/messages/send/",
            {"userId": "nope", "message": "Hi"},
            format="json",
        )
        missing = self.client.post(
            "/api/admin/messages/send/",
            {"userId": str(ObjectId()), "message": "Hi"},
            format="json",
        )

        self.assertEqual(too_long.status_code, 400)
        self.assertEqual(bad_id.status_code, 400)
        self.assertEqual(missing.status_code, 404)


class UserNotificationEndpointTests(MongoTestMixin, APISimpleTestCase):
    def setUp(self):
        super().setUp()
        self.student = self.create_user()
        self.notification = create_notification("admin_message", "Hello", "Welcome", user_id=self.student["_id"])
        create_notification("admin_message", "Other", "Not yours", user_id=ObjectId())
        self.authenticate(self.student)

    def test_list_and_mark_read(self):
        listing = self.client.get("/api/notifications/")
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.data["data"]["unreadCount"], 1)
        self.assertEqual(len(listing.data["data"]["notifications"]), 1)

        marked = self.client.patch(
            "/api/notifications/",
            {"notificationId": str(self.notification["_id"])},
            format="json",
        )
        self.assertEqual(marked.status_code, 200)

        unread = self.client.get("/api/notifications/", {"unread": "true"})
        self.assertEqual(unread.data["data"]["pagination"]["total"], 0)

    def test_mark_all_read(self):
        response = self.client.patch("/api/notifications/", {"markAllAsRead": True}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(get_collection(NOTIFICATIONS).find_one({"_id": self.notification["_id"]})["read"])


class FileDownloadEndpointTests(MongoTestMixin, APISimpleTestCase):
    def setUp(self):
        super().setUp()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        uploads = Path(self.tmpdir.name) / "uploads"
        uploads.mkdir()
        (uploads / "id.pdf").write_bytes(b"%PDF-1.4")
        self.authenticate(self.create_admin())

    def test_download_allow_listed_file(self):
        with override_settings(UPLOADS_ROOT=self.tmpdir.name):
            response = self.client.get("/api/admin/files/download/uploads/id.pdf")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertEqual(response["Cache-Control"], "no-cache")
        self.assertIn("attachment", response["Content-Disposition"])
        self.assertEqual(b"".join(response.streaming_content), b"%PDF-1.4")

    def test_download_refuses_unreferenced_paths(self):
        with override_settings(UPLOADS_ROOT=self.tmpdir.name):
            response = self.client.get("/api/admin/files/download/secrets/keys.txt")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["message"], "File not found or access denied")


class MentorSearchEndpointTests(MongoTestMixin, APISimpleTestCase):
    def setUp(self):
        super().setUp()
        self.top = self.create_mentor(
            isVerified=True,
            profile={"isVerified": True, "rating": 4.9, "expertise": ["Physics"], "pricing": {"hourlyRate": 60}},
        )
        self.other = self.create_mentor(
            isVerified=True,
            profile={"isVerified": True, "rating": 4.2, "expertise": ["Mathematics"]},
        )
        self.create_mentor(profile={"isVerified": False, "rating": 5.0})

    def test_public_search_orders_by_rating(self):
        response = self.client.get("/api/mentors/search/")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["total"], 2)
        self.assertEqual([row["rating"] for row in response.data["data"]], [4.9, 4.2])

    def test_search_filters(self):
        by_subject = self.client.get("/api/mentors/search/", {"expertise": "Mathematics"})
        by_price = self.client.get("/api/mentors/search/", {"minPrice": 50})

        self.assertEqual(by_subject.data["total"], 1)
        self.assertEqual(by_subject.data["data"][0]["rating"], 4.2)
        self.assertEqual(by_price.data["total"], 1)
        self.assertEqual(by_price.data["data"][0]["hourlyRate"], 60)

    def test_invalid_price_is_rejected(self):
        response = self.client.get("/api/mentors/search/", {"minPrice": "cheap"})

        self.assertEqual(response.status_code, 400)
