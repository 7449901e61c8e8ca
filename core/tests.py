import csv
import io
import json
import tempfile
import time
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import mongomock
from bson import ObjectId
from django.core import mail
from django.test import SimpleTestCase, override_settings
from rest_framework.exceptions import NotFound, ValidationError

from core import analytics, exports, files, notifications, users, verification
from core.database import get_client, get_collection, serialize_document, set_client, to_object_id
from core.documents import MENTOR_PROFILES, MENTOR_VERIFICATIONS, NOTIFICATIONS, USERS
from core.documents.mentor import can_transition
from core.documents.psychometric_test import transform_test_result
from core.documents.user import ROLE_MENTEE, ROLE_MENTOR
from core.pagination import build_pagination, page_params
from core.parallel import gather
from core.testing import MongoTestMixin


class VerificationWorkflowTests(MongoTestMixin, SimpleTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.create_admin()
        self.mentor = self.create_mentor(email="mentor@example.com", firstName="Asha")

    def _verification(self, verification_id):
        return get_collection(MENTOR_VERIFICATIONS).find_one({"_id": verification_id})

    def test_reject_records_reason_and_notifies_mentor(self):
        pending = self.create_verification(self.mentor)

        result = verification.apply_verification_action(
            str(pending["_id"]),
            "reject",
            notes="incomplete docs",
            admin_id=self.admin["_id"],
        )

        self.assertEqual(result["status"], "rejected")
        stored = self._verification(pending["_id"])
        self.assertEqual(stored["status"], "rejected")
        self.assertEqual(stored["rejectionReason"], "incomplete docs")
        self.assertEqual(stored["reviewedBy"], self.admin["_id"])

        notification = get_collection(NOTIFICATIONS).find_one({"userId": self.mentor["_id"]})
        self.assertEqual(notification["type"], "verification_rejected")
        self.assertFalse(notification["read"])
        self.assertEqual(notification["priority"], "high")
        self.assertEqual(notification["data"]["verificationId"], str(pending["_id"]))

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["mentor@example.com"])
        self.assertIn("incomplete docs", mail.outbox[0].alternatives[0][0])

    def test_approve_marks_profile_verified(self):
        pending = self.create_verification(self.mentor)

        verification.apply_verification_action(pending["_id"], "approve", notes="Looks good")

        self.assertEqual(self._verification(pending["_id"])["status"], "approved")
        profile = get_collection(MENTOR_PROFILES).find_one({"userId": self.mentor["_id"]})
        self.assertTrue(profile["isVerified"])
        self.assertIn("verifiedAt", profile)
        self.assertIn("Approved", mail.outbox[0].subject)

    def test_terminal_states_refuse_further_actions(self):
        rejected = self.create_verification(self.mentor, status="rejected")

        with self.assertRaises(ValidationError):
            verification.apply_verification_action(rejected["_id"], "approve")

        self.assertEqual(self._verification(rejected["_id"])["status"], "rejected")
        self.assertEqual(get_collection(NOTIFICATIONS).count_documents({}), 0)

    def test_transition_table(self):
        self.assertTrue(can_transition("pending", "approved"))
        self.assertTrue(can_transition("info_requested", "info_requested"))
        self.assertTrue(can_transition("info_requested", "pending"))
        self.assertFalse(can_transition("approved", "rejected"))
        self.assertFalse(can_transition("rejected", "pending"))

    @patch("core.emails.send_mentor_rejection_email", side_effect=RuntimeError("SMTP down"))
    def test_email_failure_does_not_abort_action(self, mock_send):
        pending = self.create_verification(self.mentor)

        with self.assertLogs("core.verification", level="ERROR"):
            result = verification.apply_verification_action(pending["_id"], "reject", notes="blurry id")

        mock_send.assert_called_once_with("mentor@example.com", "Asha", "blurry id")
        self.assertEqual(result["status"], "rejected")
        self.assertEqual(get_collection(NOTIFICATIONS).count_documents({"userId": self.mentor["_id"]}), 1)

    def test_request_info_then_mentor_answers_returns_to_pending(self):
        pending = self.create_verification(
            self.mentor,
            documents=[{"fileName": "id.pdf", "fileUrl": "/uploads/id.pdf", "status": "pending"}],
        )
        verification.apply_verification_action(
            pending["_id"],
            "request_info",
            requested_info="Upload your degree certificate",
        )
        stored = self._verification(pending["_id"])
        self.assertEqual(stored["status"], "info_requested")
        self.assertEqual(stored["requestedInfo"], "Upload your degree certificate")

        result = verification.submit_additional_info(
            self.mentor["_id"],
            "Certificate attached",
            [{"fileName": "degree.pdf", "fileUrl": "/uploads/degree.pdf"}],
        )

        self.assertEqual(result["status"], "pending")
        stored = self._verification(pending["_id"])
        self.assertEqual(stored["status"], "pending")
        self.assertNotIn("requestedInfo", stored)
        self.assertEqual(stored["additionalInfoProvided"], "Certificate attached")
        self.assertEqual([doc["fileName"] for doc in stored["documents"]], ["id.pdf", "degree.pdf"])
        self.assertEqual(stored["documents"][1]["status"], "pending")

        provided = get_collection(NOTIFICATIONS).find_one({"type": "verification_info_provided"})
        self.assertNotIn("userId", provided)
        self.assertEqual(provided["data"]["mentorName"], "Asha Mentor")

    def test_repeated_request_info_keeps_latest_request(self):
        open_request = self.create_verification(self.mentor, status="info_requested", requestedInfo="Upload ID")

        verification.apply_verification_action(
            open_request["_id"],
            "request_info",
            requested_info="Upload a clearer scan of your ID",
        )

        stored = self._verification(open_request["_id"])
        self.assertEqual(stored["status"], "info_requested")
        self.assertEqual(stored["requestedInfo"], "Upload a clearer scan of your ID")

    def test_submit_without_open_request_raises_not_found(self):
        self.create_verification(self.mentor)

        with self.assertRaises(NotFound):
            verification.submit_additional_info(self.mentor["_id"], "Anything")

    def test_malformed_or_unknown_verification_id_raises_not_found(self):
        with self.assertRaises(NotFound):
            verification.apply_verification_action("not-an-id", "approve")
        with self.assertRaises(NotFound):
            verification.apply_verification_action(ObjectId(), "approve")

    def test_list_verifications_joins_user_without_password(self):
        self.create_verification(self.mentor)
        other = self.create_mentor()
        self.create_verification(other, status="approved")

        rows, total = verification.list_verifications("pending")

        self.assertEqual(total, 1)
        self.assertEqual(rows[0]["user"]["email"], "mentor@example.com")
        self.assertNotIn("passwordHash", rows[0]["user"])
        self.assertEqual(rows[0]["profile"]["userId"], self.mentor["_id"])


class AdminNotificationTests(MongoTestMixin, SimpleTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.create_admin()
        self.other = self.create_user()
        self.own = notifications.create_notification(
            "verification_approved", "Own", "For the admin", user_id=self.admin["_id"]
        )
        self.global_one = notifications.create_notification("user_registered", "Global", "Everyone")
        self.payment = notifications.create_notification("payment_failed", "Payment", "Card declined")
        self.system = notifications.create_notification(
            "system_alert", "System", "Disk almost full", user_id=self.other["_id"]
        )
        self.private = notifications.create_notification(
            "admin_message", "Private", "Only for the student", user_id=self.other["_id"]
        )

    def test_inbox_includes_own_global_and_system_notifications(self):
        items, total = notifications.list_admin_notifications(self.admin["_id"])

        self.assertEqual(total, 4)
        self.assertNotIn(self.private["_id"], {item["_id"] for item in items})

    def test_filters_combine_with_inbox(self):
        items, total = notifications.list_admin_notifications(self.admin["_id"], search="disk")
        self.assertEqual(total, 1)
        self.assertEqual(items[0]["_id"], self.system["_id"])

        _, total = notifications.list_admin_notifications(self.admin["_id"], notification_type="PAYMENT")
        self.assertEqual(total, 1)

    def test_mark_read_is_scoped_to_inbox(self):
        count = notifications.mark_read(self.admin["_id"], [self.own["_id"], self.private["_id"]])

        self.assertEqual(count, 1)
        private = get_collection(NOTIFICATIONS).find_one({"_id": self.private["_id"]})
        self.assertFalse(private["read"])

    def test_mark_unread_clears_read_timestamp(self):
        notifications.mark_all_read(self.admin["_id"])
        notifications.mark_unread(self.admin["_id"], [self.own["_id"]])

        own = get_collection(NOTIFICATIONS).find_one({"_id": self.own["_id"]})
        self.assertFalse(own["read"])
        self.assertNotIn("readAt", own)

    def test_delete_ignores_notifications_outside_inbox(self):
        deleted = notifications.delete_notifications(self.admin["_id"], [self.global_one["_id"], self.private["_id"]])

        self.assertEqual(deleted, 1)
        self.assertEqual(get_collection(NOTIFICATIONS).count_documents({}), 4)

    def test_stats_count_categories_by_type(self):
        notifications.mark_read(self.admin["_id"], [self.own["_id"]])

        stats = notifications.notification_stats(self.admin["_id"])

        self.assertEqual(stats["total"], 4)
        self.assertEqual(stats["unread"], 3)
        self.assertEqual(stats["read"], 1)
        self.assertEqual(stats["verification_notifications"], 1)
        self.assertEqual(stats["user_notifications"], 1)
        self.assertEqual(stats["payment_notifications"], 1)
        self.assertEqual(stats["system_notifications"], 1)

    def test_user_inbox_only_lists_own_notifications(self):
        items, total, unread = notifications.list_user_notifications(self.other["_id"])

        self.assertEqual(total, 2)
        self.assertEqual(unread, 2)
        self.assertTrue(all(item["userId"] == self.other["_id"] for item in items))

        with self.assertRaises(NotFound):
            notifications.mark_user_notification_read(self.other["_id"], self.own["_id"])


class AnalyticsTests(MongoTestMixin, SimpleTestCase):
    def test_growth_percentage(self):
        self.assertEqual(analytics.growth_percentage(10, 0), 0)
        self.assertEqual(analytics.growth_percentage(150, 100), 50.0)
        self.assertEqual(analytics.growth_percentage(1, 3), -66.67)

    def test_dashboard_stats_counts_revenue_in_currency_units(self):
        self.create_admin()
        mentor = self.create_mentor()
        student = self.create_user()
        self.create_session(mentor, student, amount=5000)
        self.create_session(mentor, student, status="cancelled", amount=2500, payment={"status": "refunded"})

        stats = analytics.dashboard_stats()

        self.assertEqual(stats["totalUsers"], 3)
        self.assertEqual(stats["totalMentors"], 1)
        self.assertEqual(stats["totalStudents"], 1)
        self.assertEqual(stats["completedSessions"], 1)
        self.assertEqual(stats["totalRevenue"], 50.0)
        self.assertEqual(stats["completionRate"], 50.0)

    def test_platform_health_reports_static_figures(self):
        health = analytics.platform_health()

        self.assertEqual(health["systemUptime"], 99.9)
        self.assertEqual(health["errorRate"], 0.01)
        self.assertEqual(health["pendingVerifications"], 0)

    def test_user_growth_is_zero_filled_and_cumulative(self):
        self.create_mentor(createdAt=datetime(2024, 3, 2, 10, 0))
        self.create_user(createdAt=datetime(2024, 3, 2, 18, 30))
        self.create_user(createdAt=datetime(2024, 3, 4, 9, 0))
        self.create_user(createdAt=datetime(2024, 2, 20))

        series = analytics.user_growth(datetime(2024, 3, 1), datetime(2024, 3, 4, 12, 0))

        self.assertEqual([row["date"] for row in series], ["2024-03-01", "2024-03-02", "2024-03-03", "2024-03-04"])
        self.assertEqual(
            [(row["newMentors"], row["newStudents"], row["newTotal"]) for row in series],
            [(0, 0, 0), (1, 1, 2), (0, 0, 0), (0, 1, 1)],
        )
        self.assertEqual(
            [(row["totalMentors"], row["totalStudents"], row["totalUsers"]) for row in series],
            [(0, 0, 0), (1, 1, 2), (1, 1, 2), (1, 2, 3)],
        )

    def test_revenue_converts_cents_into_daily_or_monthly_buckets(self):
        mentor = self.create_mentor()
        student = self.create_user()
        self.create_session(mentor, student, amount=5000, createdAt=datetime(2024, 3, 2, 9, 0))
        self.create_session(mentor, student, amount=2550, createdAt=datetime(2024, 3, 2, 15, 0))
        self.create_session(mentor, student, amount=1000, createdAt=datetime(2024, 3, 4, 9, 0))
        self.create_session(
            mentor,
            student,
            amount=9900,
            createdAt=datetime(2024, 3, 3, 9, 0),
            payment={"amount": 9900, "status": "pending"},
        )
        start, end = datetime(2024, 3, 1), datetime(2024, 3, 31)

        daily = analytics.revenue(start, end, "30d")
        monthly = analytics.revenue(start, end, "1y")

        self.assertEqual(
            daily,
            [
                {"date": "2024-03-02", "revenue": 75.5, "sessions": 2},
                {"date": "2024-03-04", "revenue": 10.0, "sessions": 1},
            ],
        )
        self.assertEqual(monthly, [{"date": "2024-03", "revenue": 85.5, "sessions": 3}])

    def test_top_mentors_fall_back_to_default_rating(self):
        rated = self.create_mentor(profile={"rating": 4.9})
        unrated = self.create_mentor()
        student = self.create_user()
        self.create_session(rated, student, amount=5000)
        self.create_session(rated, student, amount=3000)
        self.create_session(unrated, student, amount=2000)
        self.create_session(unrated, student, status="cancelled")

        rows = analytics.top_mentors(analytics.utcnow() - timedelta(days=30))

        self.assertEqual([row["_id"] for row in rows], [rated["_id"], unrated["_id"]])
        self.assertEqual([row["sessions"] for row in rows], [2, 1])
        self.assertEqual([row["earnings"] for row in rows], [80.0, 20.0])
        self.assertEqual([row["rating"] for row in rows], [4.9, 4.5])

    def test_popular_subjects_report_integer_shares(self):
        polymath = self.create_mentor(profile={"expertise": ["Mathematics", "Physics"]})
        chemist = self.create_mentor(profile={"expertise": ["Chemistry"]})
        student = self.create_user()
        self.create_session(polymath, student)
        self.create_session(chemist, student)

        rows = analytics.popular_subjects(analytics.utcnow() - timedelta(days=30))

        shares = {row["subject"]: (row["sessions"], row["percentage"]) for row in rows}
        self.assertEqual(shares, {"Mathematics": (1, 33), "Physics": (1, 33), "Chemistry": (1, 33)})
        self.assertTrue(all(isinstance(row["percentage"], int) for row in rows))

    def test_weekly_session_stats_label_mongo_weekdays(self):
        mentor = self.create_mentor()
        student = self.create_user()
        saturday = datetime(2024, 3, 2, 12, 0)
        sunday = datetime(2024, 3, 3, 12, 0)
        self.create_session(mentor, student, status="completed", createdAt=saturday)
        self.create_session(mentor, student, status="cancelled", createdAt=saturday)
        self.create_session(mentor, student, status="completed", createdAt=sunday)
        self.create_session(mentor, student, status="no_show", createdAt=sunday)

        rows = analytics.weekly_session_stats(datetime(2024, 3, 1))

        self.assertEqual(
            rows,
            [
                {"day": "Sun", "completed": 1, "cancelled": 0, "noShow": 1},
                {"day": "Sat", "completed": 1, "cancelled": 1, "noShow": 0},
            ],
        )

    def test_unknown_time_range_falls_back_to_a_year(self):
        start, end = analytics.resolve_time_range("forever")

        self.assertEqual((end - start).days, 365)


class UserDirectoryTests(MongoTestMixin, SimpleTestCase):
    def test_student_role_filter_maps_to_mentees(self):
        self.create_user(ROLE_MENTEE, name="Riya Kapoor")
        self.create_mentor()

        rows, total = users.list_users(role="student")

        self.assertEqual(total, 1)
        self.assertEqual(rows[0]["role"], "student")
        self.assertEqual(rows[0]["firstName"], "Riya")
        self.assertEqual(rows[0]["lastName"], "Kapoor")
        self.assertNotIn("passwordHash", rows[0])

    def test_search_escapes_regex_characters(self):
        self.create_user(ROLE_MENTEE, email="a+b@example.com")
        self.create_user(ROLE_MENTEE, email="ab@example.com")

        _, total = users.list_users(search="a+b")

        self.assertEqual(total, 1)

    def test_update_user_maps_student_role(self):
        mentor = self.create_mentor()

        users.update_user(str(mentor["_id"]), {"role": "student", "isActive": False})

        stored = get_collection(USERS).find_one({"_id": mentor["_id"]})
        self.assertEqual(stored["role"], ROLE_MENTEE)
        self.assertFalse(stored["isActive"])

    def test_test_results_require_a_student(self):
        mentor = self.create_mentor()

        with self.assertRaises(NotFound) as ctx:
            users.get_test_results(mentor["_id"])
        self.assertEqual(str(ctx.exception.detail), "Student not found")

    def test_mentor_detail_includes_profile_and_earnings(self):
        mentor = self.create_mentor()
        student = self.create_user()
        self.create_session(mentor, student, amount=4000)

        detail = users.get_user_detail(str(mentor["_id"]))

        self.assertEqual(detail["user"]["role"], ROLE_MENTOR)
        self.assertEqual(detail["profile"]["userId"], mentor["_id"])
        self.assertEqual(detail["stats"]["totalSessions"], 1)
        self.assertEqual(detail["stats"]["totalEarnings"], 4000)


class TestResultTransformTests(SimpleTestCase):
    def test_missing_sections_default_to_zero(self):
        result = transform_test_result(
            {
                "_id": "t1",
                "userId": "u1",
                "status": "completed",
                "riasecResult": {"scores": {"R": 12, "I": 30}, "hollandCode": "IRA"},
            }
        )

        interests = result["sections"]["interests"]
        self.assertEqual(interests["realistic"], 12)
        self.assertEqual(interests["artistic"], 0)
        self.assertEqual(interests["hollandCode"], "IRA")
        self.assertEqual(result["sections"]["personality"]["dominantQuadrants"], [])
        self.assertEqual(result["sections"]["employability"]["quotient"], 0)
        self.assertTrue(result["isValid"])


class ExportTests(SimpleTestCase):
    def setUp(self):
        self.rows = [
            {
                "_id": ObjectId(),
                "firstName": "Ada",
                "lastName": 'O"Neil',
                "email": "ada@example.com",
                "role": "mentor",
                "isActive": True,
                "isVerified": False,
                "createdAt": None,
                "lastLoginAt": None,
            },
            {
                "_id": ObjectId(),
                "firstName": "Ben",
                "lastName": "Lee, Jr",
                "email": "ben@example.com",
                "role": "student",
                "isActive": False,
                "isVerified": True,
                "createdAt": None,
                "lastLoginAt": None,
            },
        ]

    def test_csv_has_header_and_one_line_per_user(self):
        content = exports.render_csv(self.rows)

        parsed = list(csv.reader(io.StringIO(content)))
        self.assertEqual(len(content.strip().split("\n")), len(self.rows) + 1)
        self.assertEqual(parsed[0], exports.HEADERS)
        self.assertEqual(parsed[1][2], 'O"Neil')
        self.assertEqual(parsed[2][2], "Lee, Jr")
        self.assertEqual(parsed[1][8], "Never")

    def test_json_export_wraps_users(self):
        content, content_type, filename = exports.export_users(self.rows, "json")

        payload = json.loads(content)
        self.assertEqual(content_type, "application/json")
        self.assertTrue(filename.endswith(".json"))
        self.assertEqual(payload["totalUsers"], 2)
        self.assertEqual(payload["users"][0]["id"], str(self.rows[0]["_id"]))

    def test_excel_export_escapes_values(self):
        self.rows[0]["firstName"] = "<Ada & Co>"

        content, content_type, filename = exports.export_users(self.rows, "excel")

        self.assertEqual(content_type, "application/vnd.ms-excel")
        self.assertTrue(filename.endswith(".xls"))
        self.assertIn("&lt;Ada &amp; Co&gt;", content)


class FileDownloadTests(MongoTestMixin, SimpleTestCase):
    def setUp(self):
        super().setUp()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        root = Path(self.tmpdir.name)
        (root / "uploads" / "verifications").mkdir(parents=True)
        (root / "uploads" / "verifications" / "id.pdf").write_bytes(b"%PDF-1.4")
        (root / "secret.txt").write_text("nope")

    def test_normalize_relative_path_never_escapes_root(self):
        self.assertEqual(files.normalize_relative_path("../../etc/passwd"), "etc/passwd")
        self.assertEqual(files.normalize_relative_path("uploads/./a/../b.pdf"), "uploads/b.pdf")
        self.assertEqual(files.normalize_relative_path(".."), "")

    def test_mime_type_lookup(self):
        self.assertEqual(files.mime_type_for("ID.PDF"), "application/pdf")
        self.assertEqual(files.mime_type_for("archive.bin"), "application/octet-stream")

    def test_allow_listed_file_resolves_inside_uploads_root(self):
        with override_settings(UPLOADS_ROOT=self.tmpdir.name):
            path = files.resolve_download("uploads/verifications/id.pdf")

        self.assertEqual(path.name, "id.pdf")

    def test_referenced_document_resolves_without_prefix(self):
        mentor = self.create_mentor()
        self.create_verification(
            mentor,
            documents=[{"fileName": "id.pdf", "fileUrl": "/uploads/verifications/id.pdf"}],
        )

        with override_settings(UPLOADS_ROOT=self.tmpdir.name):
            path = files.resolve_download("verifications/id.pdf")

        self.assertEqual(path.read_bytes(), b"%PDF-1.4")

    def test_unreferenced_file_is_refused(self):
        with override_settings(UPLOADS_ROOT=self.tmpdir.name):
            with self.assertRaises(NotFound):
                files.resolve_download("secret.txt")
            with self.assertRaises(NotFound):
                files.resolve_download("../secret.txt")

    def test_missing_allow_listed_file_is_not_found(self):
        with override_settings(UPLOADS_ROOT=self.tmpdir.name):
            with self.assertRaises(NotFound) as ctx:
                files.resolve_download("uploads/missing.pdf")
        self.assertEqual(str(ctx.exception.detail), "File not found on server")

    def test_matching_basename_does_not_count_as_a_reference(self):
        mentor = self.create_mentor()
        self.create_verification(
            mentor,
            documents=[{"fileName": "id.pdf", "fileUrl": "/uploads/verifications/id.pdf"}],
        )
        (Path(self.tmpdir.name) / "id.pdf").write_bytes(b"UNREFERENCED")

        with override_settings(UPLOADS_ROOT=self.tmpdir.name):
            with self.assertRaises(NotFound) as ctx:
                files.resolve_download("id.pdf")
        self.assertEqual(str(ctx.exception.detail), "File not found or access denied")

    def test_allow_listed_path_is_not_looked_up_outside_uploads(self):
        with override_settings(UPLOADS_ROOT=self.tmpdir.name):
            with self.assertRaises(NotFound) as ctx:
                files.resolve_download("uploads/secret.txt")
        self.assertEqual(str(ctx.exception.detail), "File not found on server")


class HelperTests(SimpleTestCase):
    def test_page_params_clamps_limit(self):
        self.assertEqual(page_params({"page": "3", "limit": "500"}), (3, 100, 200))
        self.assertEqual(page_params({"page": "-1", "limit": "abc"}), (1, 20, 0))
        self.assertEqual(build_pagination(1, 20, 41)["pages"], 3)

    def test_serialize_document_converts_nested_object_ids(self):
        object_id = ObjectId()
        self.assertEqual(
            serialize_document({"a": [object_id, {"b": object_id}]}),
            {"a": [str(object_id), {"b": str(object_id)}]},
        )
        self.assertIsNone(to_object_id("bogus"))

    def test_client_is_created_once_under_concurrent_access(self):
        set_client(None)
        self.addCleanup(set_client, None)

        def slow_client(*args, **kwargs):
            time.sleep(0.02)
            return mongomock.MongoClient()

        with patch("core.database.MongoClient", side_effect=slow_client) as client_class:
            clients = gather(**{f"worker{index}": get_client for index in range(6)})

        self.assertEqual(client_class.call_count, 1)
        self.assertEqual(len({id(client) for client in clients.values()}), 1)
