import logging

from django.http import FileResponse, HttpResponse
from rest_framework import status
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from . import analytics, emails, exports, files, mentors, notifications, users, verification
from .auth import present_session_user
from .database import get_collection, serialize_document, to_object_id, utcnow
from .documents import USERS
from .documents.notification import TYPE_ADMIN_MESSAGE
from .documents.user import ROLE_ADMIN, display_name
from .pagination import build_pagination, page_params
from .permissions import (
    IsAdminRole,
    IsAuthenticatedWithAppRole,
    IsMentorRole,
)
from .serializers import (
    AdminMessageSerializer,
    MentorSearchQuerySerializer,
    NotificationCreateSerializer,
    NotificationIdsSerializer,
    UserExportQuerySerializer,
    UserNotificationUpdateSerializer,
    UserUpdateSerializer,
    VerificationActionSerializer,
    VerificationInfoUpdateSerializer,
)


logger = logging.getLogger(__name__)


def success_response(data=None, message=None, status_code=status.HTTP_200_OK, **extra):
    payload = {"success": True}
    if message:
        payload["message"] = message
    if data is not None:
        payload["data"] = serialize_document(data)
    payload.update(serialize_document(extra))
    return Response(payload, status=status_code)


def paginated_response(key, items, page, limit, total, **extra):
    return success_response({key: items, "pagination": build_pagination(page, limit, total), **extra})


def current_user_id(request):
    return to_object_id(getattr(request.user, "id", None))


class AdminAPIView(APIView):
    permission_classes = [IsAdminRole]


class AdminGenericAPIView(GenericAPIView):
    permission_classes = [IsAdminRole]


# Auth


class AdminMeView(AdminAPIView):
    def get(self, request):
        user = get_collection(USERS).find_one({"_id": current_user_id(request)})
        if not user:
            raise NotFound("Admin user not found")
        if user.get("role") != ROLE_ADMIN or not user.get("isActive"):
            raise PermissionDenied("Access denied")
        payload = present_session_user(user)
        payload.update(
            {
                "isVerified": user.get("isVerified"),
                "isActive": user.get("isActive"),
                "createdAt": user.get("createdAt"),
            }
        )
        return success_response({"user": payload})


class AdminLogoutView(AdminAPIView):
    def post(self, request):
        return success_response(message="Logout acknowledged on server.")


# Dashboard


class AdminStatsView(AdminAPIView):
    def get(self, request):
        return success_response(analytics.dashboard_stats())


class AdminOverviewView(AdminAPIView):
    def get(self, request):
        return success_response(analytics.dashboard_overview())


class AdminAnalyticsView(AdminAPIView):
    def get(self, request):
        time_range = request.query_params.get("timeRange") or analytics.DEFAULT_TIME_RANGE
        return success_response(analytics.build_analytics(time_range))


# Users and sessions


class AdminUserListView(AdminAPIView):
    def get(self, request):
        page, limit, skip = page_params(request.query_params)
        rows, total = users.list_users(
            search=request.query_params.get("search", ""),
            role=request.query_params.get("role", ""),
            status=request.query_params.get("status", ""),
            skip=skip,
            limit=limit,
        )
        return paginated_response("users", rows, page, limit, total)


class AdminUserDetailView(AdminGenericAPIView):
    serializer_class = UserUpdateSerializer

    def get(self, request, user_id):
        return success_response(users.get_user_detail(user_id))

    def patch(self, request, user_id):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        users.update_user(user_id, serializer.validated_data)
        logger.info("Admin %s updated user %s: %s", request.user.id, user_id, sorted(serializer.validated_data))
        return success_response(message="User updated successfully")


class AdminUserTestResultsView(AdminAPIView):
    def get(self, request, user_id):
        return success_response(users.get_test_results(user_id))


class AdminUserExportView(AdminAPIView):
    def get(self, request):
        serializer = UserExportQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data
        rows = users.find_users(users.build_user_query(params["search"], params["role"], params["status"]))
        content, content_type, filename = exports.export_users(rows, params["format"])
        response = HttpResponse(content, content_type=content_type)
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response


class AdminSessionListView(AdminAPIView):
    def get(self, request):
        page, limit, skip = page_params(request.query_params)
        rows, total = users.list_sessions(
            status=request.query_params.get("status", ""),
            skip=skip,
            limit=limit,
        )
        return paginated_response("sessions", rows, page, limit, total)


# Mentor verification


class AdminVerificationListView(AdminAPIView):
    def get(self, request):
        page, limit, skip = page_params(request.query_params, verification.DEFAULT_LIST_LIMIT)
        rows, total = verification.list_verifications(
            request.query_params.get("status") or "pending",
            skip=skip,
            limit=limit,
        )
        return paginated_response("verifications", rows, page, limit, total)


class AdminVerificationDetailView(AdminAPIView):
    def get(self, request, verification_id):
        return success_response(verification.get_verification_detail(verification_id))


class AdminVerificationActionView(AdminGenericAPIView):
    serializer_class = VerificationActionSerializer

    def post(self, request, verification_id):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        action = serializer.validated_data["action"]
        result = verification.apply_verification_action(
            verification_id,
            action,
            notes=serializer.validated_data.get("notes"),
            requested_info=serializer.validated_data.get("requestedInfo"),
            admin_id=current_user_id(request),
        )
        past_tense = {"approve": "approved", "reject": "rejected", "request_info": "updated"}[action]
        return success_response(result, message=f"Verification {past_tense} successfully")


class MentorVerificationUpdateView(GenericAPIView):
    permission_classes = [IsMentorRole]
    serializer_class = VerificationInfoUpdateSerializer

    def get(self, request):
        return success_response(verification.get_verification_status(current_user_id(request)))

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = verification.submit_additional_info(
            current_user_id(request),
            serializer.validated_data.get("additionalInfo"),
            serializer.validated_data.get("updatedDocuments") or [],
        )
        return success_response(
            result,
            message="Additional information submitted successfully. "
            "Your application is now under review again.",
        )


# Notifications


class AdminNotificationListView(AdminAPIView):
    def get(self, request):
        page, limit, skip = page_params(request.query_params)
        rows, total = notifications.list_admin_notifications(
            current_user_id(request),
            notification_type=request.query_params.get("type", ""),
            read=request.query_params.get("read", ""),
            search=request.query_params.get("search", ""),
            skip=skip,
            limit=limit,
        )
        return paginated_response("notifications", rows, page, limit, total)


class AdminNotificationCreateView(AdminGenericAPIView):
    serializer_class = NotificationCreateSerializer

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        admin_id = current_user_id(request)

        recipient = data.get("targetUserId")
        if recipient is None and not data.get("isGlobal"):
            recipient = admin_id

        notification = notifications.create_notification(
            data["type"],
            data["title"],
            data["message"],
            user_id=recipient,
            data=data.get("data"),
            priority=data.get("priority"),
            created_by=admin_id,
        )
        return success_response(
            {"notificationId": notification["_id"]},
            message="Notification created successfully",
        )


class AdminNotificationBulkView(AdminGenericAPIView):
    serializer_class = NotificationIdsSerializer

    def notification_ids(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data["notificationIds"]


class AdminNotificationMarkReadView(AdminNotificationBulkView):
    def patch(self, request):
        count = notifications.mark_read(current_user_id(request), self.notification_ids(request))
        return success_response(
            {"modifiedCount": count},
            message=f"{count} notification(s) marked as read",
        )


class AdminNotificationMarkUnreadView(AdminNotificationBulkView):
    def patch(self, request):
        count = notifications.mark_unread(current_user_id(request), self.notification_ids(request))
        return success_response(
            {"modifiedCount": count},
            message=f"{count} notification(s) marked as unread",
        )


class AdminNotificationDeleteView(AdminNotificationBulkView):
    def delete(self, request):
        count = notifications.delete_notifications(current_user_id(request), self.notification_ids(request))
        return success_response(
            {"deletedCount": count},
            message=f"{count} notification(s) deleted",
        )


class AdminNotificationMarkAllReadView(AdminAPIView):
    def patch(self, request):
        count = notifications.mark_all_read(current_user_id(request))
        return success_response(
            {"modifiedCount": count},
            message=f"{count} notification(s) marked as read",
        )


class AdminNotificationStatsView(AdminAPIView):
    def get(self, request):
        return success_response(notifications.notification_stats(current_user_id(request)))


class UserNotificationView(GenericAPIView):
    permission_classes = [IsAuthenticatedWithAppRole]
    serializer_class = UserNotificationUpdateSerializer

    def get(self, request):
        page, limit, skip = page_params(request.query_params)
        rows, total, unread_count = notifications.list_user_notifications(
            current_user_id(request),
            unread_only=request.query_params.get("unread") == "true",
            skip=skip,
            limit=limit,
        )
        return paginated_response("notifications", rows, page, limit, total, unreadCount=unread_count)

    def patch(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user_id = current_user_id(request)
        if serializer.validated_data.get("markAllAsRead"):
            notifications.mark_all_user_notifications_read(user_id)
            return success_response(message="All notifications marked as read")
        notifications.mark_user_notification_read(user_id, serializer.validated_data["notificationId"])
        return success_response(message="Notification marked as read")


class AdminMessageSendView(AdminGenericAPIView):
    serializer_class = AdminMessageSerializer

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = serializer.validated_data["message"]

        users_collection = get_collection(USERS)
        user = users_collection.find_one({"_id": serializer.validated_data["userId"]})
        if not user:
            raise NotFound("User not found")
        admin = users_collection.find_one({"_id": current_user_id(request)})
        if not admin:
            raise NotFound("Admin not found")

        sent_at = utcnow()
        admin_name = display_name(admin, default="Admin")
        notifications.create_notification(
            TYPE_ADMIN_MESSAGE,
            "Message from Admin",
            message,
            user_id=user["_id"],
            data={"adminId": str(admin["_id"]), "adminName": admin_name, "sentAt": sent_at},
            created_by=admin["_id"],
        )

        try:
            emails.send_admin_message_email(user.get("email"), display_name(user), message, admin_name)
        except Exception:
            logger.exception("Failed to send admin message email to %s", user.get("email"))

        return success_response(
            {"sentTo": user.get("email"), "sentAt": sent_at},
            message="Message sent successfully",
        )


# Files


class AdminFileDownloadView(AdminAPIView):
    def get(self, request, file_path):
        path = files.resolve_download(file_path)
        logger.info("Admin %s downloaded %s", request.user.id, path.name)
        response = FileResponse(
            path.open("rb"),
            as_attachment=True,
            filename=path.name,
            content_type=files.mime_type_for(path.name),
        )
        response["Cache-Control"] = "no-cache"
        return response


# Public


class MentorSearchView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        serializer = MentorSearchQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        results = mentors.search_mentors(**serializer.to_search_kwargs())
        return success_response(results, total=len(results))
