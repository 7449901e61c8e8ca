import logging

from django.contrib.auth.hashers import check_password
from rest_framework import exceptions, serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .database import get_collection, to_object_id, utcnow
from .documents import USERS
from .documents.user import ROLE_ADMIN, ROLE_MENTEE, ROLE_MENTOR, strip_private_fields, to_api_role


logger = logging.getLogger(__name__)


def present_session_user(user):
    user = strip_private_fields(user)
    return {
        "id": str(user["_id"]),
        "email": user.get("email"),
        "role": to_api_role(user.get("role")),
        "firstName": user.get("firstName"),
        "lastName": user.get("lastName"),
        "name": user.get("name"),
        "lastLoginAt": user.get("lastLoginAt"),
    }


class MentorMatchTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Check email and password against the users collection and issue a JWT pair."""

    allowed_roles = {ROLE_MENTEE, ROLE_MENTOR}
    extra_user_filter = {}

    default_error_messages = {
        "no_active_account": "No active account found with the given credentials",
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop(self.username_field, None)
        self.fields["email"] = serializers.EmailField(write_only=True)
        self.fields["password"] = serializers.CharField(write_only=True)

    @classmethod
    def get_token(cls, user):
        token = RefreshToken()
        token[api_settings.USER_ID_CLAIM] = str(user["_id"])
        token["role"] = user.get("role") or ""
        token["email"] = user.get("email") or ""
        return token

    def validate(self, attrs):
        email = attrs.get("email", "").strip().lower()
        user = get_collection(USERS).find_one(
            {
                "email": email,
                "isActive": True,
                "role": {"$in": sorted(self.allowed_roles)},
                **self.extra_user_filter,
            }
        )
        if not user or not check_password(attrs.get("password", ""), user.get("passwordHash")):
            raise exceptions.AuthenticationFailed(
                self.error_messages["no_active_account"],
                "no_active_account",
            )

        now = utcnow()
        get_collection(USERS).update_one(
            {"_id": user["_id"]},
            {"$set": {"lastLoginAt": now, "updatedAt": now}},
        )
        user["lastLoginAt"] = now
        self.user = user
        logger.info("User %s signed in as %s", user["_id"], user.get("role"))

        return {
            **build_auth_token_payload(user),
            "user": present_session_user(user),
        }


class MentorMatchAdminTokenObtainPairSerializer(MentorMatchTokenObtainPairSerializer):
    allowed_roles = {ROLE_ADMIN}
    extra_user_filter = {"isVerified": True}

    default_error_messages = {
        "no_active_account": "Invalid credentials or insufficient permissions",
    }


class MentorMatchTokenRefreshSerializer(TokenRefreshSerializer):
    """Issue a new access token, refusing users who were deactivated since login."""

    default_error_messages = {
        "no_active_account": "User not found or inactive",
    }

    def validate(self, attrs):
        refresh = self.token_class(attrs["refresh"])

        user_id = to_object_id(refresh.get(api_settings.USER_ID_CLAIM))
        user = None
        if user_id is not None:
            user = get_collection(USERS).find_one({"_id": user_id, "isActive": True})
        if not user:
            raise exceptions.AuthenticationFailed(
                self.error_messages["no_active_account"],
                "no_active_account",
            )

        return {"access": str(refresh.access_token)}


def build_auth_token_payload(user):
    refresh = MentorMatchTokenObtainPairSerializer.get_token(user)
    return {
        "refresh": str(refresh),
        "access": str(refresh.access_token),
    }


class EnvelopeTokenViewMixin:
    success_message = None

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        payload = {"success": True}
        if self.success_message:
            payload["message"] = self.success_message
        payload["data"] = response.data
        response.data = payload
        return response


class MentorMatchTokenObtainPairView(EnvelopeTokenViewMixin, TokenObtainPairView):
    serializer_class = MentorMatchTokenObtainPairSerializer
    success_message = "Login successful"


class MentorMatchAdminTokenObtainPairView(MentorMatchTokenObtainPairView):
    serializer_class = MentorMatchAdminTokenObtainPairSerializer


class MentorMatchTokenRefreshView(EnvelopeTokenViewMixin, TokenRefreshView):
    serializer_class = MentorMatchTokenRefreshSerializer
