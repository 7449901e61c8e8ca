from rest_framework import serializers

from .database import to_object_id
from .documents.mentor import ACTION_CHOICES
from .documents.notification import PRIORITY_CHOICES
from .documents.user import API_ROLE_CHOICES
from .exports import EXPORT_FORMATS


class ObjectIdField(serializers.CharField):
    default_error_messages = {
        "invalid_object_id": "Enter a valid id.",
    }

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        object_id = to_object_id(value)
        if object_id is None:
            self.fail("invalid_object_id")
        return object_id

    def to_representation(self, value):
        return str(value)


class VerificationActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=ACTION_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    requestedInfo = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class VerificationDocumentSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True)
    type = serializers.CharField(required=False, allow_blank=True)
    fileName = serializers.CharField()
    fileUrl = serializers.CharField()

    def to_internal_value(self, data):
        validated = super().to_internal_value(data)
        # Descriptors are stored whole; only the declared keys are checked.
        extra = {key: value for key, value in data.items() if key not in self.fields}
        return {**extra, **validated}


class VerificationInfoUpdateSerializer(serializers.Serializer):
    additionalInfo = serializers.CharField(required=False, allow_blank=True, default="")
    updatedDocuments = VerificationDocumentSerializer(many=True, required=False)

    def validate(self, attrs):
        if not attrs.get("additionalInfo") and not attrs.get("updatedDocuments"):
            raise serializers.ValidationError("Provide additional information or documents.")
        return attrs


class NotificationCreateSerializer(serializers.Serializer):
    type = serializers.CharField(max_length=100)
    title = serializers.CharField(max_length=200)
    message = serializers.CharField()
    data = serializers.JSONField(required=False)
    priority = serializers.ChoiceField(choices=PRIORITY_CHOICES, required=False)
    targetUserId = ObjectIdField(required=False)
    isGlobal = serializers.BooleanField(required=False, default=False)


class NotificationIdsSerializer(serializers.Serializer):
    notificationIds = serializers.ListField(child=ObjectIdField(), allow_empty=False)


class UserNotificationUpdateSerializer(serializers.Serializer):
    notificationId = ObjectIdField(required=False)
    markAllAsRead = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs.get("markAllAsRead") and not attrs.get("notificationId"):
            raise serializers.ValidationError("Provide notificationId or markAllAsRead.")
        return attrs


class AdminMessageSerializer(serializers.Serializer):
    userId = ObjectIdField()
    message = serializers.CharField(min_length=1, max_length=500)


class UserUpdateSerializer(serializers.Serializer):
    isActive = serializers.BooleanField(required=False)
    role = serializers.ChoiceField(choices=API_ROLE_CHOICES, required=False)
    firstName = serializers.CharField(required=False, max_length=100)
    lastName = serializers.CharField(required=False, allow_blank=True, max_length=100)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs


class UserExportQuerySerializer(serializers.Serializer):
    format = serializers.ChoiceField(choices=sorted(EXPORT_FORMATS), required=False, default="csv")
    search = serializers.CharField(required=False, allow_blank=True, default="")
    role = serializers.CharField(required=False, allow_blank=True, default="")
    status = serializers.CharField(required=False, allow_blank=True, default="")


class MentorSearchQuerySerializer(serializers.Serializer):
    expertise = serializers.CharField(required=False, allow_blank=True)
    location = serializers.CharField(required=False, allow_blank=True)
    languages = serializers.CharField(required=False, allow_blank=True)
    minPrice = serializers.FloatField(required=False)
    maxPrice = serializers.FloatField(required=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100, default=50)

    @staticmethod
    def _split(value):
        return [item.strip() for item in (value or "").split(",") if item.strip()]

    def to_search_kwargs(self):
        data = self.validated_data
        return {
            "expertise": self._split(data.get("expertise")),
            "location": data.get("location") or None,
            "languages": self._split(data.get("languages")),
            "min_price": data.get("minPrice"),
            "max_price": data.get("maxPrice"),
            "limit": data["limit"],
        }
