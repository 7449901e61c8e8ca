"""Mentor verification review workflow.

Admins move a verification between states with :func:`apply_verification_action`;
mentors answer an info request with :func:`submit_additional_info`. Each step
writes the verification first, then the mentor profile (on approval), then a
notification, and finally tries to email the mentor. The steps are not
transactional and email failures are logged and swallowed.
"""
import logging

from rest_framework.exceptions import APIException, NotFound, ValidationError

from . import emails
from .database import get_collection, to_object_id, utcnow
from .documents import MENTOR_PROFILES, MENTOR_VERIFICATIONS, USERS
from .documents.mentor import (
    ACTION_APPROVE,
    ACTION_REJECT,
    ACTION_REQUEST_INFO,
    ACTION_TARGET_STATUS,
    DOCUMENT_STATUS_PENDING,
    VERIFICATION_INFO_REQUESTED,
    VERIFICATION_PENDING,
    can_transition,
)
from .documents.notification import (
    TYPE_VERIFICATION_APPROVED,
    TYPE_VERIFICATION_INFO_PROVIDED,
    TYPE_VERIFICATION_INFO_REQUESTED,
    TYPE_VERIFICATION_REJECTED,
)
from .documents.user import display_name, first_name, strip_private_fields
from .notifications import create_notification
from .parallel import gather


logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 10


class VerificationUpdateFailed(APIException):
    default_detail = "Failed to update verification"
    default_code = "verification_update_failed"


def _load_verification(verification_id):
    object_id = to_object_id(verification_id)
    verification = None
    if object_id is not None:
        verification = get_collection(MENTOR_VERIFICATIONS).find_one({"_id": object_id})
    if not verification:
        raise NotFound("Verification not found")
    return verification


def _review_notification(action, user, notes, requested_info):
    name = first_name(user)
    if action == ACTION_APPROVE:
        return (
            TYPE_VERIFICATION_APPROVED,
            "Mentor Application Approved",
            f"Congratulations {name}! Your mentor application has been approved.",
            "high",
        )
    if action == ACTION_REJECT:
        return (
            TYPE_VERIFICATION_REJECTED,
            "Mentor Application Update",
            f"Your mentor application was not approved. Reason: "
            f"{notes or emails.DEFAULT_REJECTION_REASON}",
            "high",
        )
    return (
        TYPE_VERIFICATION_INFO_REQUESTED,
        "Additional Information Required",
        requested_info or emails.DEFAULT_REQUESTED_INFO,
        "high",
    )


def _send_review_email(action, user, notes, requested_info):
    email = user.get("email")
    name = first_name(user)
    try:
        if action == ACTION_APPROVE:
            emails.send_mentor_approval_email(email, name)
        elif action == ACTION_REJECT:
            emails.send_mentor_rejection_email(email, name, notes)
        else:
            emails.send_mentor_info_request_email(email, name, requested_info)
    except Exception:
        logger.exception("Failed to send %s email to %s", action, email)
        return False
    return True


def apply_verification_action(verification_id, action, *, notes=None, requested_info=None, admin_id=None):
    verification = _load_verification(verification_id)
    user = get_collection(USERS).find_one({"_id": verification.get("userId")})
    if not user:
        raise NotFound("User not found")

    current_status = verification.get("status", VERIFICATION_PENDING)
    target_status = ACTION_TARGET_STATUS[action]
    if not can_transition(current_status, target_status):
        raise ValidationError(
            {"action": [f"Cannot {action.replace('_', ' ')} a verification that is {current_status}."]}
        )

    logger.info(
        "Applying %s to verification %s (%s -> %s) by admin %s",
        action,
        verification["_id"],
        current_status,
        target_status,
        admin_id,
    )

    now = utcnow()
    update = {
        "status": target_status,
        "updatedAt": now,
        "reviewedBy": to_object_id(admin_id),
        "reviewedAt": now,
    }
    if action == ACTION_APPROVE:
        update["notes"] = notes
    elif action == ACTION_REJECT:
        update["rejectionReason"] = notes
    elif action == ACTION_REQUEST_INFO:
        update["requestedInfo"] = requested_info
        update["notes"] = notes

    result = get_collection(MENTOR_VERIFICATIONS).update_one(
        {"_id": verification["_id"]},
        {"$set": update},
    )
    if result.matched_count == 0:
        raise VerificationUpdateFailed()

    if action == ACTION_APPROVE:
        get_collection(MENTOR_PROFILES).update_one(
            {"userId": verification["userId"]},
            {"$set": {"isVerified": True, "verifiedAt": now, "updatedAt": now}},
        )

    notification_type, title, message, priority = _review_notification(action, user, notes, requested_info)
    create_notification(
        notification_type,
        title,
        message,
        user_id=user["_id"],
        data={"verificationId": str(verification["_id"]), "action": action},
        priority=priority,
        created_by=admin_id,
    )

    _send_review_email(action, user, notes, requested_info)

    return {
        "action": action,
        "verificationId": str(verification["_id"]),
        "status": target_status,
    }


def submit_additional_info(user_id, additional_info, documents=None):
    """Answer an open info request and put the application back in review."""
    user_object_id = to_object_id(user_id)
    verifications = get_collection(MENTOR_VERIFICATIONS)
    verification = verifications.find_one(
        {"userId": user_object_id, "status": VERIFICATION_INFO_REQUESTED}
    )
    if not verification:
        raise NotFound("No pending info request found for your account")

    user = get_collection(USERS).find_one({"_id": user_object_id}) or {}

    now = utcnow()
    update = {
        "status": VERIFICATION_PENDING,
        "updatedAt": now,
        "additionalInfoProvided": additional_info,
        "infoProvidedAt": now,
    }
    if documents:
        update["documents"] = list(verification.get("documents") or []) + [
            {**document, "uploadedAt": now, "status": DOCUMENT_STATUS_PENDING}
            for document in documents
        ]

    verifications.update_one(
        {"_id": verification["_id"]},
        {"$set": update, "$unset": {"requestedInfo": ""}},
    )

    mentor_name = display_name(user, default="A mentor")
    create_notification(
        TYPE_VERIFICATION_INFO_PROVIDED,
        "Mentor Provided Additional Information",
        f"{mentor_name} has provided additional information for their mentor application.",
        data={
            "verificationId": str(verification["_id"]),
            "mentorId": str(user_object_id),
            "mentorName": mentor_name,
        },
    )
    logger.info("Mentor %s answered info request on verification %s", user_object_id, verification["_id"])

    return {"status": VERIFICATION_PENDING, "submittedAt": now}


def get_verification_status(user_id):
    verification = get_collection(MENTOR_VERIFICATIONS).find_one({"userId": to_object_id(user_id)})
    if not verification:
        raise NotFound("No verification record found")
    return {
        "status": verification.get("status"),
        "requestedInfo": verification.get("requestedInfo"),
        "notes": verification.get("notes"),
        "rejectionReason": verification.get("rejectionReason"),
        "submittedAt": verification.get("submittedAt"),
        "reviewedAt": verification.get("reviewedAt"),
        "documents": verification.get("documents") or [],
    }


def _joined_pipeline(match):
    return [
        {"$match": match},
        {
            "$lookup": {
                "from": USERS,
                "localField": "userId",
                "foreignField": "_id",
                "as": "user",
            }
        },
        {
            "$lookup": {
                "from": MENTOR_PROFILES,
                "localField": "userId",
                "foreignField": "userId",
                "as": "profile",
            }
        },
        {"$unwind": "$user"},
        {"$unwind": {"path": "$profile", "preserveNullAndEmptyArrays": True}},
    ]


def _strip_user(verification):
    verification["user"] = strip_private_fields(verification.get("user"))
    return verification


def list_verifications(status=VERIFICATION_PENDING, *, skip=0, limit=DEFAULT_LIST_LIMIT):
    collection = get_collection(MENTOR_VERIFICATIONS)
    pipeline = _joined_pipeline({"status": status}) + [
        {"$sort": {"createdAt": 1}},
        {"$skip": skip},
        {"$limit": limit},
    ]
    results = gather(
        verifications=lambda: list(collection.aggregate(pipeline)),
        total=lambda: collection.count_documents({"status": status}),
    )
    return [_strip_user(item) for item in results["verifications"]], results["total"]


def get_verification_detail(verification_id):
    object_id = to_object_id(verification_id)
    if object_id is None:
        raise NotFound("Verification not found")
    matches = list(get_collection(MENTOR_VERIFICATIONS).aggregate(_joined_pipeline({"_id": object_id})))
    if not matches:
        raise NotFound("Verification not found")
    return _strip_user(matches[0])
