VERIFICATION_PENDING = "pending"
VERIFICATION_APPROVED = "approved"
VERIFICATION_REJECTED = "rejected"
VERIFICATION_INFO_REQUESTED = "info_requested"

VERIFICATION_STATUS_CHOICES = [
    (VERIFICATION_PENDING, "Pending"),
    (VERIFICATION_APPROVED, "Approved"),
    (VERIFICATION_REJECTED, "Rejected"),
    (VERIFICATION_INFO_REQUESTED, "Info Requested"),
]

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"
ACTION_REQUEST_INFO = "request_info"

ACTION_CHOICES = [
    (ACTION_APPROVE, "Approve"),
    (ACTION_REJECT, "Reject"),
    (ACTION_REQUEST_INFO, "Request Info"),
]

ACTION_TARGET_STATUS = {
    ACTION_APPROVE: VERIFICATION_APPROVED,
    ACTION_REJECT: VERIFICATION_REJECTED,
    ACTION_REQUEST_INFO: VERIFICATION_INFO_REQUESTED,
}

VERIFICATION_TRANSITIONS = {
    VERIFICATION_PENDING: {
        VERIFICATION_APPROVED,
        VERIFICATION_REJECTED,
        VERIFICATION_INFO_REQUESTED,
    },
    VERIFICATION_INFO_REQUESTED: {
        VERIFICATION_PENDING,
        VERIFICATION_APPROVED,
        VERIFICATION_REJECTED,
        VERIFICATION_INFO_REQUESTED,
    },
    VERIFICATION_APPROVED: set(),
    VERIFICATION_REJECTED: set(),
}

DOCUMENT_STATUS_PENDING = "pending"

DEFAULT_MENTOR_RATING = 4.5
DEFAULT_SEARCH_RATING = 4.8


def can_transition(current_status, target_status):
    return target_status in VERIFICATION_TRANSITIONS.get(current_status, set())
