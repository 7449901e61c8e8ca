SESSION_SCHEDULED = "scheduled"
SESSION_IN_PROGRESS = "in_progress"
SESSION_COMPLETED = "completed"
SESSION_CANCELLED = "cancelled"
SESSION_NO_SHOW = "no_show"

SESSION_STATUS_CHOICES = [
    (SESSION_SCHEDULED, "Scheduled"),
    (SESSION_IN_PROGRESS, "In Progress"),
    (SESSION_COMPLETED, "Completed"),
    (SESSION_CANCELLED, "Cancelled"),
    (SESSION_NO_SHOW, "No Show"),
]

PAYMENT_PENDING = "pending"
PAYMENT_SUCCEEDED = "succeeded"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"

PAYMENT_STATUS_CHOICES = [
    (PAYMENT_PENDING, "Pending"),
    (PAYMENT_SUCCEEDED, "Succeeded"),
    (PAYMENT_FAILED, "Failed"),
    (PAYMENT_REFUNDED, "Refunded"),
]


def cents_to_amount(cents):
    return (cents or 0) / 100
