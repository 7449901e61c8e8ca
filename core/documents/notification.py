PRIORITY_CHOICES = [
    ("low", "Low"),
    ("medium", "Medium"),
    ("high", "High"),
    ("urgent", "Urgent"),
]
DEFAULT_PRIORITY = "medium"

TYPE_VERIFICATION_APPROVED = "verification_approved"
TYPE_VERIFICATION_REJECTED = "verification_rejected"
TYPE_VERIFICATION_INFO_REQUESTED = "verification_info_requested"
TYPE_VERIFICATION_INFO_PROVIDED = "verification_info_provided"
TYPE_ADMIN_MESSAGE = "admin_message"

# Visible in every admin inbox regardless of addressee.
SYSTEM_TYPES = ("system_alert", "platform_update", "maintenance_scheduled")

STAT_CATEGORIES = ("verification", "user", "payment", "system")
