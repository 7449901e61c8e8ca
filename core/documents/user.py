ROLE_ADMIN = "admin"
ROLE_MENTEE = "mentee"
ROLE_MENTOR = "mentor"
APP_ROLES = {ROLE_ADMIN, ROLE_MENTEE, ROLE_MENTOR}

# Mentees are presented to the dashboard as students.
API_ROLE_STUDENT = "student"
API_ROLE_CHOICES = [
    (API_ROLE_STUDENT, "Student"),
    (ROLE_MENTOR, "Mentor"),
    (ROLE_ADMIN, "Admin"),
]

PRIVATE_FIELDS = ("passwordHash", "password", "otpCode", "otpExpiry", "passwordResetOTP")

MENTEE_PROFILE_FIELDS = (
    "phone",
    "avatar",
    "gender",
    "ageRange",
    "studyLevel",
    "bio",
    "location",
    "timezone",
    "goals",
    "isOnboarded",
    "onboardingStatus",
    "stats",
    "provider",
)


def to_api_role(role):
    return API_ROLE_STUDENT if role == ROLE_MENTEE else role


def from_api_role(role):
    return ROLE_MENTEE if role == API_ROLE_STUDENT else role


def strip_private_fields(user):
    if not user:
        return user
    return {key: value for key, value in user.items() if key not in PRIVATE_FIELDS}


def display_name(user, default="User"):
    if not user:
        return default
    if user.get("role") == ROLE_MENTEE:
        return (user.get("name") or "").strip() or default
    full_name = f"{user.get('firstName') or ''} {user.get('lastName') or ''}".strip()
    return full_name or default


def first_name(user):
    if user.get("firstName"):
        return user["firstName"]
    return display_name(user).split(" ")[0]


def split_name(name):
    parts = (name or "").split(" ") if name else ["Unknown"]
    return parts[0] or "Unknown", " ".join(parts[1:])
