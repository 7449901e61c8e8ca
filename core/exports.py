import csv
import io
import json

from django.core.serializers.json import DjangoJSONEncoder
from django.template.loader import render_to_string

from .database import serialize_document, utcnow


FORMAT_CSV = "csv"
FORMAT_JSON = "json"
FORMAT_EXCEL = "excel"

EXPORT_FORMATS = {
    FORMAT_CSV: ("text/csv", "csv"),
    FORMAT_JSON: ("application/json", "json"),
    FORMAT_EXCEL: ("application/vnd.ms-excel", "xls"),
}

HEADERS = [
    "ID",
    "First Name",
    "Last Name",
    "Email",
    "Role",
    "Active",
    "Verified",
    "Created At",
    "Last Login",
]


def _yes_no(value):
    return "Yes" if value else "No"


def _format_date(value, default=""):
    return value.strftime("%Y-%m-%d") if value else default


def export_row(user):
    return [
        str(user["_id"]),
        user.get("firstName") or "",
        user.get("lastName") or "",
        user.get("email") or "",
        user.get("role") or "",
        _yes_no(user.get("isActive")),
        _yes_no(user.get("isVerified")),
        _format_date(user.get("createdAt")),
        _format_date(user.get("lastLoginAt"), "Never"),
    ]


def render_csv(users):
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(HEADERS)
    for user in users:
        writer.writerow(export_row(user))
    return buffer.getvalue()


def render_json(users, exported_at=None):
    payload = {
        "exportDate": exported_at or utcnow(),
        "totalUsers": len(users),
        "users": [
            {
                "id": user["_id"],
                "firstName": user.get("firstName"),
                "lastName": user.get("lastName"),
                "email": user.get("email"),
                "role": user.get("role"),
                "isActive": user.get("isActive"),
                "isVerified": user.get("isVerified"),
                "createdAt": user.get("createdAt"),
                "lastLoginAt": user.get("lastLoginAt"),
            }
            for user in users
        ],
    }
    return json.dumps(serialize_document(payload), cls=DjangoJSONEncoder, indent=2)


def render_excel(users):
    return render_to_string(
        "exports/users.xml",
        {"headers": HEADERS, "rows": [export_row(user) for user in users]},
    )


RENDERERS = {
    FORMAT_CSV: render_csv,
    FORMAT_JSON: render_json,
    FORMAT_EXCEL: render_excel,
}


def export_users(users, export_format):
    """Return ``(content, content_type, filename)`` for a supported format."""
    content_type, extension = EXPORT_FORMATS[export_format]
    filename = f"users_export_{utcnow().date().isoformat()}.{extension}"
    return RENDERERS[export_format](users), content_type, filename
