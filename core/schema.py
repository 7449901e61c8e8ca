from rest_framework.permissions import AllowAny
from rest_framework.renderers import JSONOpenAPIRenderer
from rest_framework.response import Response
from rest_framework.schemas.openapi import AutoSchema
from rest_framework.schemas.openapi import SchemaGenerator
from rest_framework.views import APIView


class MentorMatchAutoSchema(AutoSchema):
    def get_operation_id(self, path, method):
        base = super().get_operation_id(path, method)
        return f"{base}{method.capitalize()}"


PUBLIC_PATHS = {
    "/api/login/",
    "/api/admin/auth/login/",
    "/api/token/refresh/",
    "/api/mentors/search/",
    "/api/schema/",
    "/api/docs/",
}

TAG_ORDER = {
    "Auth": 0,
    "Admin": 1,
    "Mentor": 2,
    "Shared": 3,
    "General": 4,
}


def tag_for_path(path: str) -> str:
    if path.startswith("/api/login/") or path.startswith("/api/token/") or path.startswith("/api/admin/auth/"):
        return "Auth"
    if path.startswith("/api/admin/"):
        return "Admin"
    if path.startswith("/api/mentors/"):
        return "Mentor"
    if path.startswith("/api/notifications/"):
        return "Shared"
    return "General"


class MentorMatchSchemaView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    renderer_classes = [JSONOpenAPIRenderer]

    def get(self, request, *args, **kwargs):
        generator = SchemaGenerator(
            title="MentorMatch API",
            description="Admin, mentor and shared endpoints of the MentorMatch marketplace.",
            version="1.0.0",
        )
        schema = generator.get_schema(request=request, public=True)
        if not schema:
            return Response({})

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes["HTTPBearer"] = {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }

        schema["tags"] = [
            {"name": "Auth", "description": "Login, token refresh and admin session endpoints."},
            {"name": "Admin", "description": "Dashboard, moderation and notification endpoints for admins."},
            {"name": "Mentor", "description": "Mentor verification follow-up and public mentor search."},
            {"name": "Shared", "description": "Endpoints used by every signed-in role."},
            {"name": "General", "description": "Other endpoints."},
        ]

        path_tags = {path: tag_for_path(path) for path in schema.get("paths", {})}

        for path, operations in schema.get("paths", {}).items():
            for method, operation in operations.items():
                if method.lower() not in {"get", "post", "put", "patch", "delete"}:
                    continue
                operation["tags"] = [path_tags[path]]
                if path in PUBLIC_PATHS:
                    operation.pop("security", None)
                else:
                    operation["security"] = [{"HTTPBearer": []}]

        sorted_paths = {}
        for path in sorted(
            schema.get("paths", {}).keys(),
            key=lambda item: (TAG_ORDER.get(path_tags[item], 99), item),
        ):
            sorted_paths[path] = schema["paths"][path]
        schema["paths"] = sorted_paths

        return Response(schema)
