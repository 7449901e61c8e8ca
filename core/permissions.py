from rest_framework.permissions import BasePermission

from .documents.user import APP_ROLES, ROLE_ADMIN, ROLE_MENTOR


def user_role(user):
    if not user or not user.is_authenticated:
        return None
    token = getattr(user, "token", None)
    if token is None:
        return None
    return token.get("role")


class IsAuthenticatedWithAppRole(BasePermission):
    def has_permission(self, request, view):
        role = user_role(request.user)
        return bool(role in APP_ROLES)


class IsAdminRole(BasePermission):
    message = "Admin access required."

    def has_permission(self, request, view):
        return user_role(request.user) == ROLE_ADMIN


class IsMentorRole(BasePermission):
    message = "Only mentors can access verification info."

    def has_permission(self, request, view):
        return user_role(request.user) == ROLE_MENTOR
