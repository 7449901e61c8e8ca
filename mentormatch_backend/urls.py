"""
URL configuration for mentormatch_backend project.

Admin, mentor and shared endpoints live under ``api/`` in ``core.urls``
(mentors answer info requests at ``api/mentors/verification/update/``);
token endpoints and the OpenAPI document are wired here.
"""
from django.http import JsonResponse
from django.urls import include, path
from django.views.generic import TemplateView

from core.auth import (
    MentorMatchAdminTokenObtainPairView,
    MentorMatchTokenObtainPairView,
    MentorMatchTokenRefreshView,
)
from core.schema import MentorMatchSchemaView


def api_root(_request):
    return JsonResponse({
        'status': 'ok',
        'message': 'MentorMatch backend is running',
        'docs': '/api/docs/',
    })


urlpatterns = [
    path('', api_root, name='api_root'),
    path('api/login/', MentorMatchTokenObtainPairView.as_view(), name='api_login'),
    path('api/admin/auth/login/', MentorMatchAdminTokenObtainPairView.as_view(), name='api_admin_login'),
    path('api/token/refresh/', MentorMatchTokenRefreshView.as_view(), name='token_refresh'),
    path('api/schema/', MentorMatchSchemaView.as_view(), name='api-schema'),
    path('api/docs/', TemplateView.as_view(template_name='swagger-ui.html'), name='api-docs'),
    path('api/', include('core.urls')),
]
