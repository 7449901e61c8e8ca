from django.urls import path, re_path

from .api_views import (
    AdminAnalyticsView,
    AdminFileDownloadView,
    AdminLogoutView,
    AdminMeView,
    AdminMessageSendView,
    AdminNotificationCreateView,
    AdminNotificationDeleteView,
    AdminNotificationListView,
    AdminNotificationMarkAllReadView,
    AdminNotificationMarkReadView,
    AdminNotificationMarkUnreadView,
    AdminNotificationStatsView,
    AdminOverviewView,
    AdminSessionListView,
    AdminStatsView,
    AdminUserDetailView,
    AdminUserExportView,
    AdminUserListView,
    AdminUserTestResultsView,
    AdminVerificationActionView,
    AdminVerificationDetailView,
    AdminVerificationListView,
    MentorSearchView,
    MentorVerificationUpdateView,
    UserNotificationView,
)


urlpatterns = [
    path('admin/auth/me/', AdminMeView.as_view(), name='admin-me'),
    path('admin/auth/logout/', AdminLogoutView.as_view(), name='admin-logout'),
    path('admin/stats/', AdminStatsView.as_view(), name='admin-stats'),
    path('admin/overview/', AdminOverviewView.as_view(), name='admin-overview'),
    path('admin/analytics/', AdminAnalyticsView.as_view(), name='admin-analytics'),
    path('admin/users/', AdminUserListView.as_view(), name='admin-users'),
    path('admin/users/export/', AdminUserExportView.as_view(), name='admin-users-export'),
    path('admin/users/<str:user_id>/', AdminUserDetailView.as_view(), name='admin-user-detail'),
    path(
        'admin/users/<str:user_id>/test-results/',
        AdminUserTestResultsView.as_view(),
        name='admin-user-test-results',
    ),
    path('admin/sessions/', AdminSessionListView.as_view(), name='admin-sessions'),
    path('admin/verifications/', AdminVerificationListView.as_view(), name='admin-verifications'),
    path(
        'admin/verifications/<str:verification_id>/',
        AdminVerificationDetailView.as_view(),
        name='admin-verification-detail',
    ),
    path(
        'admin/verifications/<str:verification_id>/action/',
        AdminVerificationActionView.as_view(),
        name='admin-verification-action',
    ),
    path('admin/notifications/', AdminNotificationListView.as_view(), name='admin-notifications'),
    path('admin/notifications/create/', AdminNotificationCreateView.as_view(), name='admin-notifications-create'),
    path(
        'admin/notifications/mark-read/',
        AdminNotificationMarkReadView.as_view(),
        name='admin-notifications-mark-read',
    ),
    path(
        'admin/notifications/mark-unread/',
        AdminNotificationMarkUnreadView.as_view(),
        name='admin-notifications-mark-unread',
    ),
    path(
        'admin/notifications/mark-all-read/',
        AdminNotificationMarkAllReadView.as_view(),
        name='admin-notifications-mark-all-read',
    ),
    path('admin/notifications/delete/', AdminNotificationDeleteView.as_view(), name='admin-notifications-delete'),
    path('admin/notifications/stats/', AdminNotificationStatsView.as_view(), name='admin-notifications-stats'),
    path('admin/messages/send/', AdminMessageSendView.as_view(), name='admin-messages-send'),
    re_path(
        r'^admin/files/download/(?P<file_path>.+)$',
        AdminFileDownloadView.as_view(),
        name='admin-file-download',
    ),
    path(
        'mentors/verification/update/',
        MentorVerificationUpdateView.as_view(),
        name='mentor-verification-update',
    ),
    path('mentors/search/', MentorSearchView.as_view(), name='mentor-search'),
    path('notifications/', UserNotificationView.as_view(), name='user-notifications'),
]
