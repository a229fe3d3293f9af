from django.urls import path
from rest_framework.routers import DefaultRouter
from .views import UserProfileView, UserStatsView, OrganizerRequestView, OrganizerRequestAdminViewSet

app_name = 'accounts'

router = DefaultRouter()
router.register(r'admin/organizer-requests', OrganizerRequestAdminViewSet, basename='admin-organizer-request')

urlpatterns = [
    path('me/', UserProfileView.as_view(), name='user-profile'),
    path('me/stats/', UserStatsView.as_view(), name='user-stats'),
    path('organizer-requests/', OrganizerRequestView.as_view(), name='organizer-requests'),
] + router.urls
