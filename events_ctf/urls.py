from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import EventViewSet, GlobalLeaderboardView

app_name = 'events_ctf'

router = DefaultRouter()
router.register(r'events', EventViewSet, basename='event')

urlpatterns = [
    path('leaderboard/', GlobalLeaderboardView.as_view(), name='global-leaderboard'),

    # Router URLs
    path('', include(router.urls)),
]
