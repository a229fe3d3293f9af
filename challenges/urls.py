from django.urls import path
from .views import ChallengeViewSet

app_name = 'challenges'

challenge_list = ChallengeViewSet.as_view({'get': 'list', 'post': 'create'})
challenge_detail = ChallengeViewSet.as_view({
    'get': 'retrieve',
    'put': 'update',
    'patch': 'partial_update',
    'delete': 'destroy',
})
challenge_solvers = ChallengeViewSet.as_view({'get': 'solvers'})

urlpatterns = [
    path('events/<int:event_id>/challenges/', challenge_list, name='challenge-list'),
    path('events/<int:event_id>/challenges/<int:pk>/', challenge_detail, name='challenge-detail'),
    path('events/<int:event_id>/challenges/<int:pk>/solvers/', challenge_solvers, name='challenge-solvers'),
]
