from django.urls import path
from .views import FlagSubmitView, MySolvesView

app_name = 'submissions'

urlpatterns = [
    path(
        'events/<int:event_id>/challenges/<int:challenge_id>/submit/',
        FlagSubmitView.as_view(),
        name='flag-submit'
    ),
    path('solves/mine/', MySolvesView.as_view(), name='my-solves'),
]
