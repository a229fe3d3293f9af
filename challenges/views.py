import logging
from django.shortcuts import get_object_or_404
from rest_framework import viewsets, permissions
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from accounts.permissions import IsNotBanned, is_event_organizer_or_admin
from events_ctf.models import Event
from .models import Challenge
from .serializers import ChallengeSerializer, ChallengeListSerializer

logger = logging.getLogger(__name__)

MANAGE_ACTIONS = ('create', 'update', 'partial_update', 'destroy')


class ChallengeViewSet(viewsets.ModelViewSet):
    """
    Challenges of one event (nested under /events/<event_id>/challenges/).
    Organizers and admins manage challenges and see flags; everyone else reads.
    """
    serializer_class = ChallengeSerializer
    permission_classes = [permissions.IsAuthenticated, IsNotBanned]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_event(self):
        if not hasattr(self, '_event'):
            self._event = get_object_or_404(Event, pk=self.kwargs['event_id'])
        return self._event

    def can_manage(self):
        return is_event_organizer_or_admin(self.request.user, self.get_event())

    def get_serializer_class(self):
        if self.can_manage():
            return ChallengeSerializer
        return ChallengeListSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.request.user.is_authenticated:
            from submissions.models import Solve
            context['solved_ids'] = set(
                Solve.objects.filter(user=self.request.user, event_id=self.kwargs['event_id'])
                .values_list('challenge_id', flat=True)
            )
        return context

    def get_queryset(self):
        queryset = Challenge.objects.filter(event=self.get_event())

        # Filter by category
        category = self.request.query_params.get('category', None)
        if category:
            queryset = queryset.filter(category=category.upper())

        # Filter by difficulty
        difficulty = self.request.query_params.get('difficulty', None)
        if difficulty:
            queryset = queryset.filter(difficulty=difficulty.upper())

        # Participants only see active challenges
        if not self.can_manage():
            queryset = queryset.filter(is_active=True)

        return queryset.order_by('-created_at')

    def check_permissions(self, request):
        super().check_permissions(request)
        if self.action in MANAGE_ACTIONS and not self.can_manage():
            raise PermissionDenied('Only the event organizer can manage challenges')

    def perform_create(self, serializer):
        challenge = serializer.save(event=self.get_event())
        logger.info(f"Challenge {challenge.id} created for event {challenge.event_id} by {self.request.user.username}")

    def perform_destroy(self, instance):
        logger.info(f"Challenge {instance.id} deleted by {self.request.user.username}")
        instance.delete()

    @action(detail=True, methods=['get'])
    def solvers(self, request, event_id=None, pk=None):
        """List solvers of this challenge, ordered by time"""
        challenge = self.get_object()
        solves = challenge.solves.select_related('user').order_by('solved_at')

        entries = [
            {
                'position': position,
                'username': solve.user.username,
                'points': solve.points_awarded,
                'solved_at': solve.solved_at,
            }
            for position, solve in enumerate(solves, 1)
        ]

        return Response({
            'count': len(entries),
            'results': entries,
        })
