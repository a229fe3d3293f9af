from django.contrib.auth import get_user_model
from django.db.models import Count
from django.utils import timezone
from rest_framework import viewsets, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from accounts.permissions import IsNotBanned, IsOrganizer, IsEventOrganizerOrAdmin
from .exceptions import EventError
from .models import Event, EventParticipant
from .serializers import (
    EventSerializer,
    EventListSerializer,
    LeaderboardEntrySerializer,
    ParticipationSerializer,
)
from .services import event_service

User = get_user_model()

GLOBAL_LEADERBOARD_LIMIT = 50
GLOBAL_LEADERBOARD_MAX_LIMIT = 200


class EventViewSet(viewsets.ModelViewSet):
    """ViewSet for Event management"""
    queryset = Event.objects.all()
    serializer_class = EventSerializer
    permission_classes = [permissions.IsAuthenticated, IsNotBanned]

    def get_serializer_class(self):
        if self.action in ['list', 'organized']:
            return EventListSerializer
        return EventSerializer

    def get_queryset(self):
        queryset = super().get_queryset().select_related('organizer')

        if self.action in ['list', 'organized']:
            queryset = queryset.annotate(
                participant_count=Count('participants', distinct=True),
                challenge_count=Count('challenges', distinct=True),
            )

        # Filter by status (active / upcoming / ended)
        status_filter = self.request.query_params.get('status', None)
        if status_filter:
            now = timezone.now()
            status_filter = status_filter.lower()
            if status_filter == 'active':
                queryset = queryset.filter(start_time__lte=now, end_time__gte=now)
            elif status_filter == 'upcoming':
                queryset = queryset.filter(start_time__gt=now)
            elif status_filter == 'ended':
                queryset = queryset.filter(end_time__lt=now)

        return queryset.order_by('-start_time')

    def get_permissions(self):
        """
        Instantiates and returns the list of permissions that this view requires.
        """
        if self.action == 'create':
            permission_classes = [permissions.IsAuthenticated, IsNotBanned, IsOrganizer]
        elif self.action in ['update', 'partial_update', 'destroy', 'end']:
            permission_classes = [permissions.IsAuthenticated, IsEventOrganizerOrAdmin]
        else:
            permission_classes = [permissions.IsAuthenticated, IsNotBanned]
        return [permission() for permission in permission_classes]

    @action(detail=True, methods=['post'])
    def join(self, request, pk=None):
        """Join an event as a participant"""
        event = self.get_object()
        try:
            event_service.join_event(request.user, event)
        except EventError as e:
            return Response({'success': False, 'error': str(e)}, status=e.status_code)

        return Response({
            'success': True,
            'data': {'message': 'Successfully joined the event'}
        })

    @action(detail=True, methods=['post'])
    def end(self, request, pk=None):
        """End a running event now"""
        event = self.get_object()
        try:
            event_service.end_event(event, performed_by=request.user)
        except EventError as e:
            return Response({'success': False, 'error': str(e)}, status=e.status_code)

        return Response({
            'success': True,
            'data': EventSerializer(event, context={'request': request}).data,
            'message': 'Event ended successfully'
        })

    @action(detail=True, methods=['get'])
    def leaderboard(self, request, pk=None):
        """Participants of the event ordered by score"""
        event = self.get_object()
        entries = event_service.leaderboard(event)
        serializer = LeaderboardEntrySerializer(entries, many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def mine(self, request):
        """Events the current user has joined"""
        participations = (
            EventParticipant.objects
            .filter(user=request.user)
            .select_related('event')
            .order_by('-joined_at')
        )
        serializer = ParticipationSerializer(participations, many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def organized(self, request):
        """Events organized by the current user"""
        queryset = self.get_queryset().filter(organizer=request.user)
        serializer = self.get_serializer(queryset, many=True)
        return Response(serializer.data)


class GlobalLeaderboardView(APIView):
    """Users ranked by their score across all events"""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        try:
            limit = int(request.query_params.get('limit', GLOBAL_LEADERBOARD_LIMIT))
        except ValueError:
            limit = GLOBAL_LEADERBOARD_LIMIT
        limit = max(1, min(limit, GLOBAL_LEADERBOARD_MAX_LIMIT))

        users = (
            User.objects
            .filter(total_score__gt=0, is_banned=False)
            .annotate(solve_count=Count('solves'))
            .order_by('-total_score', 'date_joined')[:limit]
        )

        leaderboard = [
            {
                'rank': position,
                'username': user.username,
                'total_score': user.total_score,
                'solve_count': user.solve_count,
            }
            for position, user in enumerate(users, 1)
        ]
        return Response({'success': True, 'data': leaderboard}, status=status.HTTP_200_OK)
