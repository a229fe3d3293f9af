"""
Views for flag submission and solve history.
"""
import logging
from django.conf import settings
from django.core.cache import cache
from django.shortcuts import get_object_or_404
from rest_framework import status, permissions
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.generics import ListAPIView
from accounts.permissions import IsNotBanned
from challenges.models import Challenge
from events_ctf.models import Event
from .exceptions import SubmissionError
from .models import Solve
from .serializers import SolveSerializer, FlagSubmissionSerializer
from .services import submission_service

logger = logging.getLogger(__name__)


class FlagSubmitView(APIView):
    """
    Submit a flag.
    POST /api/events/<event_id>/challenges/<challenge_id>/submit/
    """
    permission_classes = [permissions.IsAuthenticated, IsNotBanned]

    def _check_rate_limit(self, user):
        """
        Check rate limit for submissions.
        Returns (allowed, error_message)
        """
        limit = settings.SUBMISSION_RATE_LIMIT
        cache_key = f'submission_rate_limit_{user.id}'
        try:
            count = cache.get(cache_key, 0)
            if count >= limit:
                return False, f"Rate limit exceeded. Maximum {limit} submissions per minute."

            # Increment counter (expires in 60 seconds)
            cache.set(cache_key, count + 1, 60)
            return True, None
        except Exception as exc:  # Gracefully degrade if cache/redis is down
            logger.warning('Rate limit cache unavailable, allowing submission. Error: %s', exc)
            return True, None

    def post(self, request, event_id, challenge_id):
        event = get_object_or_404(Event, pk=event_id)
        challenge = get_object_or_404(Challenge, pk=challenge_id)

        serializer = FlagSubmissionSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'Flag is required'}, status=status.HTTP_400_BAD_REQUEST)

        allowed, error_msg = self._check_rate_limit(request.user)
        if not allowed:
            return Response({'error': error_msg}, status=status.HTTP_429_TOO_MANY_REQUESTS)

        try:
            solve = submission_service.submit_flag(
                request.user,
                event,
                challenge,
                serializer.validated_data['flag'],
            )
        except SubmissionError as e:
            return Response({'error': str(e)}, status=e.status_code)

        return Response({
            'message': 'Correct flag! Challenge solved!',
            'pointsAwarded': solve.points_awarded,
            'solve': SolveSerializer(solve).data,
        }, status=status.HTTP_200_OK)


class MySolvesView(ListAPIView):
    """
    Current user's solves, optionally filtered by ?event=<id>.
    GET /api/solves/mine/
    """
    serializer_class = SolveSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        queryset = Solve.objects.filter(user=self.request.user).select_related('challenge', 'event', 'user')
        event_id = self.request.query_params.get('event', None)
        if event_id:
            queryset = queryset.filter(event_id=event_id)
        return queryset.order_by('-solved_at')
