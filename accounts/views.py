import logging
from rest_framework import status, viewsets, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from django.db import transaction
from django.db.models import Sum
from .models import OrganizerRequest
from .serializers import (
    UserProfileSerializer,
    OrganizerRequestSerializer,
    OrganizerRequestReviewSerializer,
)
from .permissions import IsNotBanned, IsPlatformAdmin

logger = logging.getLogger(__name__)


class UserProfileView(APIView):
    """User profile endpoint (get and update own profile)"""
    permission_classes = [permissions.IsAuthenticated, IsNotBanned]

    def get(self, request):
        serializer = UserProfileSerializer(request.user, context={'request': request})
        return Response(serializer.data)

    def patch(self, request):
        serializer = UserProfileSerializer(
            request.user,
            data=request.data,
            partial=True,
            context={'request': request}
        )
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class UserStatsView(APIView):
    """Participation, solve and reward counts for the current user"""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        from events_ctf.models import EventParticipant
        from submissions.models import Solve

        participations = EventParticipant.objects.filter(user=request.user)
        solves = Solve.objects.filter(user=request.user)

        return Response({
            'events_joined': participations.count(),
            'challenges_solved': solves.count(),
            'total_points': solves.aggregate(total=Sum('points_awarded'))['total'] or 0,
            'nfts_received': participations.filter(has_received_nft=True).count(),
            'total_score': request.user.total_score,
        })


class OrganizerRequestView(APIView):
    """Request the organizer role, or list own requests"""
    permission_classes = [permissions.IsAuthenticated, IsNotBanned]

    def get(self, request):
        requests = OrganizerRequest.objects.filter(user=request.user).select_related('reviewer')
        serializer = OrganizerRequestSerializer(requests, many=True)
        return Response({'success': True, 'data': serializer.data})

    def post(self, request):
        if request.user.can_organize():
            return Response({
                'success': False,
                'error': 'You are already an organizer or admin'
            }, status=status.HTTP_400_BAD_REQUEST)

        if OrganizerRequest.objects.filter(user=request.user, status=OrganizerRequest.STATUS_PENDING).exists():
            return Response({
                'success': False,
                'error': 'You already have a pending organizer request'
            }, status=status.HTTP_400_BAD_REQUEST)

        serializer = OrganizerRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        organizer_request = serializer.save(user=request.user)
        logger.info(f"Organizer request {organizer_request.id} submitted by {request.user.username}")
        return Response({
            'success': True,
            'data': OrganizerRequestSerializer(organizer_request).data,
            'message': 'Organizer request submitted successfully'
        }, status=status.HTTP_201_CREATED)


class OrganizerRequestAdminViewSet(viewsets.ReadOnlyModelViewSet):
    """Admin review of organizer requests"""
    queryset = OrganizerRequest.objects.all()
    serializer_class = OrganizerRequestSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = super().get_queryset().select_related('user', 'reviewer')
        status_filter = self.request.query_params.get('status', None)
        if status_filter:
            queryset = queryset.filter(status=status_filter.upper())
        return queryset

    def _review(self, request, approve):
        organizer_request = self.get_object()
        if organizer_request.status != OrganizerRequest.STATUS_PENDING:
            return Response({
                'success': False,
                'error': f'Request already {organizer_request.get_status_display().lower()}'
            }, status=status.HTTP_400_BAD_REQUEST)

        serializer = OrganizerRequestReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        notes = serializer.validated_data['notes']

        with transaction.atomic():
            if approve:
                organizer_request.approve(request.user, notes)
            else:
                organizer_request.reject(request.user, notes)

        logger.info(
            f"Organizer request {organizer_request.id} {organizer_request.status.lower()} "
            f"by {request.user.username}"
        )
        return Response({
            'success': True,
            'data': OrganizerRequestSerializer(organizer_request).data
        })

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        return self._review(request, approve=True)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        return self._review(request, approve=False)
