"""
API views for NFT reward preview, distribution and status.
"""
import logging
from django.conf import settings
from django.db import transaction
from django.shortcuts import get_object_or_404
from kombu.exceptions import OperationalError
from rest_framework import status, permissions
from rest_framework.exceptions import PermissionDenied
from rest_framework.generics import ListAPIView
from rest_framework.response import Response
from rest_framework.views import APIView
from accounts.permissions import is_event_organizer_or_admin
from events_ctf.models import Event, EventParticipant
from .exceptions import RewardError
from .serializers import ReceivedRewardSerializer
from .services import distribution_status, preview_rewards, reward_service
from .tasks import distribute_event_rewards

logger = logging.getLogger(__name__)


class EventRewardsMixin:
    """Loads the event from the URL and restricts access to its organizer or an admin"""

    def get_event(self, request, event_id):
        event = get_object_or_404(Event.objects.select_related('organizer'), pk=event_id)
        if not is_event_organizer_or_admin(request.user, event):
            raise PermissionDenied('Insufficient permissions')
        return event

    def error_response(self, error):
        return Response({'success': False, 'error': str(error)}, status=error.status_code)


class NFTRewardsView(EventRewardsMixin, APIView):
    """
    GET  /api/events/<event_id>/nft-rewards/  - preview rankings and tiers
    POST /api/events/<event_id>/nft-rewards/  - distribute rewards
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, event_id):
        event = self.get_event(request, event_id)
        try:
            preview = preview_rewards(event)
        except RewardError as e:
            return self.error_response(e)

        return Response({'success': True, 'preview': preview})

    def post(self, request, event_id):
        event = self.get_event(request, event_id)

        if settings.NFT_REWARDS_ASYNC:
            return self._distribute_async(request, event)

        try:
            result = reward_service.distribute_event(event, request.user)
        except RewardError as e:
            logger.error(f"NFT distribution for event {event.id} failed: {e}")
            return self.error_response(e)

        if result.success:
            return Response({
                'success': True,
                'message': f'Successfully distributed NFTs to {result.total_distributed} participants',
                'totalDistributed': result.total_distributed,
            }, status=status.HTTP_200_OK)

        return Response({
            'success': False,
            'message': f'Partial distribution completed. {result.total_distributed} NFTs distributed.',
            'totalDistributed': result.total_distributed,
            'errors': result.errors,
        }, status=status.HTTP_207_MULTI_STATUS)

    def _distribute_async(self, request, event):
        try:
            reward_service.get_contract_or_raise()
            distribution = reward_service.claim(event, request.user)
        except RewardError as e:
            return self.error_response(e)

        try:
            transaction.on_commit(lambda: distribute_event_rewards.delay(distribution.id))
        except OperationalError as e:
            # Claim stays; the stalled-run job picks it up once the broker is back
            logger.error(f"Could not queue reward distribution {distribution.id}: {e}")
            return Response({
                'success': False,
                'error': 'Task queue unavailable, distribution will be resumed automatically',
                'distributionId': distribution.id,
                'status': distribution.status,
            }, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        logger.info(f"Reward distribution {distribution.id} queued for event {event.id}")

        return Response({
            'success': True,
            'message': 'NFT distribution started',
            'distributionId': distribution.id,
            'status': distribution.status,
        }, status=status.HTTP_202_ACCEPTED)


class NFTRewardsStatusView(EventRewardsMixin, APIView):
    """
    GET /api/events/<event_id>/nft-rewards/status/
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, event_id):
        event = self.get_event(request, event_id)
        return Response({'success': True, 'status': distribution_status(event)})


class MyNFTsView(ListAPIView):
    """
    NFT rewards received by the current user.
    GET /api/nfts/mine/
    """
    serializer_class = ReceivedRewardSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        return (
            EventParticipant.objects
            .filter(user=self.request.user, has_received_nft=True)
            .select_related('event', 'reward_batch')
            .order_by('-event__end_time')
        )
