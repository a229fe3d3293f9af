"""
WebSocket consumer for reward distribution progress.
"""
import json
import logging
from channels.generic.websocket import AsyncWebsocketConsumer
from channels.db import database_sync_to_async
from accounts.permissions import is_event_organizer_or_admin
from events_ctf.models import Event

logger = logging.getLogger(__name__)


class DistributionProgressConsumer(AsyncWebsocketConsumer):
    """
    Streams batch progress of an event's reward distribution.
    Only the event organizer and platform admins may subscribe.
    """

    async def connect(self):
        self.user = self.scope["user"]
        self.event_id = self.scope["url_route"]["kwargs"]["event_id"]
        self.group_name = f"nft_rewards_event_{self.event_id}"

        if self.user.is_anonymous or not await self.can_watch():
            await self.close()
            return

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.info(f"Reward progress socket opened by {self.user.username} for event {self.event_id}")

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data):
        """Only ping is understood; progress flows server -> client"""
        try:
            data = json.loads(text_data)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON received from WebSocket: {text_data}")
            return

        if data.get('type') == 'ping':
            await self.send(text_data=json.dumps({'type': 'pong'}))

    async def distribution_progress(self, event):
        payload = {key: value for key, value in event.items() if key != 'type'}
        payload['type'] = 'distribution_progress'
        await self.send(text_data=json.dumps(payload, default=str))

    @database_sync_to_async
    def can_watch(self):
        event = Event.objects.filter(pk=self.event_id).select_related('organizer').first()
        return event is not None and is_event_organizer_or_admin(self.user, event)
