"""
WebSocket URL routing for Django Channels.
"""
from django.urls import re_path
from nft_rewards import consumers

websocket_urlpatterns = [
    re_path(r'ws/nft-rewards/(?P<event_id>\d+)/$', consumers.DistributionProgressConsumer.as_asgi()),
]
