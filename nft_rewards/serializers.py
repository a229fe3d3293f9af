from rest_framework import serializers
from events_ctf.models import EventParticipant
from .blockchain import explorer_tx_url


class ReceivedRewardSerializer(serializers.ModelSerializer):
    """An NFT reward the current user received"""
    event_id = serializers.IntegerField(source='event.id', read_only=True)
    event_name = serializers.CharField(source='event.name', read_only=True)
    tx_hash = serializers.SerializerMethodField()
    explorer_url = serializers.SerializerMethodField()

    class Meta:
        model = EventParticipant
        fields = [
            'event_id', 'event_name', 'rank', 'nft_tier', 'nft_token_id',
            'total_score', 'tx_hash', 'explorer_url'
        ]

    def get_tx_hash(self, obj):
        if obj.reward_batch is None:
            return None
        return obj.reward_batch.tx_hash or None

    def get_explorer_url(self, obj):
        return explorer_tx_url(self.get_tx_hash(obj))
