from rest_framework import serializers
from accounts.utils import format_address
from .models import Event, EventParticipant


class EventListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for event listing"""
    organizer_username = serializers.CharField(source='organizer.username', read_only=True)
    status = serializers.SerializerMethodField()
    participant_count = serializers.IntegerField(read_only=True)
    challenge_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Event
        fields = [
            'id', 'name', 'description', 'status', 'start_time', 'end_time',
            'is_active', 'organizer_username', 'participant_count', 'challenge_count'
        ]

    def get_status(self, obj):
        return obj.get_status()


class EventSerializer(serializers.ModelSerializer):
    """Full serializer for Event model"""
    organizer_username = serializers.CharField(source='organizer.username', read_only=True)
    status = serializers.SerializerMethodField()
    participant_count = serializers.SerializerMethodField()
    challenge_count = serializers.SerializerMethodField()
    is_participant = serializers.SerializerMethodField()

    class Meta:
        model = Event
        fields = [
            'id', 'name', 'description', 'status', 'start_time', 'end_time',
            'is_active', 'max_participants', 'join_deadline_minutes',
            'organizer', 'organizer_username', 'participant_count',
            'challenge_count', 'is_participant', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'organizer', 'created_at', 'updated_at']

    def get_status(self, obj):
        return obj.get_status()

    def get_participant_count(self, obj):
        return obj.participants.count()

    def get_challenge_count(self, obj):
        return obj.challenges.count()

    def get_is_participant(self, obj):
        request = self.context.get('request')
        if not request or not request.user.is_authenticated:
            return False
        return obj.participants.filter(user=request.user).exists()

    def validate(self, attrs):
        start_time = attrs.get('start_time', getattr(self.instance, 'start_time', None))
        end_time = attrs.get('end_time', getattr(self.instance, 'end_time', None))

        if start_time and end_time and start_time >= end_time:
            raise serializers.ValidationError({
                'end_time': 'End time must be after start time.'
            })

        return attrs

    def create(self, validated_data):
        validated_data['organizer'] = self.context['request'].user
        return super().create(validated_data)


class LeaderboardEntrySerializer(serializers.ModelSerializer):
    """Participant row on an event leaderboard"""
    username = serializers.CharField(source='user.username', read_only=True)
    wallet = serializers.SerializerMethodField()
    position = serializers.IntegerField(read_only=True)

    class Meta:
        model = EventParticipant
        fields = [
            'position', 'username', 'wallet', 'total_score', 'rank',
            'nft_tier', 'has_received_nft', 'nft_token_id', 'joined_at'
        ]

    def get_wallet(self, obj):
        return format_address(obj.user.wallet_address)


class ParticipationSerializer(serializers.ModelSerializer):
    """A user's own participation in an event"""
    event_name = serializers.CharField(source='event.name', read_only=True)
    event_status = serializers.SerializerMethodField()

    class Meta:
        model = EventParticipant
        fields = [
            'id', 'event', 'event_name', 'event_status', 'total_score', 'rank',
            'nft_tier', 'has_received_nft', 'nft_token_id', 'joined_at'
        ]

    def get_event_status(self, obj):
        return obj.event.get_status()
