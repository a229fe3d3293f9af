from rest_framework import serializers
from .models import Solve


class SolveSerializer(serializers.ModelSerializer):
    """Serializer for Solve model"""
    challenge_title = serializers.CharField(source='challenge.title', read_only=True)
    event_name = serializers.CharField(source='event.name', read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = Solve
        fields = [
            'id', 'challenge', 'challenge_title', 'event', 'event_name',
            'username', 'points_awarded', 'solved_at'
        ]
        read_only_fields = fields


class FlagSubmissionSerializer(serializers.Serializer):
    """Serializer for submitting a flag"""
    flag = serializers.CharField(max_length=500, required=True, trim_whitespace=True)
