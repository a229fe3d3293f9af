import os
from rest_framework import serializers
from .models import Challenge
from .scoring import is_valid_flag_format

MAX_UPLOAD_SIZE = 10 * 1024 * 1024
ALLOWED_FILE_EXTENSIONS = {
    '.zip', '.txt', '.pdf', '.jpg', '.jpeg', '.png', '.gif',
    '.json', '.html', '.css', '.js', '.bin', '.pcap', '.py',
}


class ChallengeListSerializer(serializers.ModelSerializer):
    """Participant view of a challenge (flag never included)"""
    current_points = serializers.SerializerMethodField()
    file_url = serializers.SerializerMethodField()
    solved = serializers.SerializerMethodField()

    class Meta:
        model = Challenge
        fields = [
            'id', 'title', 'description', 'category', 'difficulty',
            'initial_points', 'min_points', 'decay_factor', 'current_points',
            'solve_count', 'file_url', 'is_active', 'solved', 'created_at'
        ]

    def get_current_points(self, obj):
        return obj.get_current_points()

    def get_file_url(self, obj):
        if obj.file:
            request = self.context.get('request')
            if request:
                return request.build_absolute_uri(obj.file.url)
            return obj.file.url
        return None

    def get_solved(self, obj):
        solved_ids = self.context.get('solved_ids')
        if solved_ids is None:
            return False
        return obj.id in solved_ids


class ChallengeSerializer(ChallengeListSerializer):
    """Organizer view of a challenge, including the flag"""

    class Meta:
        model = Challenge
        fields = [
            'id', 'event', 'title', 'description', 'category', 'difficulty',
            'flag', 'initial_points', 'min_points', 'decay_factor', 'current_points',
            'solve_count', 'file', 'file_url', 'is_active', 'solved',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'event', 'solve_count', 'created_at', 'updated_at']
        extra_kwargs = {
            'file': {'write_only': True, 'required': False},
        }

    def validate_flag(self, value):
        value = value.strip()
        if not is_valid_flag_format(value):
            raise serializers.ValidationError("Flag must be in the format ctnft{...}.")
        return value

    def validate_category(self, value):
        return value.strip().upper()

    def validate_file(self, value):
        if value is None:
            return value
        if value.size > MAX_UPLOAD_SIZE:
            raise serializers.ValidationError("File size must be less than 10MB.")
        extension = os.path.splitext(value.name)[1].lower()
        if extension not in ALLOWED_FILE_EXTENSIONS:
            raise serializers.ValidationError(
                "File type not allowed. Allowed types: " + ', '.join(sorted(ALLOWED_FILE_EXTENSIONS))
            )
        return value

    def validate(self, attrs):
        initial_points = attrs.get('initial_points', self.instance.initial_points if self.instance else 100)
        min_points = attrs.get('min_points', self.instance.min_points if self.instance else 10)

        if min_points > initial_points:
            raise serializers.ValidationError({
                'min_points': 'Minimum points cannot be greater than initial points.'
            })

        return attrs
