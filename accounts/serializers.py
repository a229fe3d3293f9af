from rest_framework import serializers
from .models import User, OrganizerRequest
from .utils import get_user_permissions, normalize_wallet_address


class UserSerializer(serializers.ModelSerializer):
    """Public user details"""

    class Meta:
        model = User
        fields = ['id', 'username', 'role', 'wallet_address', 'total_score', 'created_at']
        read_only_fields = fields


class UserProfileSerializer(serializers.ModelSerializer):
    """Serializer for user profile (self-editable)"""
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name',
            'role', 'wallet_address', 'total_score', 'created_at', 'last_login', 'permissions'
        ]
        read_only_fields = ['id', 'username', 'role', 'total_score', 'created_at', 'last_login']

    def get_permissions(self, obj):
        return get_user_permissions(obj)

    def validate_wallet_address(self, value):
        try:
            address = normalize_wallet_address(value)
        except ValueError as e:
            raise serializers.ValidationError(str(e))

        if address:
            taken = User.objects.filter(wallet_address=address)
            if self.instance is not None:
                taken = taken.exclude(pk=self.instance.pk)
            if taken.exists():
                raise serializers.ValidationError("This wallet address is already linked to another account.")
        return address

    def validate_email(self, value):
        taken = User.objects.filter(email=value)
        if self.instance is not None:
            taken = taken.exclude(pk=self.instance.pk)
        if taken.exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value


class OrganizerRequestSerializer(serializers.ModelSerializer):
    """Serializer for organizer role requests"""
    username = serializers.CharField(source='user.username', read_only=True)
    wallet_address = serializers.CharField(source='user.wallet_address', read_only=True)
    reviewer_username = serializers.CharField(source='reviewer.username', read_only=True, default=None)

    class Meta:
        model = OrganizerRequest
        fields = [
            'id', 'username', 'wallet_address', 'subject', 'body', 'status',
            'reviewer_username', 'review_notes', 'reviewed_at', 'created_at'
        ]
        read_only_fields = ['id', 'status', 'review_notes', 'reviewed_at', 'created_at']


class OrganizerRequestReviewSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')
