from rest_framework import serializers

from ..models import SupportTicket, User


class UserSerializer(serializers.ModelSerializer):
    """Serializer exposing the current user's public profile information."""

    avatar = serializers.SerializerMethodField()
    is_admin = serializers.BooleanField(source="is_admin_user", read_only=True)

    class Meta:
        model = User
        fields = (
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'role',
            'phone',
            'business_name',
            'verified',
            'is_admin',
            'avatar',
        )
        read_only_fields = fields

    def get_avatar(self, obj):
        if not obj.avatar:
            return None
        request = self.context.get('request')
        avatar_url = obj.avatar.url
        if request is None:
            return avatar_url
        return request.build_absolute_uri(avatar_url)


class RecentActivitySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    action = serializers.CharField()
    resource_type = serializers.CharField()
    resource_id = serializers.CharField()
    severity = serializers.CharField()
    user = serializers.CharField(source='user.username', default=None)
    created_at = serializers.DateTimeField()


class DashboardStatsSerializer(serializers.Serializer):
    total_users = serializers.IntegerField()
    total_providers = serializers.IntegerField()
    total_bookings = serializers.IntegerField()
    total_revenue = serializers.DecimalField(max_digits=14, decimal_places=2, coerce_to_string=False)
    pending_approvals = serializers.IntegerField()
    active_support_tickets = serializers.IntegerField()
    user_growth = serializers.FloatField()
    booking_growth = serializers.FloatField()
    revenue_growth = serializers.FloatField()
    recent_activity = RecentActivitySerializer(many=True)


class SupportTicketSerializer(serializers.ModelSerializer):
    user = serializers.CharField(source='user.username', read_only=True)
    assigned_to = serializers.CharField(source='assigned_to.username', default=None, read_only=True)
    message_count = serializers.IntegerField(read_only=True, default=0)
    is_escalated = serializers.BooleanField(read_only=True)

    class Meta:
        model = SupportTicket
        fields = (
            'id',
            'subject',
            'category',
            'priority',
            'status',
            'user',
            'assigned_to',
            'message_count',
            'is_escalated',
            'first_response_at',
            'resolved_at',
            'created_at',
            'updated_at',
        )
        read_only_fields = fields
