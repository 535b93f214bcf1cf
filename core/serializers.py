from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from core.models import AuditLog

User = get_user_model()


class EmailOrUsernameTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["name"] = user.display_name
        token["is_staff"] = user.is_staff
        return token

    def validate(self, attrs):
        username = attrs.get("username", "")
        if username and "@" in username:
            user = User.objects.filter(email__iexact=username).first()
            if user is not None:
                attrs["username"] = user.get_username()
        return super().validate(attrs)


class AuditLogSerializer(serializers.ModelSerializer):
    actor_username = serializers.CharField(source="actor.username", read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            "id",
            "actor",
            "actor_username",
            "action",
            "entity",
            "entity_id",
            "summary",
            "before_snapshot",
            "after_snapshot",
            "request_id",
            "ip_address",
            "created_at",
        ]
        read_only_fields = fields
