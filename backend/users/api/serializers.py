from rest_framework import serializers

from users.models import User, Entitlement


class EntitlementSerializer(serializers.ModelSerializer):
    class Meta:
        model = Entitlement
        fields = ["premium_credits", "updated_at"]
        read_only_fields = fields


class MeSerializer(serializers.ModelSerializer):
    entitlement = EntitlementSerializer(read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "email", "phone", "college_domain", "is_staff", "entitlement"]
        read_only_fields = ["id", "username", "email", "is_staff", "entitlement"]
