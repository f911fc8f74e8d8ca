from decimal import Decimal

from rest_framework import serializers

from orders.models import Order
from .models import Payment, PaymentPlan


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id", "reference", "user", "order", "amount", "currency", "status",
            "plan", "description", "authorization_url", "access_code",
            "paid_at", "created_at", "updated_at"
        ]
        read_only_fields = fields


class PaymentInitializeSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    order_id = serializers.PrimaryKeyRelatedField(
        source="order",
        queryset=Order.objects.all(),
        required=False,
        allow_null=True,
        default=None,
    )
    plan = serializers.ChoiceField(choices=PaymentPlan.choices, required=False, allow_null=True, default=None)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    callback_url = serializers.URLField(required=False, allow_blank=True, default="")

    def validate(self, data):
        if not data.get("plan") and data.get("order") is None:
            raise serializers.ValidationError("order_id is required for order payments")
        if data.get("plan") and data.get("order") is not None:
            raise serializers.ValidationError("Plan payments cannot reference an order")
        return data


class PaymentVerifySerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=100)
