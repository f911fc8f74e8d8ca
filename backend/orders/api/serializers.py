from rest_framework import serializers

from listings.models import Item
from ..models import Order
from ..services import OrderService


class OrderSerializer(serializers.ModelSerializer):
    buyer_username = serializers.CharField(source='buyer.username', read_only=True)
    seller_username = serializers.CharField(source='seller.username', read_only=True)
    allowed_next_statuses = serializers.ReadOnlyField()
    is_paid = serializers.ReadOnlyField()

    class Meta:
        model = Order
        fields = [
            'id', 'buyer', 'buyer_username', 'seller', 'seller_username', 'item',
            'item_title', 'item_price', 'quantity', 'total_amount',
            'status', 'payment_status', 'payment_reference', 'is_paid',
            'allowed_next_statuses', 'shipping_address', 'notes', 'timeline',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrderCreateSerializer(serializers.Serializer):
    item = serializers.PrimaryKeyRelatedField(queryset=Item.objects.all())
    quantity = serializers.IntegerField(min_value=1, max_value=OrderService.MAX_QUANTITY)
    shipping_address = serializers.CharField(max_length=500)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')

    def create(self, validated_data):
        return OrderService.create_order(
            buyer=self.context['request'].user,
            item=validated_data['item'],
            quantity=validated_data['quantity'],
            shipping_address=validated_data['shipping_address'],
            notes=validated_data.get('notes', ''),
        )


class OrderTransitionSerializer(serializers.Serializer):
    note = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class OrderStatusUpdateSerializer(OrderTransitionSerializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)
