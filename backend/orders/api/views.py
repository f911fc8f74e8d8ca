from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.shortcuts import get_object_or_404

from ..models import Order
from ..services import OrderLifecycleService
from .filters import OrderFilter
from .serializers import (
    OrderSerializer, OrderCreateSerializer, OrderTransitionSerializer,
    OrderStatusUpdateSerializer
)


class IsOrderParty(permissions.BasePermission):
    """Buyer, seller and staff may see an order"""

    def has_permission(self, request, view):
        return request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        if request.user.is_staff:
            return True
        return bool(obj.roles_of(request.user))


class OrderListCreateView(generics.ListCreateAPIView):
    """
    GET /api/orders/ - Orders the user bought or sold
    POST /api/orders/ - Place an order for an item
    """
    permission_classes = [permissions.IsAuthenticated]
    filterset_class = OrderFilter
    search_fields = ['item_title', 'payment_reference']
    ordering_fields = ['created_at', 'total_amount']
    ordering = ['-created_at']

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return OrderCreateSerializer
        return OrderSerializer

    def get_queryset(self):
        return Order.objects.for_party(self.request.user).select_related('buyer', 'seller')

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = serializer.save()
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderDetailView(generics.RetrieveAPIView):
    """
    GET /api/orders/{id}/
    """
    serializer_class = OrderSerializer
    permission_classes = [IsOrderParty]

    def get_queryset(self):
        return Order.objects.select_related('buyer', 'seller')


def _run_transition(request, pk, operation):
    order = get_object_or_404(Order, pk=pk)
    serializer = OrderTransitionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = operation(order, request.user, serializer.validated_data['note'])
    return Response(OrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def confirm_order(request, pk):
    """
    POST /api/orders/{id}/confirm/
    Seller accepts a pending order
    """
    return _run_transition(request, pk, OrderLifecycleService.confirm)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def ship_order(request, pk):
    """
    POST /api/orders/{id}/ship/
    """
    return _run_transition(request, pk, OrderLifecycleService.ship)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def deliver_order(request, pk):
    """
    POST /api/orders/{id}/deliver/
    Buyer confirms receipt
    """
    return _run_transition(request, pk, OrderLifecycleService.deliver)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def cancel_order(request, pk):
    """
    POST /api/orders/{id}/cancel/
    """
    return _run_transition(request, pk, OrderLifecycleService.cancel)


@api_view(['POST'])
@permission_classes([permissions.IsAdminUser])
def refund_order(request, pk):
    """
    POST /api/orders/{id}/refund/
    Staff only
    """
    return _run_transition(request, pk, OrderLifecycleService.refund)


@api_view(['PUT', 'PATCH'])
@permission_classes([permissions.IsAuthenticated])
def update_order_status(request, pk):
    """
    PUT /api/orders/{id}/status/
    Body: {"status": "confirmed|shipped|delivered|cancelled", "note": "..."}
    """
    order = get_object_or_404(Order, pk=pk)
    serializer = OrderStatusUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    order = OrderLifecycleService.transition(
        order,
        request.user,
        serializer.validated_data['status'],
        serializer.validated_data['note'],
    )
    return Response(OrderSerializer(order).data)
