import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from .exceptions import InvalidSignature, PaymentError, PaymentNotFound
from .models import Payment
from .serializers import PaymentSerializer, PaymentInitializeSerializer, PaymentVerifySerializer
from .services import PaymentReconciliationService

logger = logging.getLogger(__name__)


class IsPayerOrStaff(permissions.BasePermission):
    def has_permission(self, request, view):
        return request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        return request.user.is_staff or obj.user_id == request.user.pk


class PaymentListView(generics.ListAPIView):
    """
    GET /api/payments/ - The caller's payments, newest first
    """
    serializer_class = PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "plan"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return Payment.objects.filter(user=self.request.user)


class PaymentDetailView(generics.RetrieveAPIView):
    """
    GET /api/payments/{id}/
    """
    serializer_class = PaymentSerializer
    permission_classes = [IsPayerOrStaff]
    queryset = Payment.objects.all()


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def initialize_payment(request):
    """
    POST /api/payments/initialize/
    Body: {"amount": "200.00", "order_id": 1} or {"amount": "250.00", "plan": "premium"}
    Returns the hosted checkout URL to redirect the payer to.
    """
    serializer = PaymentInitializeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payment = PaymentReconciliationService.initialize(
        payer=request.user,
        amount=data["amount"],
        plan=data.get("plan"),
        order=data.get("order"),
        description=data.get("description", ""),
        callback_url=data.get("callback_url") or None,
    )
    return Response({
        "ok": True,
        "authorization_url": payment.authorization_url,
        "access_code": payment.access_code,
        "reference": payment.reference,
        "payment_id": payment.pk,
    }, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def verify_payment(request):
    """
    POST /api/payments/verify/
    Body: {"reference": "CS_..."}
    """
    serializer = PaymentVerifySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    reference = serializer.validated_data["reference"]
    payments = Payment.objects.filter(reference=reference)
    if not request.user.is_staff:
        payments = payments.filter(user=request.user)
    if not payments.exists():
        raise PaymentNotFound()

    payment = PaymentReconciliationService.verify(reference)
    return Response({"ok": payment.is_successful, "payment": PaymentSerializer(payment).data})


@csrf_exempt
@require_POST
def paystack_webhook(request: HttpRequest) -> JsonResponse:
    """
    Server-to-server webhook. Paystack POSTs JSON signed with
    HMAC-SHA512 of the raw body in X-Paystack-Signature.
    """
    signature = request.headers.get("X-Paystack-Signature", "")
    try:
        payment = PaymentReconciliationService.handle_webhook(request.body, signature)
    except InvalidSignature:
        return JsonResponse({"ok": False, "error": "Invalid signature"}, status=400)
    except PaymentNotFound:
        # not ours or already purged; ack so Paystack stops retrying
        return JsonResponse({"ok": True, "status": "unknown reference"}, status=202)
    except PaymentError as e:
        logger.warning("Paystack webhook rejected: %s", e.detail)
        return JsonResponse({"ok": False, "error": str(e.detail)}, status=e.status_code)

    return JsonResponse({"ok": True, "status": payment.status if payment else "ignored"})
