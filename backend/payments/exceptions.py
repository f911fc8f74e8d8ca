from rest_framework import status
from rest_framework.exceptions import APIException


class PaymentError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Payment operation failed."
    default_code = "payment_error"


class PaymentNotFound(PaymentError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Payment record not found."
    default_code = "payment_not_found"


class InvalidSignature(PaymentError):
    default_detail = "Invalid webhook signature."
    default_code = "invalid_signature"


class GatewayUnavailable(PaymentError):
    """Upstream call failed or timed out; safe to retry"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Payment gateway is unavailable. Please retry."
    default_code = "gateway_unavailable"


class VerificationFailed(PaymentError):
    """Gateway could not give a usable verification result; safe to retry"""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment verification failed. Please retry."
    default_code = "verification_failed"


class UnknownPlan(PaymentError):
    default_code = "unknown_plan"

    def __init__(self, plan):
        self.plan = plan
        super().__init__(f"Unknown payment plan: {plan!r}")


class AlreadyReconciled(Exception):
    """Internal: the payment left ``pending`` before this caller got to it"""

    def __init__(self, payment):
        self.payment = payment
        super().__init__(payment.reference)
