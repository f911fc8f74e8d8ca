import json
import logging
import uuid
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from ..exceptions import (
    AlreadyReconciled, GatewayUnavailable, InvalidSignature, PaymentError,
    PaymentNotFound, UnknownPlan, VerificationFailed
)
from ..models import Payment, PaymentPlan
from . import paystack
from .fanout import apply_fanout

logger = logging.getLogger(__name__)

# Charges the gateway is still working on; every other non-success status
# fails the payment.
GATEWAY_IN_PROGRESS_STATUSES = {"ongoing", "pending", "processing", "queued"}

# Orders that can no longer take money
CLOSED_ORDER_STATUSES = ("cancelled", "refunded")


def generate_reference(prefix: str = "CS") -> str:
    """Timestamp plus 48 random bits, e.g. CS_1767225600_3f9a0c1b2d4e"""
    return f"{prefix}_{int(timezone.now().timestamp())}_{uuid.uuid4().hex[:12]}"


class PaymentReconciliationService:
    """Drive a payment from pending to a terminal status exactly once.

    The pending -> success move is a conditional UPDATE on ``status``; the
    caller whose UPDATE hits the row runs the fan-out in the same
    transaction, every other caller sees ``success`` and returns the
    stored record untouched.
    """

    @staticmethod
    def initialize(
        *,
        payer,
        amount,
        currency: Optional[str] = None,
        plan: Optional[str] = None,
        order=None,
        description: str = "",
        callback_url: Optional[str] = None,
    ) -> Payment:
        """Open a hosted checkout and record the pending payment.

        The row is only written once Paystack has accepted the session.
        """
        try:
            amount = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except InvalidOperation as e:
            raise PaymentError("Valid 'amount' is required") from e
        if amount <= 0:
            raise PaymentError("Amount must be greater than zero")

        currency = (currency or settings.PAYSTACK_CURRENCY).upper()
        if currency != settings.PAYSTACK_CURRENCY:
            raise PaymentError(f"Only {settings.PAYSTACK_CURRENCY} payments are supported")

        plan = str(plan) if plan else None
        if plan is not None and plan not in PaymentPlan.values:
            raise UnknownPlan(plan)

        if plan is None:
            if order is None:
                raise PaymentError("An order payment must reference an order")
            if order.buyer_id != payer.pk:
                raise PermissionDenied("Only the buyer can pay for this order")
            if order.status in CLOSED_ORDER_STATUSES:
                raise PaymentError(f"Order #{order.pk} is {order.status} and cannot be paid")
            if order.payment_status == "paid":
                raise PaymentError(f"Order #{order.pk} is already paid")
            if amount != order.total_amount:
                raise PaymentError(f"Order payments must be for the order total of {order.total_amount}")
        elif order is not None:
            raise PaymentError("Plan payments cannot reference an order")

        reference = generate_reference()
        try:
            data = paystack.initialize_transaction(
                amount=amount,
                email=payer.email,
                reference=reference,
                currency=currency,
                callback_url=callback_url,
                metadata={
                    "order_id": order.pk if order is not None else None,
                    "plan": plan,
                    "description": description,
                    "user_id": payer.pk,
                },
            )
        except paystack.PaystackError as e:
            logger.error("Paystack initialize failed for %s: %s", reference, e)
            raise GatewayUnavailable() from e

        body = data.get("data") or {}
        payment = Payment.objects.create(
            user=payer,
            order=order,
            reference=body.get("reference") or reference,
            amount=amount,
            currency=currency,
            status="pending",
            plan=plan,
            description=description or "",
            authorization_url=body["authorization_url"],
            access_code=body.get("access_code") or "",
            gateway_response=data,
        )
        logger.info("Payment %s initialized for user %s (%s %s)", payment.reference, payer.pk, currency, amount)
        return payment

    @classmethod
    def verify(cls, reference: str) -> Payment:
        """Ask Paystack for the authoritative status and apply it once"""
        payment = Payment.objects.filter(reference=reference).first()
        if payment is None:
            raise PaymentNotFound()

        if not payment.is_pending:
            # success is idempotent; failed/cancelled are final
            return payment

        try:
            data = paystack.verify_transaction(reference)
        except paystack.PaystackError as e:
            logger.error("Paystack verify failed for %s: %s", reference, e)
            raise VerificationFailed() from e

        body = data.get("data")
        if not isinstance(body, dict) or not body.get("status"):
            logger.error("Paystack verify for %s returned no charge status", reference)
            raise VerificationFailed()

        return cls._apply_gateway_status(payment, str(body["status"]).lower(), body, data)

    @classmethod
    def handle_webhook(cls, raw_body: bytes, signature: str) -> Optional[Payment]:
        """Apply a Paystack event. Returns None for events we only acknowledge."""
        if not paystack.is_valid_signature(raw_body, signature):
            logger.warning("Rejected Paystack webhook with an invalid signature")
            raise InvalidSignature()

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise PaymentError("Invalid JSON payload") from e

        event = payload.get("event") if isinstance(payload, dict) else None
        data = payload.get("data") if isinstance(payload, dict) else None
        if event not in ("charge.success", "charge.failed"):
            logger.info("Acknowledged Paystack event %s without changes", event)
            return None

        if not isinstance(data, dict) or not data.get("reference"):
            raise PaymentError("Webhook payload has no reference")

        payment = Payment.objects.filter(reference=data["reference"]).first()
        if payment is None:
            raise PaymentNotFound()

        gateway_status = "success" if event == "charge.success" else "failed"
        return cls._apply_gateway_status(payment, gateway_status, data, data)

    @classmethod
    def reconcile_pending(cls, older_than_minutes: Optional[int] = None, limit: int = 100) -> Dict[str, Any]:
        """Poll Paystack for payments whose webhook never arrived"""
        if older_than_minutes is None:
            older_than_minutes = settings.PAYMENT_RECONCILE_AFTER_MINUTES
        cutoff = timezone.now() - timedelta(minutes=older_than_minutes)

        pending = Payment.objects.filter(status="pending", created_at__lte=cutoff).order_by("created_at")

        checked = succeeded = failed = errors = 0
        for payment in pending[:limit]:
            checked += 1
            try:
                result = cls.verify(payment.reference)
            except PaymentError as e:
                errors += 1
                logger.warning("Reconciliation of %s failed: %s", payment.reference, e.detail)
                continue
            if result.status == "success":
                succeeded += 1
            elif result.status == "failed":
                failed += 1

        return {
            "checked": checked,
            "succeeded": succeeded,
            "failed": failed,
            "errors": errors,
            "processed_at": str(timezone.now()),
        }

    @classmethod
    def _apply_gateway_status(cls, payment: Payment, gateway_status: str, charge: dict, raw: dict) -> Payment:
        if gateway_status == "success":
            expected = paystack.to_minor_units(payment.amount)
            charged = charge.get("amount")
            if charged is not None:
                try:
                    charged = int(charged)
                except (TypeError, ValueError) as e:
                    logger.error("Payment %s: gateway reported a non-numeric amount %r", payment.reference, charged)
                    raise VerificationFailed("Gateway reported an invalid charge amount") from e
            if charged is not None and charged != expected:
                logger.error(
                    "Payment %s charged %s minor units, expected %s; marking failed",
                    payment.reference, charged, expected
                )
                return cls._mark_failed(payment, raw)
            if payment.is_order_payment and payment.amount != payment.order.total_amount:
                logger.error(
                    "Payment %s of %s does not cover order #%s total %s; marking failed",
                    payment.reference, payment.amount, payment.order_id, payment.order.total_amount
                )
                return cls._mark_failed(payment, raw)
            return cls._mark_successful(payment, raw)

        if gateway_status in GATEWAY_IN_PROGRESS_STATUSES:
            logger.info("Payment %s still %s at the gateway", payment.reference, gateway_status)
            return payment

        return cls._mark_failed(payment, raw)

    @staticmethod
    def _claim(payment: Payment, **fields) -> None:
        """Compare-and-set pending -> fields['status'] at the storage layer"""
        fields["updated_at"] = timezone.now()
        updated = Payment.objects.filter(pk=payment.pk, status="pending").update(**fields)
        if not updated:
            raise AlreadyReconciled(payment)

    @classmethod
    def _mark_successful(cls, payment: Payment, raw: dict) -> Payment:
        try:
            with transaction.atomic():
                cls._claim(payment, status="success", paid_at=timezone.now(), gateway_response=raw)
                payment.refresh_from_db()
                apply_fanout(payment)
        except AlreadyReconciled:
            payment.refresh_from_db()
            return payment

        logger.info("Payment %s reconciled", payment.reference)
        return payment

    @classmethod
    def _mark_failed(cls, payment: Payment, raw: dict) -> Payment:
        try:
            cls._claim(payment, status="failed", gateway_response=raw)
        except AlreadyReconciled:
            pass
        payment.refresh_from_db()
        logger.info("Payment %s is %s", payment.reference, payment.status)
        return payment
