import logging

from django.conf import settings

from orders.services import OrderLifecycleService
from users.services import EntitlementService
from ..exceptions import PaymentError, UnknownPlan
from ..models import Payment, PaymentPlan
from ..signals import hostel_booking_requested, payment_succeeded

logger = logging.getLogger(__name__)


def settle_order(payment: Payment):
    if payment.order_id is None:
        raise PaymentError(f"Order payment {payment.reference} has no order")
    if payment.amount != payment.order.total_amount:
        raise PaymentError(f"Payment {payment.reference} does not cover order #{payment.order_id}")
    OrderLifecycleService.update_payment_status(payment.order, "paid", payment.reference)


def grant_premium_credit(payment: Payment):
    EntitlementService.grant_premium_credits(payment.user, settings.PREMIUM_CREDITS_PER_PLAN["premium"])


def grant_bundle_credits(payment: Payment):
    EntitlementService.grant_premium_credits(payment.user, settings.PREMIUM_CREDITS_PER_PLAN["bundle"])


def request_hostel_booking(payment: Payment):
    # the booking itself is owned by whoever listens to this signal
    hostel_booking_requested.send(sender=Payment, payment=payment)


# One entry per plan; a plan missing here is an error, never a silent no-op
FANOUT = {
    None: settle_order,
    PaymentPlan.PREMIUM.value: grant_premium_credit,
    PaymentPlan.BUNDLE.value: grant_bundle_credits,
    PaymentPlan.HOSTEL.value: request_hostel_booking,
}


def apply_fanout(payment: Payment):
    """Run the side effects of a payment that just became successful.

    Must be called exactly once per payment, inside the transaction that
    moved it from pending to success.
    """
    plan = str(payment.plan) if payment.plan else None
    try:
        handler = FANOUT[plan]
    except KeyError:
        raise UnknownPlan(plan) from None

    handler(payment)
    logger.info("Fan-out %s applied for payment %s", handler.__name__, payment.reference)
    payment_succeeded.send(sender=Payment, payment=payment)
