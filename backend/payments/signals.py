from django.dispatch import Signal, receiver

from notifications.services import notify

# kwargs: payment
payment_succeeded = Signal()
# kwargs: payment; sent for hostel plan payments, handled by the booking system
hostel_booking_requested = Signal()


@receiver(payment_succeeded)
def notify_payer_of_success(sender, payment, **kwargs):
    if payment.is_order_payment:
        message = f"Payment of {payment.currency} {payment.amount} received for order #{payment.order_id}."
        url = f"/orders/{payment.order_id}"
    else:
        message = f"Payment of {payment.currency} {payment.amount} for {payment.get_plan_display()} received."
        url = f"/payments/{payment.pk}"

    notify(
        user=payment.user,
        category="payment",
        message=message,
        url=url,
        metadata={
            "payment_id": payment.pk,
            "reference": payment.reference,
            "plan": payment.plan,
        },
    )

    if payment.is_order_payment:
        notify(
            user=payment.order.seller,
            category="payment",
            message=f"Order #{payment.order_id} for '{payment.order.item_title}' has been paid.",
            url=f"/orders/{payment.order_id}",
            metadata={"order_id": payment.order_id, "reference": payment.reference},
        )
