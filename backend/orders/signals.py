from django.dispatch import Signal, receiver

from notifications.services import notify

# kwargs: order
order_created = Signal()
# kwargs: order, previous_status, note
order_status_changed = Signal()


STATUS_MESSAGES = {
    'confirmed': "Your order for '{title}' has been confirmed by the seller.",
    'shipped': "Your order for '{title}' has been shipped.",
    'delivered': "The buyer has confirmed delivery of '{title}'.",
    'cancelled': "The order for '{title}' has been cancelled.",
    'refunded': "The order for '{title}' has been refunded.",
}


@receiver(order_created)
def notify_seller_of_new_order(sender, order, **kwargs):
    notify(
        user=order.seller,
        category="order",
        message=f"New order for '{order.item_title}' (x{order.quantity}).",
        url=f"/orders/{order.pk}",
        metadata={"order_id": order.pk, "status": order.status},
    )


@receiver(order_status_changed)
def notify_parties_of_status_change(sender, order, previous_status, **kwargs):
    template = STATUS_MESSAGES.get(order.status)
    if not template:
        return

    if order.status in ('confirmed', 'shipped'):
        recipients = [order.buyer]
    elif order.status == 'delivered':
        recipients = [order.seller]
    else:
        recipients = [order.buyer, order.seller]

    for user in recipients:
        notify(
            user=user,
            category="order",
            message=template.format(title=order.item_title),
            url=f"/orders/{order.pk}",
            metadata={
                "order_id": order.pk,
                "status": order.status,
                "previous_status": previous_status,
            },
        )
