import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from django.db import transaction
from django.utils import timezone

from listings.models import Item
from .exceptions import InvalidOrder, InvalidTransition, OrderNotFound, Unauthorized
from .models import Order
from .signals import order_created, order_status_changed

logger = logging.getLogger(__name__)


def timeline_entry(status: str, note: str = '') -> Dict[str, Any]:
    return {
        'status': status,
        'timestamp': timezone.now().isoformat(),
        'note': note or '',
    }


class OrderService:
    """Creating orders from catalog items"""

    MAX_QUANTITY = 10

    @staticmethod
    @transaction.atomic
    def create_order(
        *,
        buyer,
        item: Item,
        quantity: int,
        shipping_address: str,
        notes: str = ''
    ) -> Order:
        """Create a pending order, snapshotting the item's title and price"""
        if quantity < 1 or quantity > OrderService.MAX_QUANTITY:
            raise InvalidOrder(f"Quantity must be between 1 and {OrderService.MAX_QUANTITY}")

        item = Item.objects.select_for_update().get(pk=item.pk)

        if not item.is_purchasable:
            raise InvalidOrder("Item is not available for purchase")

        if item.seller_id == buyer.pk:
            raise InvalidOrder("You cannot purchase your own item")

        item_price = Decimal(item.price).quantize(Decimal('0.01'))

        order = Order.objects.create(
            buyer=buyer,
            seller_id=item.seller_id,
            item=item,
            item_title=item.title,
            item_price=item_price,
            quantity=quantity,
            total_amount=item_price * quantity,
            status='pending',
            payment_status='pending',
            shipping_address=shipping_address,
            notes=notes or '',
            timeline=[timeline_entry('pending', 'Order created')],
        )

        logger.info("Order %s created by buyer %s for item %s", order.pk, buyer.pk, item.pk)
        order_created.send(sender=Order, order=order)
        return order


class OrderLifecycleService:
    """Gate and record every change to an order's status.

    Each transition is checked against the status the caller observed and
    written with a conditional UPDATE on that status, so of two racing
    requests on the same order only one can win. The loser gets
    ``InvalidTransition`` naming the status it lost to.
    """

    # target status -> verb used in user-facing messages
    ACTIONS = {
        'confirmed': 'confirm',
        'shipped': 'ship',
        'delivered': 'deliver',
        'cancelled': 'cancel',
    }

    REFUNDABLE_STATUSES = ('pending', 'confirmed', 'shipped', 'delivered')

    @classmethod
    def confirm(cls, order: Order, actor, note: str = '') -> Order:
        return cls._apply(order, actor, 'confirmed', note or 'Order confirmed by seller')

    @classmethod
    def ship(cls, order: Order, actor, note: str = '') -> Order:
        return cls._apply(order, actor, 'shipped', note or 'Order shipped')

    @classmethod
    def deliver(cls, order: Order, actor, note: str = '') -> Order:
        return cls._apply(order, actor, 'delivered', note or 'Order delivered')

    @classmethod
    def cancel(cls, order: Order, actor, note: str = '') -> Order:
        return cls._apply(order, actor, 'cancelled', note or 'Order cancelled')

    @classmethod
    def transition(cls, order: Order, actor, target: str, note: str = '') -> Order:
        """Move to ``target`` through the matching named operation"""
        operations = {
            'confirmed': cls.confirm,
            'shipped': cls.ship,
            'delivered': cls.deliver,
            'cancelled': cls.cancel,
        }
        operation = operations.get(target)
        if operation is None:
            raise InvalidTransition(
                f"move to {target}",
                order.status,
                detail=f"Cannot move an order that is {order.status} to {target}",
            )
        return operation(order, actor, note)

    @classmethod
    def refund(cls, order: Order, actor, note: str = '') -> Order:
        """Administrative refund; staff only, and only for paid orders"""
        current = order.status
        if current not in cls.REFUNDABLE_STATUSES:
            raise InvalidTransition('refund', current)
        if order.payment_status != 'paid':
            raise InvalidTransition(
                'refund',
                current,
                detail=f"Cannot refund an order whose payment is {order.payment_status}",
            )
        if actor is None or not actor.is_staff:
            raise Unauthorized('refund', current, ('staff',), detail="Only staff can refund this order")

        return cls._write(
            order,
            action='refund',
            expected=current,
            target='refunded',
            note=note or 'Order refunded',
            extra={'payment_status': 'refunded'},
        )

    @staticmethod
    def update_payment_status(order: Order, payment_status: str, reference: Optional[str] = None) -> Order:
        """Set the payment axis only; no timeline entry, no status gate.

        Reserved for payment reconciliation. ``reference`` is kept as-is
        when not given.
        """
        valid = {value for value, _ in Order.PAYMENT_STATUS_CHOICES}
        if payment_status not in valid:
            raise ValueError(f"Unknown payment status: {payment_status}")

        fields = {'payment_status': payment_status, 'updated_at': timezone.now()}
        if reference is not None:
            fields['payment_reference'] = reference

        Order.all_objects.filter(pk=order.pk).update(**fields)
        for name, value in fields.items():
            setattr(order, name, value)

        logger.info("Order %s payment_status -> %s (%s)", order.pk, payment_status, reference)
        return order

    @classmethod
    def _apply(cls, order: Order, actor, target: str, note: str) -> Order:
        action = cls.ACTIONS[target]
        current = order.status

        if target not in Order.ALLOWED_TRANSITIONS.get(current, ()):
            raise InvalidTransition(action, current)

        allowed_roles = Order.TRANSITION_ROLES[target]
        if not order.roles_of(actor) & set(allowed_roles):
            raise Unauthorized(action, current, allowed_roles)

        return cls._write(order, action=action, expected=current, target=target, note=note)

    @staticmethod
    def _write(order: Order, *, action: str, expected: str, target: str, note: str, extra=None) -> Order:
        previous = expected
        with transaction.atomic():
            locked = (
                Order.objects.select_for_update()
                .filter(pk=order.pk)
                .values('status', 'timeline')
                .first()
            )
            if locked is None:
                raise OrderNotFound()
            if locked['status'] != expected:
                raise InvalidTransition(action, locked['status'])

            timeline = list(locked['timeline'] or [])
            timeline.append(timeline_entry(target, note))
            fields = {
                'status': target,
                'timeline': timeline,
                'updated_at': timezone.now(),
            }
            fields.update(extra or {})

            updated = Order.objects.filter(pk=order.pk, status=expected).update(**fields)
            if not updated:
                current = Order.all_objects.filter(pk=order.pk).values_list('status', flat=True).first()
                raise InvalidTransition(action, current or expected)

        for name, value in fields.items():
            setattr(order, name, value)

        logger.info("Order %s %s -> %s", order.pk, previous, target)
        order_status_changed.send(sender=Order, order=order, previous_status=previous, note=note)
        return order
