from django.test import TestCase
from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from decimal import Decimal

from listings.models import Item
from notifications.models import Notification
from .exceptions import InvalidOrder, InvalidTransition, Unauthorized
from .models import Order
from .services import OrderService, OrderLifecycleService

User = get_user_model()


class OrderTestMixin:
    def make_users(self):
        self.buyer = User.objects.create_user(
            username='buyer',
            email='buyer@example.com',
            password='testpass123'
        )
        self.seller = User.objects.create_user(
            username='seller',
            email='seller@example.com',
            password='testpass123'
        )
        self.other = User.objects.create_user(
            username='other',
            email='other@example.com',
            password='testpass123'
        )
        self.staff = User.objects.create_user(
            username='staff',
            email='staff@example.com',
            password='testpass123',
            is_staff=True
        )
        self.item = Item.objects.create(
            title='Calculus Textbook',
            price=Decimal('100.00'),
            seller=self.seller
        )

    def place_order(self, quantity=2):
        return OrderService.create_order(
            buyer=self.buyer,
            item=self.item,
            quantity=quantity,
            shipping_address='Hall 3, Room 12'
        )


class OrderCreationTests(OrderTestMixin, TestCase):
    def setUp(self):
        self.make_users()

    def test_create_order_snapshots_item(self):
        order = self.place_order(quantity=2)

        self.assertEqual(order.status, 'pending')
        self.assertEqual(order.payment_status, 'pending')
        self.assertEqual(order.seller, self.seller)
        self.assertEqual(order.item_title, 'Calculus Textbook')
        self.assertEqual(order.item_price, Decimal('100.00'))
        self.assertEqual(order.total_amount, Decimal('200.00'))
        self.assertEqual(len(order.timeline), 1)
        self.assertEqual(order.timeline[0]['status'], 'pending')
        self.assertEqual(order.timeline[0]['note'], 'Order created')

    def test_snapshot_survives_item_price_change(self):
        order = self.place_order(quantity=3)

        self.item.price = Decimal('150.00')
        self.item.title = 'Calculus Textbook (2nd ed.)'
        self.item.save()

        order.refresh_from_db()
        self.assertEqual(order.item_price, Decimal('100.00'))
        self.assertEqual(order.total_amount, Decimal('300.00'))
        self.assertEqual(order.item_title, 'Calculus Textbook')

    def test_quantity_bounds(self):
        with self.assertRaises(InvalidOrder):
            self.place_order(quantity=0)
        with self.assertRaises(InvalidOrder):
            self.place_order(quantity=11)
        self.assertEqual(Order.objects.count(), 0)

    def test_cannot_buy_unavailable_item(self):
        self.item.status = 'sold'
        self.item.save()

        with self.assertRaises(InvalidOrder):
            self.place_order()

    def test_cannot_buy_own_item(self):
        with self.assertRaises(InvalidOrder):
            OrderService.create_order(
                buyer=self.seller,
                item=self.item,
                quantity=1,
                shipping_address='Hall 1'
            )

    def test_seller_is_notified(self):
        order = self.place_order()

        notification = Notification.objects.get(user=self.seller)
        self.assertEqual(notification.category, 'order')
        self.assertEqual(notification.metadata['order_id'], order.pk)


class OrderLifecycleTests(OrderTestMixin, TestCase):
    def setUp(self):
        self.make_users()
        self.order = self.place_order()

    def test_full_lifecycle(self):
        OrderLifecycleService.confirm(self.order, self.seller)
        self.assertEqual(self.order.status, 'confirmed')
        self.assertEqual(len(self.order.timeline), 2)

        OrderLifecycleService.ship(self.order, self.seller, 'Sent with campus courier')
        OrderLifecycleService.deliver(self.order, self.buyer)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'delivered')
        self.assertTrue(self.order.is_terminal)
        self.assertEqual(
            [entry['status'] for entry in self.order.timeline],
            ['pending', 'confirmed', 'shipped', 'delivered']
        )
        self.assertEqual(self.order.timeline[2]['note'], 'Sent with campus courier')

    def test_buyer_cannot_confirm(self):
        with self.assertRaises(Unauthorized) as ctx:
            OrderLifecycleService.confirm(self.order, self.buyer)

        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(str(ctx.exception.detail), 'Only the seller can confirm this order')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'pending')
        self.assertEqual(len(self.order.timeline), 1)

    def test_stranger_cannot_cancel(self):
        with self.assertRaises(Unauthorized):
            OrderLifecycleService.cancel(self.order, self.other)

    def test_cannot_ship_pending_order(self):
        with self.assertRaises(InvalidTransition) as ctx:
            OrderLifecycleService.ship(self.order, self.seller)

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.action, 'ship')
        self.assertEqual(ctx.exception.current_status, 'pending')
        self.assertEqual(str(ctx.exception.detail), 'Cannot ship an order that is pending')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'pending')

    def test_cannot_confirm_twice(self):
        OrderLifecycleService.confirm(self.order, self.seller)

        with self.assertRaises(InvalidTransition):
            OrderLifecycleService.confirm(self.order, self.seller)

        self.order.refresh_from_db()
        self.assertEqual(len(self.order.timeline), 2)

    def test_shipped_order_cannot_be_cancelled(self):
        OrderLifecycleService.confirm(self.order, self.seller)
        OrderLifecycleService.ship(self.order, self.seller)

        with self.assertRaises(InvalidTransition):
            OrderLifecycleService.cancel(self.order, self.buyer)

    def test_either_party_can_cancel(self):
        OrderLifecycleService.cancel(self.order, self.buyer, 'Changed my mind')
        self.assertEqual(self.order.status, 'cancelled')

        other_order = self.place_order(quantity=1)
        OrderLifecycleService.confirm(other_order, self.seller)
        OrderLifecycleService.cancel(other_order, self.seller)
        self.assertEqual(other_order.status, 'cancelled')

    def test_stale_instance_loses_race(self):
        first = Order.objects.get(pk=self.order.pk)
        second = Order.objects.get(pk=self.order.pk)

        OrderLifecycleService.confirm(first, self.seller)

        with self.assertRaises(InvalidTransition) as ctx:
            OrderLifecycleService.cancel(second, self.buyer)
        self.assertEqual(ctx.exception.current_status, 'confirmed')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'confirmed')
        self.assertEqual(len(self.order.timeline), 2)

    def test_transition_dispatches_by_target(self):
        OrderLifecycleService.transition(self.order, self.seller, 'confirmed', 'ok')
        self.assertEqual(self.order.status, 'confirmed')

        with self.assertRaises(InvalidTransition):
            OrderLifecycleService.transition(self.order, self.seller, 'refunded')

    def test_status_change_notifies_buyer(self):
        OrderLifecycleService.confirm(self.order, self.seller)

        notification = Notification.objects.get(user=self.buyer)
        self.assertEqual(notification.metadata['status'], 'confirmed')
        self.assertEqual(notification.metadata['previous_status'], 'pending')


class OrderPaymentAxisTests(OrderTestMixin, TestCase):
    def setUp(self):
        self.make_users()
        self.order = self.place_order()

    def test_update_payment_status_leaves_timeline(self):
        OrderLifecycleService.update_payment_status(self.order, 'paid', 'CS_1_abc')

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'paid')
        self.assertEqual(self.order.payment_reference, 'CS_1_abc')
        self.assertEqual(self.order.status, 'pending')
        self.assertEqual(len(self.order.timeline), 1)

    def test_update_payment_status_keeps_reference(self):
        OrderLifecycleService.update_payment_status(self.order, 'paid', 'CS_1_abc')
        OrderLifecycleService.update_payment_status(self.order, 'failed')

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'failed')
        self.assertEqual(self.order.payment_reference, 'CS_1_abc')

    def test_update_payment_status_rejects_unknown_value(self):
        with self.assertRaises(ValueError):
            OrderLifecycleService.update_payment_status(self.order, 'settled')

    def test_refund_paid_order(self):
        OrderLifecycleService.update_payment_status(self.order, 'paid', 'CS_1_abc')
        OrderLifecycleService.confirm(self.order, self.seller)

        OrderLifecycleService.refund(self.order, self.staff, 'Item damaged')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'refunded')
        self.assertEqual(self.order.payment_status, 'refunded')
        self.assertEqual(self.order.timeline[-1]['status'], 'refunded')

    def test_refund_requires_payment(self):
        with self.assertRaises(InvalidTransition):
            OrderLifecycleService.refund(self.order, self.staff)

    def test_refund_requires_staff(self):
        OrderLifecycleService.update_payment_status(self.order, 'paid', 'CS_1_abc')

        with self.assertRaises(Unauthorized):
            OrderLifecycleService.refund(self.order, self.seller)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'pending')


class OrderSoftDeleteTests(OrderTestMixin, TestCase):
    def setUp(self):
        self.make_users()
        self.order = self.place_order()

    def test_soft_deleted_order_is_hidden(self):
        self.order.soft_delete()

        self.assertFalse(Order.objects.filter(pk=self.order.pk).exists())
        self.assertTrue(Order.all_objects.filter(pk=self.order.pk).exists())
        self.assertTrue(Order.all_objects.get(pk=self.order.pk).is_deleted)


class OrderAPITests(OrderTestMixin, APITestCase):
    def setUp(self):
        self.make_users()

    def test_create_order(self):
        self.client.force_authenticate(user=self.buyer)
        response = self.client.post(reverse('order-list'), {
            'item': self.item.pk,
            'quantity': 2,
            'shipping_address': 'Hall 3, Room 12'
        })

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('200.00'))

    def test_create_order_rejects_own_item(self):
        self.client.force_authenticate(user=self.seller)
        response = self.client.post(reverse('order-list'), {
            'item': self.item.pk,
            'quantity': 1,
            'shipping_address': 'Hall 1'
        })

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_orders_by_role(self):
        order = self.place_order()

        self.client.force_authenticate(user=self.seller)
        response = self.client.get(reverse('order-list'), {'role': 'seller'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], order.pk)

        response = self.client.get(reverse('order-list'), {'role': 'buyer'})
        self.assertEqual(response.data['count'], 0)

    def test_list_excludes_other_users_orders(self):
        self.place_order()

        self.client.force_authenticate(user=self.other)
        response = self.client.get(reverse('order-list'))
        self.assertEqual(response.data['count'], 0)

    def test_detail_forbidden_for_stranger(self):
        order = self.place_order()

        self.client.force_authenticate(user=self.other)
        response = self.client.get(reverse('order-detail', args=[order.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_confirm_endpoint(self):
        order = self.place_order()

        self.client.force_authenticate(user=self.seller)
        response = self.client.post(reverse('order-confirm', args=[order.pk]), {'note': 'On it'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertEqual(response.data['timeline'][-1]['note'], 'On it')

    def test_invalid_transition_returns_conflict(self):
        order = self.place_order()

        self.client.force_authenticate(user=self.seller)
        response = self.client.post(reverse('order-ship', args=[order.pk]))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['detail'], 'Cannot ship an order that is pending')

    def test_buyer_confirm_returns_forbidden(self):
        order = self.place_order()

        self.client.force_authenticate(user=self.buyer)
        response = self.client.post(reverse('order-confirm', args=[order.pk]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_endpoint(self):
        order = self.place_order()

        self.client.force_authenticate(user=self.buyer)
        response = self.client.patch(
            reverse('order-status', args=[order.pk]),
            {'status': 'cancelled', 'note': 'No longer needed'}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')

    def test_refund_endpoint_requires_staff(self):
        order = self.place_order()
        OrderLifecycleService.update_payment_status(order, 'paid', 'CS_1_abc')

        self.client.force_authenticate(user=self.buyer)
        response = self.client.post(reverse('order-refund', args=[order.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.staff)
        response = self.client.post(reverse('order-refund', args=[order.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payment_status'], 'refunded')
