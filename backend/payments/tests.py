from django.test import TestCase, override_settings
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from decimal import Decimal
from datetime import timedelta
from io import StringIO
from unittest.mock import patch, MagicMock

import requests

from listings.models import Item
from notifications.models import Notification
from orders.services import OrderService, OrderLifecycleService
from users.models import Entitlement
from .exceptions import GatewayUnavailable, PaymentError, PaymentNotFound, UnknownPlan, VerificationFailed
from .models import Payment
from .services import PaymentReconciliationService, generate_reference
from .services import paystack
from .services.fanout import settle_order
from .tasks import reconcile_pending_payments

User = get_user_model()


def gateway_init_response(reference="CS_1_abc"):
    return {
        "status": True,
        "message": "Authorization URL created",
        "data": {
            "authorization_url": f"https://checkout.paystack.test/{reference}",
            "access_code": "ac_123",
            "reference": reference,
        },
    }


def gateway_verify_response(charge_status, amount):
    return {
        "status": True,
        "message": "Verification successful",
        "data": {"status": charge_status, "amount": amount, "currency": "GHS"},
    }


class PaymentTestMixin:
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
        self.item = Item.objects.create(
            title='Desk Lamp',
            price=Decimal('100.00'),
            seller=self.seller
        )
        self.order = OrderService.create_order(
            buyer=self.buyer,
            item=self.item,
            quantity=2,
            shipping_address='Hall 3, Room 12'
        )

    def make_payment(self, amount='250.00', plan='premium', order=None, **kwargs):
        return Payment.objects.create(
            user=self.buyer,
            order=order,
            reference=generate_reference(),
            amount=Decimal(amount),
            plan=plan,
            **kwargs
        )

    def credits(self, user):
        return Entitlement.objects.get(user=user).premium_credits


class PaystackClientTests(TestCase):
    def test_to_minor_units(self):
        self.assertEqual(paystack.to_minor_units(Decimal('250.00')), 25000)
        self.assertEqual(paystack.to_minor_units('12.345'), 1235)
        self.assertEqual(paystack.to_minor_units(0.1), 10)

    def test_to_minor_units_rejects_garbage(self):
        with self.assertRaises(paystack.PaystackError):
            paystack.to_minor_units('twelve')

    @patch('payments.services.paystack.requests.request')
    def test_initialize_sends_minor_units_with_timeout(self, mock_request):
        mock_request.return_value = MagicMock(status_code=200)
        mock_request.return_value.json.return_value = gateway_init_response()

        data = paystack.initialize_transaction(
            amount=Decimal('200.00'),
            email='buyer@example.com',
            reference='CS_1_abc'
        )

        self.assertEqual(data['data']['access_code'], 'ac_123')
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ('POST', 'https://paystack.test/transaction/initialize'))
        self.assertEqual(kwargs['json']['amount'], 20000)
        self.assertEqual(kwargs['json']['currency'], 'GHS')
        self.assertEqual(kwargs['timeout'], 5)
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer sk_test_marketplace')

    @patch('payments.services.paystack.requests.request')
    def test_timeout_raises_paystack_error(self, mock_request):
        mock_request.side_effect = requests.Timeout('timed out')

        with self.assertRaises(paystack.PaystackError):
            paystack.verify_transaction('CS_1_abc')

    @patch('payments.services.paystack.requests.request')
    def test_rejected_request_raises_paystack_error(self, mock_request):
        mock_request.return_value = MagicMock(status_code=400)
        mock_request.return_value.json.return_value = {"status": False, "message": "Invalid key"}

        with self.assertRaises(paystack.PaystackError) as ctx:
            paystack.verify_transaction('CS_1_abc')
        self.assertIn('Invalid key', str(ctx.exception))

    @patch('payments.services.paystack.requests.request')
    def test_non_json_response_raises_paystack_error(self, mock_request):
        mock_request.return_value = MagicMock(status_code=502)
        mock_request.return_value.json.side_effect = ValueError('no json')

        with self.assertRaises(paystack.PaystackError):
            paystack.verify_transaction('CS_1_abc')

    @override_settings(PAYSTACK_SECRET_KEY='')
    def test_missing_secret_key(self):
        with self.assertRaises(paystack.PaystackError):
            paystack.verify_transaction('CS_1_abc')

    def test_signature_check(self):
        body = b'{"event":"charge.success"}'
        signature = paystack.compute_signature(body)

        self.assertTrue(paystack.is_valid_signature(body, signature))
        self.assertTrue(paystack.is_valid_signature(body, signature.upper()))
        self.assertFalse(paystack.is_valid_signature(body + b' ', signature))
        self.assertFalse(paystack.is_valid_signature(body, ''))


class PaymentInitializeTests(PaymentTestMixin, TestCase):
    def setUp(self):
        self.make_users()

    @patch('payments.services.paystack.initialize_transaction')
    def test_initialize_plan_payment(self, mock_init):
        mock_init.side_effect = lambda **kw: gateway_init_response(kw['reference'])

        payment = PaymentReconciliationService.initialize(
            payer=self.buyer,
            amount='250',
            plan='premium'
        )

        self.assertEqual(payment.status, 'pending')
        self.assertEqual(payment.amount, Decimal('250.00'))
        self.assertEqual(payment.currency, 'GHS')
        self.assertTrue(payment.reference.startswith('CS_'))
        self.assertEqual(payment.authorization_url, f'https://checkout.paystack.test/{payment.reference}')
        self.assertEqual(mock_init.call_args.kwargs['email'], 'buyer@example.com')

    @patch('payments.services.paystack.initialize_transaction')
    def test_initialize_order_payment(self, mock_init):
        mock_init.side_effect = lambda **kw: gateway_init_response(kw['reference'])

        payment = PaymentReconciliationService.initialize(
            payer=self.buyer,
            amount=self.order.total_amount,
            order=self.order
        )

        self.assertEqual(payment.order, self.order)
        self.assertIsNone(payment.plan)
        self.assertEqual(mock_init.call_args.kwargs['metadata']['order_id'], self.order.pk)

    @patch('payments.services.paystack.initialize_transaction')
    def test_gateway_failure_records_nothing(self, mock_init):
        mock_init.side_effect = paystack.PaystackError('timeout')

        with self.assertRaises(GatewayUnavailable) as ctx:
            PaymentReconciliationService.initialize(payer=self.buyer, amount='250', plan='premium')

        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(Payment.objects.count(), 0)

    @patch('payments.services.paystack.initialize_transaction')
    def test_rejects_bad_input_before_gateway(self, mock_init):
        with self.assertRaises(PaymentError):
            PaymentReconciliationService.initialize(payer=self.buyer, amount='0', plan='premium')
        with self.assertRaises(PaymentError):
            PaymentReconciliationService.initialize(payer=self.buyer, amount='10', currency='USD', plan='premium')
        with self.assertRaises(UnknownPlan):
            PaymentReconciliationService.initialize(payer=self.buyer, amount='10', plan='gold')
        with self.assertRaises(PaymentError):
            PaymentReconciliationService.initialize(payer=self.buyer, amount='10')
        with self.assertRaises(PermissionDenied):
            PaymentReconciliationService.initialize(payer=self.seller, amount='10', order=self.order)

        mock_init.assert_not_called()

    @patch('payments.services.paystack.initialize_transaction')
    def test_order_payment_must_cover_order_total(self, mock_init):
        with self.assertRaises(PaymentError):
            PaymentReconciliationService.initialize(payer=self.buyer, amount='0.01', order=self.order)
        with self.assertRaises(PaymentError):
            PaymentReconciliationService.initialize(payer=self.buyer, amount='250.00', order=self.order)

        mock_init.assert_not_called()
        self.assertEqual(Payment.objects.count(), 0)

    @patch('payments.services.paystack.initialize_transaction')
    def test_cancelled_order_cannot_be_paid(self, mock_init):
        OrderLifecycleService.cancel(self.order, self.buyer)

        with self.assertRaises(PaymentError):
            PaymentReconciliationService.initialize(payer=self.buyer, amount='200.00', order=self.order)

        mock_init.assert_not_called()

    @patch('payments.services.paystack.initialize_transaction')
    def test_refunded_order_cannot_be_paid(self, mock_init):
        staff = User.objects.create_user(
            username='staff',
            email='staff@example.com',
            password='testpass123',
            is_staff=True
        )
        OrderLifecycleService.update_payment_status(self.order, 'paid', 'CS_1_abc')
        OrderLifecycleService.refund(self.order, staff)

        with self.assertRaises(PaymentError):
            PaymentReconciliationService.initialize(payer=self.buyer, amount='200.00', order=self.order)

        mock_init.assert_not_called()
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'refunded')


class PaymentVerifyTests(PaymentTestMixin, TestCase):
    def setUp(self):
        self.make_users()

    @patch('payments.services.paystack.verify_transaction')
    def test_verify_success_grants_credit_once(self, mock_verify):
        payment = self.make_payment(amount='250.00', plan='premium')
        mock_verify.return_value = gateway_verify_response('success', 25000)

        result = PaymentReconciliationService.verify(payment.reference)
        self.assertEqual(result.status, 'success')
        self.assertIsNotNone(result.paid_at)
        self.assertEqual(self.credits(self.buyer), 1)

        again = PaymentReconciliationService.verify(payment.reference)
        self.assertEqual(again.status, 'success')
        self.assertEqual(self.credits(self.buyer), 1)
        self.assertEqual(mock_verify.call_count, 1)

    @patch('payments.services.paystack.verify_transaction')
    def test_bundle_grants_three_credits(self, mock_verify):
        payment = self.make_payment(amount='600.00', plan='bundle')
        mock_verify.return_value = gateway_verify_response('success', 60000)

        PaymentReconciliationService.verify(payment.reference)

        self.assertEqual(self.credits(self.buyer), 3)

    @patch('payments.services.paystack.verify_transaction')
    def test_order_payment_marks_order_paid(self, mock_verify):
        payment = self.make_payment(amount='200.00', plan=None, order=self.order)
        mock_verify.return_value = gateway_verify_response('success', 20000)

        PaymentReconciliationService.verify(payment.reference)

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'paid')
        self.assertEqual(self.order.payment_reference, payment.reference)
        self.assertEqual(self.order.status, 'pending')
        self.assertEqual(len(self.order.timeline), 1)
        self.assertTrue(Notification.objects.filter(user=self.seller, category='payment').exists())

    @patch('payments.services.paystack.verify_transaction')
    def test_hostel_payment_requests_booking(self, mock_verify):
        payment = self.make_payment(amount='900.00', plan='hostel')
        mock_verify.return_value = gateway_verify_response('success', 90000)

        with patch('payments.services.fanout.hostel_booking_requested.send') as mock_send:
            PaymentReconciliationService.verify(payment.reference)

        mock_send.assert_called_once()
        self.assertEqual(mock_send.call_args.kwargs['payment'].pk, payment.pk)

    @patch('payments.services.paystack.verify_transaction')
    def test_failed_charge(self, mock_verify):
        payment = self.make_payment(amount='200.00', plan=None, order=self.order)
        mock_verify.return_value = gateway_verify_response('failed', 20000)

        result = PaymentReconciliationService.verify(payment.reference)

        self.assertEqual(result.status, 'failed')
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'pending')

    @patch('payments.services.paystack.verify_transaction')
    def test_ongoing_charge_stays_pending(self, mock_verify):
        payment = self.make_payment()
        mock_verify.return_value = gateway_verify_response('ongoing', 25000)

        result = PaymentReconciliationService.verify(payment.reference)

        self.assertEqual(result.status, 'pending')
        self.assertEqual(self.credits(self.buyer), 0)

    @patch('payments.services.paystack.verify_transaction')
    def test_abandoned_charge_fails(self, mock_verify):
        payment = self.make_payment()
        mock_verify.return_value = gateway_verify_response('abandoned', 25000)

        result = PaymentReconciliationService.verify(payment.reference)

        self.assertEqual(result.status, 'failed')
        self.assertEqual(self.credits(self.buyer), 0)

    @patch('payments.services.paystack.verify_transaction')
    def test_amount_mismatch_fails_payment(self, mock_verify):
        payment = self.make_payment(amount='250.00')
        mock_verify.return_value = gateway_verify_response('success', 100)

        result = PaymentReconciliationService.verify(payment.reference)

        self.assertEqual(result.status, 'failed')
        self.assertEqual(self.credits(self.buyer), 0)

    @patch('payments.services.paystack.verify_transaction')
    def test_gateway_error_leaves_payment_pending(self, mock_verify):
        payment = self.make_payment()
        mock_verify.side_effect = paystack.PaystackError('timeout')

        with self.assertRaises(VerificationFailed) as ctx:
            PaymentReconciliationService.verify(payment.reference)

        self.assertEqual(ctx.exception.status_code, 502)
        payment.refresh_from_db()
        self.assertEqual(payment.status, 'pending')

    @patch('payments.services.paystack.verify_transaction')
    def test_unknown_plan_rolls_back(self, mock_verify):
        payment = self.make_payment(plan='gold')
        mock_verify.return_value = gateway_verify_response('success', 25000)

        with self.assertRaises(UnknownPlan):
            PaymentReconciliationService.verify(payment.reference)

        self.assertEqual(Payment.objects.get(pk=payment.pk).status, 'pending')

    @patch('payments.services.paystack.verify_transaction')
    def test_underpaid_order_payment_is_not_settled(self, mock_verify):
        payment = self.make_payment(amount='0.01', plan=None, order=self.order)
        mock_verify.return_value = gateway_verify_response('success', 1)

        result = PaymentReconciliationService.verify(payment.reference)

        self.assertEqual(result.status, 'failed')
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'pending')
        self.assertIsNone(self.order.payment_reference)

    def test_settle_order_refuses_short_payment(self):
        payment = self.make_payment(amount='0.01', plan=None, order=self.order)

        with self.assertRaises(PaymentError):
            settle_order(payment)

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'pending')

    @patch('payments.services.paystack.verify_transaction')
    def test_non_numeric_charge_amount(self, mock_verify):
        payment = self.make_payment(amount='250.00')
        mock_verify.return_value = gateway_verify_response('success', 'lots')

        with self.assertRaises(VerificationFailed):
            PaymentReconciliationService.verify(payment.reference)

        payment.refresh_from_db()
        self.assertEqual(payment.status, 'pending')
        self.assertEqual(self.credits(self.buyer), 0)

    def test_verify_unknown_reference(self):
        with self.assertRaises(PaymentNotFound):
            PaymentReconciliationService.verify('CS_0_missing')


class ReconcileSweepTests(PaymentTestMixin, TestCase):
    def setUp(self):
        self.make_users()
        self.stale = self.make_payment(amount='250.00')
        self.fresh = self.make_payment(amount='250.00')
        Payment.objects.filter(pk=self.stale.pk).update(created_at=timezone.now() - timedelta(minutes=30))

    @patch('payments.services.paystack.verify_transaction')
    def test_sweep_only_checks_stale_payments(self, mock_verify):
        mock_verify.return_value = gateway_verify_response('success', 25000)

        result = PaymentReconciliationService.reconcile_pending()

        self.assertEqual(result['checked'], 1)
        self.assertEqual(result['succeeded'], 1)
        mock_verify.assert_called_once_with(self.stale.reference)
        self.fresh.refresh_from_db()
        self.assertEqual(self.fresh.status, 'pending')

    @patch('payments.services.paystack.verify_transaction')
    def test_sweep_counts_errors(self, mock_verify):
        mock_verify.side_effect = paystack.PaystackError('down')

        result = PaymentReconciliationService.reconcile_pending()

        self.assertEqual(result['errors'], 1)
        self.assertEqual(result['succeeded'], 0)

    @patch('payments.services.paystack.verify_transaction')
    def test_celery_task(self, mock_verify):
        mock_verify.return_value = gateway_verify_response('failed', 25000)

        result = reconcile_pending_payments(older_than_minutes=0)

        self.assertEqual(result['checked'], 2)
        self.assertEqual(result['failed'], 2)

    @patch('payments.services.paystack.verify_transaction')
    def test_management_command(self, mock_verify):
        mock_verify.return_value = gateway_verify_response('success', 25000)
        out = StringIO()

        call_command('reconcile_payments', stdout=out)

        self.assertIn('1 succeeded', out.getvalue())
        self.assertEqual(self.credits(self.buyer), 1)


class PaymentAPITests(PaymentTestMixin, APITestCase):
    def setUp(self):
        self.make_users()

    @patch('payments.services.paystack.initialize_transaction')
    def test_initialize_endpoint(self, mock_init):
        mock_init.side_effect = lambda **kw: gateway_init_response(kw['reference'])
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(
            reverse('payment-initialize'),
            {'amount': '200.00', 'order_id': self.order.pk},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        payment = Payment.objects.get(reference=response.data['reference'])
        self.assertEqual(response.data['authorization_url'], payment.authorization_url)
        self.assertEqual(payment.order, self.order)

    @patch('payments.services.paystack.initialize_transaction')
    def test_initialize_endpoint_rejects_other_users_order(self, mock_init):
        self.client.force_authenticate(user=self.seller)

        response = self.client.post(
            reverse('payment-initialize'),
            {'amount': '200.00', 'order_id': self.order.pk},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        mock_init.assert_not_called()

    @patch('payments.services.paystack.initialize_transaction')
    def test_initialize_endpoint_gateway_down(self, mock_init):
        mock_init.side_effect = paystack.PaystackError('down')
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(
            reverse('payment-initialize'),
            {'amount': '250.00', 'plan': 'premium'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    @patch('payments.services.paystack.verify_transaction')
    def test_verify_endpoint(self, mock_verify):
        payment = self.make_payment(amount='250.00')
        mock_verify.return_value = gateway_verify_response('success', 25000)
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(reverse('payment-verify'), {'reference': payment.reference}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['ok'])
        self.assertEqual(response.data['payment']['status'], 'success')

    def test_list_shows_only_own_payments(self):
        self.make_payment()
        Payment.objects.create(
            user=self.seller,
            reference=generate_reference(),
            amount=Decimal('250.00'),
            plan='premium'
        )
        self.client.force_authenticate(user=self.buyer)

        response = self.client.get(reverse('payment-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_detail_forbidden_for_other_user(self):
        payment = self.make_payment()
        self.client.force_authenticate(user=self.seller)

        response = self.client.get(reverse('payment-detail', args=[payment.pk]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
