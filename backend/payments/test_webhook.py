import json
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from listings.models import Item
from notifications.models import Notification
from orders.services import OrderService
from users.models import Entitlement
from .models import Payment
from .services import generate_reference
from .services.paystack import compute_signature

User = get_user_model()


class PaystackWebhookTests(TestCase):
    def setUp(self):
        self.url = reverse("paystack-webhook")
        self.buyer = User.objects.create_user(username="buyer", email="buyer@example.com", password="testpass123")
        self.seller = User.objects.create_user(username="seller", email="seller@example.com", password="testpass123")
        self.payment = Payment.objects.create(
            user=self.buyer,
            reference=generate_reference(),
            amount=Decimal("250.00"),
            plan="premium",
        )

    def _post(self, payload, signature=None):
        body = json.dumps(payload)
        if signature is None:
            signature = compute_signature(body.encode("utf-8"))
        return self.client.post(
            self.url,
            data=body,
            content_type="application/json",
            HTTP_X_PAYSTACK_SIGNATURE=signature,
        )

    def _charge(self, event="charge.success", reference=None, amount=25000):
        return {
            "event": event,
            "data": {
                "reference": reference or self.payment.reference,
                "amount": amount,
                "currency": "GHS",
                "status": "success" if event == "charge.success" else "failed",
            },
        }

    def credits(self):
        return Entitlement.objects.get(user=self.buyer).premium_credits

    def test_signed_charge_success(self):
        resp = self._post(self._charge())

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "success")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, "success")
        self.assertEqual(self.credits(), 1)

    def test_duplicate_delivery_grants_once(self):
        first = self._post(self._charge())
        second = self._post(self._charge())

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(self.credits(), 1)
        self.assertEqual(Notification.objects.filter(user=self.buyer, category="payment").count(), 1)

    def test_tampered_body_rejected(self):
        payload = self._charge()
        signature = compute_signature(json.dumps(payload).encode("utf-8"))
        payload["data"]["amount"] = 1

        resp = self._post(payload, signature=signature)

        self.assertEqual(resp.status_code, 400)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, "pending")
        self.assertEqual(self.credits(), 0)

    def test_missing_signature_rejected(self):
        resp = self.client.post(self.url, data=json.dumps(self._charge()), content_type="application/json")

        self.assertEqual(resp.status_code, 400)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, "pending")

    def test_unhandled_event_acknowledged(self):
        resp = self._post({"event": "transfer.success", "data": {"reference": "TRF_1"}})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ignored")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, "pending")

    def test_unknown_reference_acknowledged(self):
        resp = self._post(self._charge(reference="CS_0_unknown"))

        self.assertEqual(resp.status_code, 202)

    def test_charge_failed_leaves_order_unpaid(self):
        item = Item.objects.create(title="Chair", price=Decimal("125.00"), seller=self.seller)
        order = OrderService.create_order(buyer=self.buyer, item=item, quantity=2, shipping_address="Hall 3")
        payment = Payment.objects.create(
            user=self.buyer,
            order=order,
            reference=generate_reference(),
            amount=Decimal("250.00"),
        )

        resp = self._post(self._charge(event="charge.failed", reference=payment.reference))

        self.assertEqual(resp.status_code, 200)
        payment.refresh_from_db()
        order.refresh_from_db()
        self.assertEqual(payment.status, "failed")
        self.assertEqual(order.payment_status, "pending")

    def test_order_payment_marks_order_paid(self):
        item = Item.objects.create(title="Chair", price=Decimal("125.00"), seller=self.seller)
        order = OrderService.create_order(buyer=self.buyer, item=item, quantity=2, shipping_address="Hall 3")
        payment = Payment.objects.create(
            user=self.buyer,
            order=order,
            reference=generate_reference(),
            amount=order.total_amount,
        )

        resp = self._post(self._charge(reference=payment.reference))

        self.assertEqual(resp.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, "paid")
        self.assertEqual(order.payment_reference, payment.reference)

    def test_amount_mismatch_fails_payment(self):
        resp = self._post(self._charge(amount=100))

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "failed")
        self.assertEqual(self.credits(), 0)

    def test_get_not_allowed(self):
        resp = self.client.get(self.url)

        self.assertEqual(resp.status_code, 405)

    def test_non_numeric_amount_leaves_payment_pending(self):
        resp = self._post(self._charge(amount="250.00 GHS"))

        self.assertEqual(resp.status_code, 502)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, "pending")
        self.assertEqual(self.credits(), 0)

    def test_underpaid_order_is_not_marked_paid(self):
        item = Item.objects.create(title="Chair", price=Decimal("100.00"), seller=self.seller)
        order = OrderService.create_order(buyer=self.buyer, item=item, quantity=2, shipping_address="Hall 3")
        payment = Payment.objects.create(
            user=self.buyer,
            order=order,
            reference=generate_reference(),
            amount=Decimal("0.01"),
        )

        resp = self._post(self._charge(reference=payment.reference, amount=1))

        self.assertEqual(resp.json()["status"], "failed")
        order.refresh_from_db()
        self.assertEqual(order.payment_status, "pending")
