from django.test import TestCase
from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status

from .models import Entitlement
from .services import EntitlementService

User = get_user_model()


class EntitlementServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username='student',
            email='student@example.com',
            password='testpass123'
        )

    def test_entitlement_created_with_user(self):
        entitlement = Entitlement.objects.get(user=self.user)
        self.assertEqual(entitlement.premium_credits, 0)

    def test_grant_premium_credits_accumulates(self):
        EntitlementService.grant_premium_credits(self.user, 1)
        entitlement = EntitlementService.grant_premium_credits(self.user, 3)

        self.assertEqual(entitlement.premium_credits, 4)

    def test_grant_recreates_missing_entitlement(self):
        Entitlement.objects.filter(user=self.user).delete()

        entitlement = EntitlementService.grant_premium_credits(self.user, 2)
        self.assertEqual(entitlement.premium_credits, 2)

    def test_grant_must_be_positive(self):
        with self.assertRaises(ValueError):
            EntitlementService.grant_premium_credits(self.user, 0)


class MeAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username='student',
            email='student@example.com',
            password='testpass123'
        )

    def test_requires_authentication(self):
        response = self.client.get(reverse('user-me'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_shows_credits(self):
        EntitlementService.grant_premium_credits(self.user, 3)
        self.client.force_authenticate(user=self.user)

        response = self.client.get(reverse('user-me'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'student')
        self.assertEqual(response.data['entitlement']['premium_credits'], 3)

    def test_update_phone(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.patch(reverse('user-me'), {'phone': '+233201234567'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.phone, '+233201234567')
