from django.db.models import F

from .models import Entitlement


class EntitlementService:
    """Atomic updates of a user's purchased credits"""

    @staticmethod
    def get_for_user(user) -> Entitlement:
        entitlement, _ = Entitlement.objects.get_or_create(user=user)
        return entitlement

    @staticmethod
    def grant_premium_credits(user, amount: int) -> Entitlement:
        """Add ``amount`` premium credits with a single UPDATE statement"""
        if amount <= 0:
            raise ValueError("Credit grant must be positive")

        Entitlement.objects.get_or_create(user=user)
        Entitlement.objects.filter(user=user).update(
            premium_credits=F("premium_credits") + amount
        )
        return Entitlement.objects.get(user=user)
