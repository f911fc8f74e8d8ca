from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import User, Entitlement


@receiver(post_save, sender=User)
def create_user_entitlement(sender, instance, created, **kwargs):
    """Every user starts with an empty entitlement record"""
    if created:
        Entitlement.objects.get_or_create(user=instance)
