from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=25, blank=True, default="")
    college_domain = models.CharField(max_length=100, blank=True, default="")

    def __str__(self):
        return self.username


class Entitlement(models.Model):
    """Purchased credits for a user.

    Counters are only ever changed through ``EntitlementService`` which
    issues ``F()`` increments, so concurrent grants never lose an update.
    """

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="entitlement")
    premium_credits = models.PositiveIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username}: {self.premium_credits} premium credits"
