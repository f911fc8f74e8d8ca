from django.db import models
from django.conf import settings


class Notification(models.Model):
    """In-app message for a buyer or seller about their orders and payments"""

    CATEGORY_CHOICES = [
        ("order", "Order"),
        ("payment", "Payment"),
        ("system", "System"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    category = models.CharField(max_length=16, choices=CATEGORY_CHOICES, default="system")
    message = models.TextField()
    # frontend route, e.g. /orders/12
    url = models.CharField(max_length=255, blank=True, default="")
    is_read = models.BooleanField(default=False)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"[{self.category}] {self.message[:60]}"
