from django.conf import settings
from django.db import models


class PaymentPlan(models.TextChoices):
    """What a payment buys. A payment without a plan pays for an order."""
    PREMIUM = "premium", "Premium listing credit"
    BUNDLE = "bundle", "Premium credit bundle"
    HOSTEL = "hostel", "Hostel booking"


class Payment(models.Model):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("success", "Success"),
        ("failed", "Failed"),
        ("cancelled", "Cancelled"),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payments")
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
    )

    # gateway reference, also the idempotency key for reconciliation
    reference = models.CharField(max_length=100, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=5, default="GHS")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    plan = models.CharField(max_length=20, choices=PaymentPlan.choices, null=True, blank=True)
    description = models.CharField(max_length=255, blank=True, default="")

    authorization_url = models.URLField(max_length=500, blank=True, default="")
    access_code = models.CharField(max_length=100, blank=True, default="")
    # last raw gateway payload, kept for audit
    gateway_response = models.JSONField(default=dict, blank=True)

    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
        ]

    def __str__(self):
        return f"{self.reference} {self.status} {self.amount} {self.currency}"

    @property
    def is_pending(self):
        return self.status == "pending"

    @property
    def is_successful(self):
        return self.status == "success"

    @property
    def is_order_payment(self):
        return self.order_id is not None
