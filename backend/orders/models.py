from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class OrderQuerySet(models.QuerySet):
    def for_buyer(self, user):
        return self.filter(buyer=user)

    def for_seller(self, user):
        return self.filter(seller=user)

    def for_party(self, user):
        return self.filter(models.Q(buyer=user) | models.Q(seller=user))


class ActiveOrderManager(models.Manager.from_queryset(OrderQuerySet)):
    """Hides soft-deleted orders"""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class Order(models.Model):
    """A purchase of a catalog item by a buyer from a seller.

    ``status`` and ``payment_status`` are independent axes. Status only
    moves along ``ALLOWED_TRANSITIONS`` (see ``orders.services``) and every
    move appends one entry to ``timeline``.
    """

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('confirmed', 'Confirmed'),
        ('shipped', 'Shipped'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
        ('refunded', 'Refunded'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    ]

    ALLOWED_TRANSITIONS = {
        'pending': ('confirmed', 'cancelled'),
        'confirmed': ('shipped', 'cancelled'),
        'shipped': ('delivered',),
        'delivered': (),
        'cancelled': (),
        'refunded': (),
    }

    # Roles allowed to move an order into a given status
    TRANSITION_ROLES = {
        'confirmed': ('seller',),
        'shipped': ('seller',),
        'delivered': ('buyer',),
        'cancelled': ('buyer', 'seller'),
    }

    TERMINAL_STATUSES = ('delivered', 'cancelled', 'refunded')

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='purchases'
    )
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='sales'
    )
    item = models.ForeignKey(
        'listings.Item',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )

    # Snapshot of the item at purchase time, never re-derived
    item_title = models.CharField(max_length=200)
    item_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending')
    payment_reference = models.CharField(max_length=100, null=True, blank=True)

    shipping_address = models.TextField()
    notes = models.TextField(blank=True, default="")

    # [{"status": ..., "timestamp": ISO-8601, "note": ...}, ...]
    timeline = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = ActiveOrderManager()
    all_objects = models.Manager.from_queryset(OrderQuerySet)()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['buyer', 'status'], name='order_buyer_status_idx'),
            models.Index(fields=['seller', 'status'], name='order_seller_status_idx'),
            models.Index(fields=['payment_status'], name='order_payment_status_idx'),
        ]

    def __str__(self):
        return f"Order #{self.pk} {self.item_title} ({self.status}/{self.payment_status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def is_paid(self):
        return self.payment_status == 'paid'

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def allowed_next_statuses(self):
        return self.ALLOWED_TRANSITIONS.get(self.status, ())

    def roles_of(self, user):
        """Parties the given user plays in this order"""
        roles = set()
        if user is None:
            return roles
        if self.buyer_id == user.pk:
            roles.add('buyer')
        if self.seller_id == user.pk:
            roles.add('seller')
        return roles

    def soft_delete(self):
        """Remove from default queries, keep the row for audit"""
        if self.deleted_at is None:
            self.deleted_at = timezone.now()
            self.save(update_fields=['deleted_at', 'updated_at'])
