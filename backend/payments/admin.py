from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "reference", "user", "order", "plan", "amount", "currency", "status", "paid_at", "created_at")
    list_filter = ("status", "plan", "currency", "created_at")
    search_fields = ("reference", "user__username", "user__email")
    # status is owned by reconciliation
    readonly_fields = ("reference", "status", "paid_at", "gateway_response", "created_at", "updated_at")
