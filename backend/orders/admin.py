from django.contrib import admin

from .models import Order


@admin.action(description="Soft delete selected orders")
def soft_delete_orders(modeladmin, request, queryset):
    for order in queryset:
        order.soft_delete()


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'item_title', 'buyer', 'seller', 'quantity', 'total_amount',
        'status', 'payment_status', 'payment_reference', 'created_at', 'deleted_at'
    ]
    list_filter = ['status', 'payment_status', 'created_at']
    search_fields = ['item_title', 'payment_reference', 'buyer__username', 'seller__username']
    actions = [soft_delete_orders]
    # status changes go through OrderLifecycleService, never through the admin form
    readonly_fields = [
        'buyer', 'seller', 'item', 'item_title', 'item_price', 'quantity', 'total_amount',
        'status', 'payment_status', 'payment_reference', 'timeline',
        'created_at', 'updated_at', 'deleted_at'
    ]

    def get_queryset(self, request):
        return Order.all_objects.select_related('buyer', 'seller')
