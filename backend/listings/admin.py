from django.contrib import admin
from .models import Item


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ["title", "seller", "price", "status", "is_available", "is_premium", "created_at"]
    list_filter = ["status", "is_available", "is_premium", "condition"]
    search_fields = ["title", "description", "seller__username"]
