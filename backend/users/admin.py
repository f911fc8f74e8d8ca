from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, Entitlement


class EntitlementInline(admin.StackedInline):
    model = Entitlement
    can_delete = False
    readonly_fields = ["premium_credits", "updated_at"]


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    inlines = [EntitlementInline]
    list_display = ["username", "email", "phone", "college_domain", "is_staff"]
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Campus", {"fields": ("phone", "college_domain")}),
    )


@admin.register(Entitlement)
class EntitlementAdmin(admin.ModelAdmin):
    list_display = ["user", "premium_credits", "updated_at"]
    search_fields = ["user__username", "user__email"]
    readonly_fields = ["premium_credits"]
