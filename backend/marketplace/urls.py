from django.contrib import admin
from django.urls import path, include

from payments.views import paystack_webhook
from . import views

urlpatterns = [
    path("", views.api_root, name="api-root"),
    path("health/", views.health_check, name="health-check"),

    # Admin
    path("admin/", admin.site.urls),

    # Authentication (Djoser)
    path("api-auth-djoser/", include("djoser.urls")),
    path("api-auth-djoser/", include("djoser.urls.authtoken")),

    # Core API endpoints
    path("api/users/", include("users.api.urls")),
    path("api/orders/", include("orders.api.urls")),
    path("api/payments/", include("payments.api_urls")),

    # Gateway callbacks
    path("api/webhooks/paystack/", paystack_webhook, name="paystack-webhook"),
]

# Admin site customization
admin.site.site_header = "Campus Marketplace Admin"
admin.site.site_title = "Campus Marketplace Admin"
admin.site.index_title = "Welcome to Campus Marketplace Administration"
