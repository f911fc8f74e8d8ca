from django.urls import path
from . import views

urlpatterns = [
    path("", views.PaymentListView.as_view(), name="payment-list"),
    path("<int:pk>/", views.PaymentDetailView.as_view(), name="payment-detail"),
    path("initialize/", views.initialize_payment, name="payment-initialize"),
    path("verify/", views.verify_payment, name="payment-verify"),
]
