from django.urls import path
from . import views

urlpatterns = [
    path('', views.OrderListCreateView.as_view(), name='order-list'),
    path('<int:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('<int:pk>/status/', views.update_order_status, name='order-status'),
    path('<int:pk>/confirm/', views.confirm_order, name='order-confirm'),
    path('<int:pk>/ship/', views.ship_order, name='order-ship'),
    path('<int:pk>/deliver/', views.deliver_order, name='order-deliver'),
    path('<int:pk>/cancel/', views.cancel_order, name='order-cancel'),
    path('<int:pk>/refund/', views.refund_order, name='order-refund'),
]
