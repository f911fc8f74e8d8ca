from django.http import JsonResponse
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.utils import timezone

from listings.models import Item
from orders.models import Order
from payments.models import Payment

User = get_user_model()


def api_root(request):
    """API root endpoint with system overview"""

    stats = {
        'total_users': User.objects.count(),
        'available_items': Item.objects.filter(is_available=True, status='available').count(),
        'open_orders': Order.objects.exclude(status__in=Order.TERMINAL_STATUSES).count(),
        'pending_payments': Payment.objects.filter(status='pending').count(),
    }

    endpoints = {
        'authentication': {
            'register': '/api-auth-djoser/users/',
            'login': '/api-auth-djoser/token/login/',
            'logout': '/api-auth-djoser/token/logout/',
        },
        'core_features': {
            'me': '/api/users/me/',
            'orders': '/api/orders/',
            'payments': '/api/payments/',
            'paystack_webhook': '/api/webhooks/paystack/',
        },
        'admin': {
            'admin_panel': '/admin/',
        }
    }

    system_info = {
        'version': '1.0.0',
        'environment': 'development' if settings.DEBUG else 'production',
        'debug_mode': settings.DEBUG,
        'timezone': str(settings.TIME_ZONE),
        'currency': settings.PAYSTACK_CURRENCY,
    }

    return JsonResponse({
        'message': 'Welcome to the Campus Marketplace API',
        'status': 'operational',
        'timestamp': timezone.now().isoformat(),
        'statistics': stats,
        'endpoints': endpoints,
        'system': system_info,
    })


def health_check(request):
    """Health check endpoint for monitoring"""

    try:
        # Test database connection
        user_count = User.objects.count()
    except DatabaseError as e:
        return JsonResponse({
            'status': 'unhealthy',
            'timestamp': timezone.now().isoformat(),
            'error': str(e),
        }, status=503)

    return JsonResponse({
        'status': 'healthy',
        'timestamp': timezone.now().isoformat(),
        'database': 'connected',
        'user_count': user_count,
    })
