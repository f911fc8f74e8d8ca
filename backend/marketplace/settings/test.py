from .base import *

DEBUG = False

SECRET_KEY = "test-secret-key"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

ALLOWED_HOSTS = ["testserver"]

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

PAYSTACK_SECRET_KEY = "sk_test_marketplace"
PAYSTACK_BASE_URL = "https://paystack.test"
PAYSTACK_CALLBACK_URL = "https://marketplace.test/payment/callback"
PAYSTACK_TIMEOUT = 5

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

LOGGING["loggers"]["orders"]["level"] = "CRITICAL"
LOGGING["loggers"]["payments"]["level"] = "CRITICAL"
