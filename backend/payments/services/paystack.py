# payments/services/paystack.py
import hashlib
import hmac
from decimal import Decimal, ROUND_HALF_UP
from urllib.parse import quote

import requests
from requests import RequestException
from django.conf import settings


class PaystackError(Exception):
    pass


def to_minor_units(amount) -> int:
    """GHS 12.34 -> 1234 pesewas, rounded half-up to a whole unit"""
    try:
        value = Decimal(str(amount))
    except ArithmeticError as e:
        raise PaystackError(f"Invalid amount value: {amount!r}") from e
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _headers() -> dict:
    if not settings.PAYSTACK_SECRET_KEY:
        raise PaystackError("Missing PAYSTACK_SECRET_KEY")
    return {
        "Authorization": f"Bearer {settings.PAYSTACK_SECRET_KEY}",
        "Content-Type": "application/json",
    }


def _request(method: str, path: str, **kwargs) -> dict:
    url = f"{settings.PAYSTACK_BASE_URL.rstrip('/')}{path}"
    try:
        resp = requests.request(
            method,
            url,
            headers=_headers(),
            timeout=settings.PAYSTACK_TIMEOUT,
            **kwargs,
        )
    except RequestException as e:
        raise PaystackError(f"Gateway request failed: {e}") from e

    try:
        data = resp.json()
    except ValueError as e:
        raise PaystackError(f"Gateway returned a non-JSON response (HTTP {resp.status_code})") from e

    if resp.status_code >= 400 or not isinstance(data, dict) or not data.get("status"):
        message = data.get("message") if isinstance(data, dict) else None
        raise PaystackError(f"HTTP {resp.status_code}: {message or 'request rejected'}")
    return data


def initialize_transaction(*, amount, email, reference, callback_url=None, currency=None, metadata=None) -> dict:
    """
    POST /transaction/initialize
    Returns the full gateway body; ``data`` holds authorization_url, access_code, reference.
    """
    payload = {
        "amount": to_minor_units(amount),
        "email": email,
        "reference": reference,
        "currency": currency or settings.PAYSTACK_CURRENCY,
        "callback_url": callback_url or settings.PAYSTACK_CALLBACK_URL,
        "metadata": metadata or {},
    }
    data = _request("POST", "/transaction/initialize", json=payload)
    body = data.get("data") or {}
    if not body.get("authorization_url"):
        raise PaystackError("Initialize response has no authorization_url")
    return data


def verify_transaction(reference: str) -> dict:
    """
    GET /transaction/verify/<reference>
    ``data.status`` is the authoritative charge status.
    """
    return _request("GET", f"/transaction/verify/{quote(reference, safe='')}")


def compute_signature(raw_body: bytes) -> str:
    return hmac.new(
        settings.PAYSTACK_SECRET_KEY.encode("utf-8"),
        raw_body,
        hashlib.sha512,
    ).hexdigest()


def is_valid_signature(raw_body: bytes, signature: str) -> bool:
    """Check X-Paystack-Signature against the exact bytes received"""
    if not signature or not settings.PAYSTACK_SECRET_KEY:
        return False
    expected = compute_signature(raw_body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().lower().encode("utf-8"))
