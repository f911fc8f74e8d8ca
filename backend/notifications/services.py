from typing import Optional, Dict, Any

from .models import Notification


def notify(
    *,
    user,
    message: str,
    category: str = "system",
    url: str = "",
    metadata: Optional[Dict[str, Any]] = None,
) -> Notification:
    """
    Create and return a Notification in a single call.
    Used from order and payment signal receivers.
    """
    return Notification.objects.create(
        user=user,
        category=category,
        message=message,
        url=url or "",
        metadata=metadata or {},
    )
