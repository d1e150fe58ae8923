"""
Tools Package
Outbound delivery for the PillWatch system
"""

from .email_client import (
    EmailClient,
    EmailResult,
    HttpEmailClient,
    LoggingEmailClient,
    get_email_client
)

from .push_client import (
    PushClient,
    WebhookPushClient,
    LoggingPushClient,
    get_push_client
)

from .notification_service import (
    NotificationService,
    NotificationChannel,
    NotificationResult,
    DispatchResult,
    NOTIFICATION_TEMPLATES
)

__all__ = [
    # Email
    "EmailClient",
    "EmailResult",
    "HttpEmailClient",
    "LoggingEmailClient",
    "get_email_client",

    # Push
    "PushClient",
    "WebhookPushClient",
    "LoggingPushClient",
    "get_push_client",

    # Notification Service
    "NotificationService",
    "NotificationChannel",
    "NotificationResult",
    "DispatchResult",
    "NOTIFICATION_TEMPLATES"
]
