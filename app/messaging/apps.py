"""
Messaging application configuration.

This app provides the realtime messaging core:
- Direct and group messages with read receipts
- Per-counterpart unread counters
- Event chat groups with ordered broadcasts
- WebSocket push through Django Channels
"""

from django.apps import AppConfig


class MessagingConfig(AppConfig):
    """
    Configuration for the messaging application.

    Owns the process's MessagingRuntime (room registry + push transport).
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "messaging"
    verbose_name = "Messaging"

    def ready(self):
        from messaging import signals  # noqa: F401
        from messaging.realtime.runtime import MessagingRuntime

        self.runtime = MessagingRuntime()
        self.runtime.start()
