"""
Django admin configuration for messaging models.

Provides admin interfaces for:
- Message moderation (with recipients and receipts inline)
- Unread ledger inspection
- Event chat groups and their messages
"""

from django.contrib import admin

from messaging.models import (
    EventChatGroup,
    EventChatMessage,
    Message,
    MessageRecipient,
    ReadReceipt,
    UnreadLedgerEntry,
)


class MessageRecipientInline(admin.TabularInline):
    """Inline display of recipients in message admin."""

    model = MessageRecipient
    extra = 0
    raw_id_fields = ["recipient"]
    ordering = ["position"]


class ReadReceiptInline(admin.TabularInline):
    """Inline display of read receipts in message admin."""

    model = ReadReceipt
    extra = 0
    raw_id_fields = ["reader"]
    readonly_fields = ["read_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = ["id", "sender", "kind", "created_at"]
    list_filter = ["kind", "created_at"]
    search_fields = ["text", "sender__email"]
    raw_id_fields = ["sender"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [MessageRecipientInline, ReadReceiptInline]
    ordering = ["-created_at"]


@admin.register(UnreadLedgerEntry)
class UnreadLedgerEntryAdmin(admin.ModelAdmin):
    """
    Admin interface for the unread ledger.

    Read-only: counters are repaired with the reconcile task, not by hand.
    """

    list_display = ["owner", "counterpart", "unread_count", "last_message_at"]
    search_fields = ["owner__email", "counterpart__email"]
    raw_id_fields = ["owner", "counterpart"]
    readonly_fields = ["unread_count", "last_message_at", "created_at", "updated_at"]


class EventChatMessageInline(admin.TabularInline):
    model = EventChatMessage
    extra = 0
    fields = ["sequence", "sender", "text", "media_url", "created_at"]
    readonly_fields = ["sequence", "created_at"]
    raw_id_fields = ["sender"]
    ordering = ["-sequence"]


@admin.register(EventChatGroup)
class EventChatGroupAdmin(admin.ModelAdmin):
    """Admin interface for EventChatGroup model."""

    list_display = ["id", "event", "version", "last_message_at"]
    search_fields = ["event__title"]
    raw_id_fields = ["event"]
    filter_horizontal = ["members"]
    readonly_fields = ["version", "last_message_at", "created_at", "updated_at"]
    inlines = [EventChatMessageInline]
