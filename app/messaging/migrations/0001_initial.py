"""
Create messages, recipients, read receipts, the unread ledger and event chat groups.
"""

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def big_id():
    return (
        "id",
        models.BigAutoField(
            auto_created=True,
            primary_key=True,
            serialize=False,
            verbose_name="ID",
        ),
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("events", "0001_initial"),
    ]

    operations = [
        # =====================================================================
        # Messages
        # =====================================================================
        migrations.CreateModel(
            name="Message",
            fields=[
                big_id(),
                *timestamps(),
                ("text", models.TextField(help_text="Message body")),
                (
                    "kind",
                    models.CharField(
                        choices=[("direct", "Direct"), ("group", "Group")],
                        default="direct",
                        help_text="direct (one recipient) or group (several recipients)",
                        max_length=10,
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sent_messages",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User who sent this message",
                    ),
                ),
            ],
            options={
                "db_table": "messaging_message",
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="MessageRecipient",
            fields=[
                big_id(),
                (
                    "position",
                    models.PositiveIntegerField(
                        help_text="Zero-based position in the sender's recipient list",
                    ),
                ),
                (
                    "message",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="recipient_links",
                        to="messaging.message",
                        help_text="Message this recipient row belongs to",
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="message_links",
                        to=settings.AUTH_USER_MODEL,
                        help_text="Recipient user",
                    ),
                ),
            ],
            options={
                "db_table": "messaging_message_recipient",
                "ordering": ["message", "position"],
            },
        ),
        migrations.AddField(
            model_name="message",
            name="recipients",
            field=models.ManyToManyField(
                help_text="Users this message was addressed to",
                related_name="received_messages",
                through="messaging.MessageRecipient",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
        migrations.AddIndex(
            model_name="message",
            index=models.Index(fields=["sender", "created_at"], name="msg_sender_created_idx"),
        ),
        migrations.AddConstraint(
            model_name="messagerecipient",
            constraint=models.UniqueConstraint(
                fields=("message", "recipient"),
                name="unique_message_recipient",
            ),
        ),
        migrations.AddIndex(
            model_name="messagerecipient",
            index=models.Index(fields=["recipient", "message"], name="msg_recipient_lookup_idx"),
        ),
        # =====================================================================
        # Read receipts
        # =====================================================================
        migrations.CreateModel(
            name="ReadReceipt",
            fields=[
                big_id(),
                (
                    "read_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the message was read",
                    ),
                ),
                (
                    "message",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="receipts",
                        to="messaging.message",
                        help_text="Message that was read",
                    ),
                ),
                (
                    "reader",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="read_receipts",
                        to=settings.AUTH_USER_MODEL,
                        help_text="Recipient who read the message",
                    ),
                ),
            ],
            options={
                "db_table": "messaging_read_receipt",
                "ordering": ["read_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("message", "reader"),
                        name="unique_message_reader_receipt",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Unread ledger
        # =====================================================================
        migrations.CreateModel(
            name="UnreadLedgerEntry",
            fields=[
                big_id(),
                *timestamps(),
                (
                    "unread_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Unread messages from counterpart",
                    ),
                ),
                (
                    "last_message_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="When counterpart last sent owner a message",
                    ),
                ),
                (
                    "counterpart",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User whose messages are being counted",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="unread_entries",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User whose unread count this is",
                    ),
                ),
            ],
            options={
                "db_table": "messaging_unread_ledger",
                "ordering": ["-last_message_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("owner", "counterpart"),
                        name="unique_ledger_owner_counterpart",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(unread_count__gte=0),
                        name="ledger_unread_count_non_negative",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Event chat
        # =====================================================================
        migrations.CreateModel(
            name="EventChatGroup",
            fields=[
                big_id(),
                *timestamps(),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Append counter used for optimistic concurrency",
                    ),
                ),
                (
                    "last_message_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="When the latest message was appended",
                    ),
                ),
                (
                    "event",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chat_group",
                        to="events.event",
                        help_text="Event this chat group belongs to",
                    ),
                ),
                (
                    "members",
                    models.ManyToManyField(
                        blank=True,
                        related_name="event_chat_groups",
                        to=settings.AUTH_USER_MODEL,
                        help_text="Users who can read and post in this group",
                    ),
                ),
            ],
            options={
                "db_table": "messaging_event_chat_group",
                "ordering": ["-last_message_at"],
            },
        ),
        migrations.CreateModel(
            name="EventChatMessage",
            fields=[
                big_id(),
                *timestamps(),
                ("text", models.TextField(blank=True, help_text="Message body")),
                (
                    "media_url",
                    models.CharField(
                        blank=True,
                        help_text="Optional link to attached media",
                        max_length=2048,
                    ),
                ),
                (
                    "sequence",
                    models.PositiveIntegerField(help_text="Append order within the group"),
                ),
                (
                    "group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="messaging.eventchatgroup",
                        help_text="Chat group this message belongs to",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="event_chat_messages",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User who broadcast this message",
                    ),
                ),
                (
                    "recipients",
                    models.ManyToManyField(
                        related_name="event_chat_inbox",
                        to=settings.AUTH_USER_MODEL,
                        help_text="Members this broadcast targeted",
                    ),
                ),
            ],
            options={
                "db_table": "messaging_event_chat_message",
                "ordering": ["group", "sequence"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("group", "sequence"),
                        name="unique_event_chat_sequence",
                    ),
                ],
            },
        ),
    ]
