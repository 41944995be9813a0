"""
Serializers for the messaging API.

Request serializers validate payload shape only; business rules (blank
text, unknown users, team membership) live in the services so HTTP and
WebSocket callers get the same error codes.

Response serializers describe the payloads built by messaging.dto for the
OpenAPI schema. Views return dto.to_payload() so HTTP responses and
realtime pushes share one shape.
"""

from rest_framework import serializers

from core.converters import MAX_DB_ID
from messaging.constants import MESSAGE_CONFIG

# =============================================================================
# Request Serializers
# =============================================================================


class SendMessageSerializer(serializers.Serializer):
    """Payload for sending a direct or group message."""

    recipients = serializers.ListField(
        child=serializers.IntegerField(min_value=1, max_value=MAX_DB_ID),
        allow_empty=True,
        max_length=MESSAGE_CONFIG.MAX_RECIPIENTS,
        help_text="Recipient user ids; more than one makes a group message",
    )
    message = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text="Message text",
    )


class ReplySerializer(serializers.Serializer):
    """Payload for replying to a single user."""

    recipient_id = serializers.IntegerField(
        min_value=1,
        max_value=MAX_DB_ID,
        help_text="User being replied to",
    )
    message = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text="Message text",
    )


class BroadcastSerializer(serializers.Serializer):
    """Payload for broadcasting to an event chat."""

    message = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        trim_whitespace=False,
        help_text="Message text (may be blank when media_url is set)",
    )
    media_url = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        help_text="Link to previously uploaded media",
    )
    recipients = serializers.ListField(
        child=serializers.IntegerField(min_value=1, max_value=MAX_DB_ID),
        required=False,
        allow_null=True,
        default=None,
        help_text="Team members to notify; the whole team when omitted",
    )


# =============================================================================
# Response Serializers
# =============================================================================


class UserRefSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()


class ReadMarkSerializer(serializers.Serializer):
    reader_id = serializers.IntegerField()
    read_at = serializers.DateTimeField()


class MessageSerializer(serializers.Serializer):
    """A populated direct or group message."""

    id = serializers.IntegerField()
    sender = UserRefSerializer()
    recipients = serializers.ListField(child=serializers.IntegerField())
    text = serializers.CharField()
    kind = serializers.ChoiceField(choices=["direct", "group"])
    created_at = serializers.DateTimeField()
    read_by = ReadMarkSerializer(many=True)


class DeliverySerializer(serializers.Serializer):
    message = MessageSerializer()
    failed_recipients = serializers.ListField(
        child=serializers.IntegerField(),
        help_text="Recipients whose unread counter or push failed",
    )


class ReadResultSerializer(serializers.Serializer):
    message_ids = serializers.ListField(
        child=serializers.IntegerField(),
        help_text="Messages that became read in this call",
    )
    reader_id = serializers.IntegerField()
    read_at = serializers.DateTimeField()


class ConversationSerializer(serializers.Serializer):
    messages = MessageSerializer(many=True)
    read = ReadResultSerializer()


class SenderSummarySerializer(serializers.Serializer):
    counterpart = UserRefSerializer()
    last_message = serializers.CharField()
    last_message_at = serializers.DateTimeField()
    unread_count = serializers.IntegerField()


class UnreadCountSerializer(serializers.Serializer):
    counterpart_id = serializers.IntegerField()
    unread_count = serializers.IntegerField()


class EventChatMessageSerializer(serializers.Serializer):
    """One event chat message."""

    id = serializers.IntegerField()
    event_id = serializers.IntegerField()
    sender = UserRefSerializer()
    text = serializers.CharField()
    media_url = serializers.CharField(allow_null=True)
    recipients = serializers.ListField(child=serializers.IntegerField())
    sequence = serializers.IntegerField()
    created_at = serializers.DateTimeField()


class EventChatSummarySerializer(serializers.Serializer):
    event_id = serializers.IntegerField()
    title = serializers.CharField()
    manager_id = serializers.IntegerField()
    last_message_at = serializers.DateTimeField(allow_null=True)
