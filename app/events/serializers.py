"""
Serializers for the events API.
"""

from rest_framework import serializers

from core.converters import MAX_DB_ID


class AcceptVolunteerSerializer(serializers.Serializer):
    """Payload for accepting a volunteer onto an event team."""

    user_id = serializers.IntegerField(min_value=1, max_value=MAX_DB_ID)


class EventMembershipSerializer(serializers.Serializer):
    """Membership snapshot returned after a team change."""

    event_id = serializers.IntegerField()
    manager_id = serializers.IntegerField()
    member_ids = serializers.SerializerMethodField()

    def get_member_ids(self, obj) -> list[int]:
        return sorted(obj.member_ids)

