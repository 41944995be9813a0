"""
Tests for PushTransport.
"""

from messaging.constants import PushEvent


class TestPushTransport:
    def test_send_wraps_event_for_consumer(self, transport, channel_layer):
        assert transport.send("conn-a", PushEvent.RECEIVE_MESSAGE, {"id": 1}) is True

        assert channel_layer.sent == [
            ("conn-a", {"type": "push.event", "event": "receiveMessage", "payload": {"id": 1}})
        ]

    def test_layer_failure_is_logged_not_raised(self, transport, channel_layer, caplog):
        channel_layer.failing.add("conn-a")

        assert transport.send("conn-a", PushEvent.RECEIVE_MESSAGE, {"id": 1}) is False
        assert "Push of receiveMessage to conn-a failed" in caplog.text

    def test_send_many_pushes_each_connection_once(self, transport, channel_layer):
        accepted = transport.send_many(["conn-a", "conn-b", "conn-a"], "receiveMessage", {})

        assert accepted == 2
        assert channel_layer.channels_for("receiveMessage") == ["conn-a", "conn-b"]

    def test_send_many_counts_only_accepted(self, transport, channel_layer):
        channel_layer.failing.add("conn-b")

        assert transport.send_many(["conn-a", "conn-b"], "receiveMessage", {}) == 1

    def test_send_to_room(self, transport, registry, channel_layer):
        registry.join("user:1", "conn-a")
        registry.join("user:1", "conn-b")
        registry.join("user:2", "conn-c")

        assert transport.send_to_room("user:1", PushEvent.MESSAGE_READ, {"reader_id": 2}) == 2
        assert channel_layer.channels_for("messageRead") == ["conn-a", "conn-b"]

    def test_empty_room_is_not_an_error(self, transport, channel_layer):
        assert transport.send_to_room("user:404", PushEvent.MESSAGE_READ, {}) == 0
        assert channel_layer.sent == []
