"""
Views for the messaging API.

URL Structure:
    /api/v1/messaging/send/                       POST  Send a direct or group message
    /api/v1/messaging/reply/                      POST  Reply to one user
    /api/v1/messaging/senders/                    GET   Inbox grouped by sender
    /api/v1/messaging/inbox/                      GET   Received messages, newest first
    /api/v1/messaging/messages/{user_id}/         GET   Conversation (marks it read)
    /api/v1/messaging/messages/{user_id}/read/    POST  Mark a conversation read
    /api/v1/messaging/unread/{user_id}/           GET   Unread count for one sender
    /api/v1/messaging/events/                     GET   Event chat list
    /api/v1/messaging/events/{id}/messages/       GET   Event chat history
                                                  POST  Broadcast to the event chat

Design Decisions:
    - Views only parse input and shape output; services own the rules
    - Application errors map to status codes via application_error_response
    - Components come from the app's MessagingRuntime, never from globals
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.views import application_error_response
from messaging.realtime.runtime import get_runtime
from messaging.serializers import (
    BroadcastSerializer,
    ConversationSerializer,
    DeliverySerializer,
    EventChatMessageSerializer,
    EventChatSummarySerializer,
    MessageSerializer,
    ReadResultSerializer,
    ReplySerializer,
    SenderSummarySerializer,
    SendMessageSerializer,
    UnreadCountSerializer,
)
from messaging.services import ConversationQueryService, EventChatService, MessageStore

ERROR_RESPONSES = {
    400: OpenApiResponse(description="Validation error"),
    403: OpenApiResponse(description="Not allowed"),
    404: OpenApiResponse(description="User, message or event not found"),
}


class SendMessageView(APIView):
    """
    Send a message to one or more users.

    POST /api/v1/messaging/send/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        description=(
            "Persist a message and push it to connected recipients. "
            "Delivery problems for individual recipients are reported in "
            "failed_recipients; the message is stored regardless."
        ),
        request=SendMessageSerializer,
        responses={201: DeliverySerializer, **ERROR_RESPONSES},
        tags=["Messaging"],
    )
    def post(self, request):
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            delivery = get_runtime().dispatcher().send_message(
                request.user,
                serializer.validated_data["recipients"],
                serializer.validated_data["message"],
            )
        except BaseApplicationError as e:
            return application_error_response(e)

        return Response(delivery.to_payload(), status=status.HTTP_201_CREATED)


class ReplyView(APIView):
    """
    Reply to a single user.

    POST /api/v1/messaging/reply/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="reply_message",
        summary="Reply",
        request=ReplySerializer,
        responses={201: DeliverySerializer, **ERROR_RESPONSES},
        tags=["Messaging"],
    )
    def post(self, request):
        serializer = ReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            delivery = get_runtime().dispatcher().reply_to(
                request.user,
                serializer.validated_data["recipient_id"],
                serializer.validated_data["message"],
            )
        except BaseApplicationError as e:
            return application_error_response(e)

        return Response(delivery.to_payload(), status=status.HTTP_201_CREATED)


class SendersView(APIView):
    """GET /api/v1/messaging/senders/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_senders",
        summary="List senders",
        description="Everyone who has messaged you, newest first, with unread counts.",
        responses={200: SenderSummarySerializer(many=True)},
        tags=["Messaging"],
    )
    def get(self, request):
        result = ConversationQueryService.senders_for(request.user)
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response([summary.to_payload() for summary in result.data])


class InboxView(APIView):
    """GET /api/v1/messaging/inbox/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_inbox",
        summary="Inbox",
        responses={200: MessageSerializer(many=True)},
        tags=["Messaging"],
    )
    def get(self, request):
        store = MessageStore()
        views = store.populate_many(store.find_inbox(request.user.pk))
        return Response([view.to_payload() for view in views])


class ConversationView(APIView):
    """
    Conversation with another user.

    GET /api/v1/messaging/messages/{user_id}/

    Opening a conversation marks it read, so the counterpart receives a
    messageRead push for anything that was unread.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        responses={200: ConversationSerializer, 404: ERROR_RESPONSES[404]},
        tags=["Messaging"],
    )
    def get(self, request, user_id):
        try:
            read = get_runtime().synchronizer().mark_conversation_read(request.user, user_id)
        except BaseApplicationError as e:
            return application_error_response(e)

        store = MessageStore()
        views = store.populate_many(store.find_conversation(request.user.pk, user_id))
        return Response(
            {
                "messages": [view.to_payload() for view in views],
                "read": read.to_payload(),
            }
        )


class ConversationReadView(APIView):
    """POST /api/v1/messaging/messages/{user_id}/read/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation read",
        request=None,
        responses={200: ReadResultSerializer, 404: ERROR_RESPONSES[404]},
        tags=["Messaging"],
    )
    def post(self, request, user_id):
        try:
            read = get_runtime().synchronizer().mark_conversation_read(request.user, user_id)
        except BaseApplicationError as e:
            return application_error_response(e)
        return Response(read.to_payload())


class UnreadCountView(APIView):
    """GET /api/v1/messaging/unread/{user_id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_unread_count",
        summary="Unread count",
        responses={200: UnreadCountSerializer, 404: ERROR_RESPONSES[404]},
        tags=["Messaging"],
    )
    def get(self, request, user_id):
        result = ConversationQueryService.unread_count(request.user, user_id)
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_404_NOT_FOUND)
        return Response({"counterpart_id": user_id, "unread_count": result.data})


class EventChatListView(APIView):
    """GET /api/v1/messaging/events/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_event_chats",
        summary="List event chats",
        responses={200: EventChatSummarySerializer(many=True)},
        tags=["Messaging - Events"],
    )
    def get(self, request):
        summaries = EventChatService.chat_list(request.user)
        return Response([summary.to_payload() for summary in summaries])


class EventChatMessagesView(APIView):
    """
    Event chat history and broadcast.

    GET  /api/v1/messaging/events/{event_id}/messages/
    POST /api/v1/messaging/events/{event_id}/messages/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_event_chat_messages",
        summary="Event chat history",
        responses={200: EventChatMessageSerializer(many=True), **ERROR_RESPONSES},
        tags=["Messaging - Events"],
    )
    def get(self, request, event_id):
        try:
            history = EventChatService.history(event_id, request.user)
        except BaseApplicationError as e:
            return application_error_response(e)
        return Response([message.to_payload() for message in history])

    @extend_schema(
        operation_id="broadcast_event_chat_message",
        summary="Broadcast to event chat",
        description=(
            "Append a message to the event chat and push it to the named "
            "recipients, or to the whole team when recipients is omitted."
        ),
        request=BroadcastSerializer,
        responses={
            201: EventChatMessageSerializer,
            **ERROR_RESPONSES,
            409: OpenApiResponse(description="Event chat busy, retry"),
        },
        tags=["Messaging - Events"],
    )
    def post(self, request, event_id):
        serializer = BroadcastSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            view = get_runtime().dispatcher().broadcast_to_event(
                request.user,
                event_id,
                serializer.validated_data["message"],
                recipient_ids=serializer.validated_data["recipients"],
                media_url=serializer.validated_data["media_url"],
            )
        except BaseApplicationError as e:
            return application_error_response(e)

        return Response(view.to_payload(), status=status.HTTP_201_CREATED)
