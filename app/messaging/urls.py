"""
URL configuration for messaging API.

All URLs are prefixed with /api/v1/messaging/ in the main URL configuration.
"""

from django.urls import path, register_converter

from core.converters import DatabaseIdConverter
from messaging import views

register_converter(DatabaseIdConverter, "dbid")

app_name = "messaging"

urlpatterns = [
    path("send/", views.SendMessageView.as_view(), name="send"),
    path("reply/", views.ReplyView.as_view(), name="reply"),
    path("senders/", views.SendersView.as_view(), name="senders"),
    path("inbox/", views.InboxView.as_view(), name="inbox"),
    path("messages/<dbid:user_id>/", views.ConversationView.as_view(), name="conversation"),
    path(
        "messages/<dbid:user_id>/read/",
        views.ConversationReadView.as_view(),
        name="conversation-read",
    ),
    path("unread/<dbid:user_id>/", views.UnreadCountView.as_view(), name="unread"),
    path("events/", views.EventChatListView.as_view(), name="event-chats"),
    path(
        "events/<dbid:event_id>/messages/",
        views.EventChatMessagesView.as_view(),
        name="event-chat-messages",
    ),
]
