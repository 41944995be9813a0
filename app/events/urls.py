"""
URL configuration for events API.

All URLs are prefixed with /api/v1/events/ in the main URL configuration.
"""

from django.urls import path, register_converter

from core.converters import DatabaseIdConverter
from events.views import EventTeamView

register_converter(DatabaseIdConverter, "dbid")

app_name = "events"

urlpatterns = [
    path("<dbid:event_id>/team/", EventTeamView.as_view(), name="event-team"),
]
