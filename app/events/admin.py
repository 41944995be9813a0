"""
Django admin configuration for events.
"""

from django.contrib import admin

from events.models import Event


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """Admin interface for Event model."""

    list_display = ["id", "title", "manager", "starts_at", "created_at"]
    search_fields = ["title", "manager__email"]
    raw_id_fields = ["manager"]
    filter_horizontal = ["team_members"]
    readonly_fields = ["created_at", "updated_at"]
    ordering = ["-created_at"]
