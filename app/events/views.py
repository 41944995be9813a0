"""
Views for the events API.

URL Structure:
    /api/v1/events/{id}/team/   POST  Accept a volunteer onto the team
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.views import application_error_response
from events.serializers import AcceptVolunteerSerializer, EventMembershipSerializer
from events.services import EventMembershipService


class EventTeamView(APIView):
    """
    Accept a volunteer onto an event team.

    POST /api/v1/events/{event_id}/team/

    Payload:
        user_id: Volunteer to accept

    The volunteer is also added to the event chat group.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="accept_event_volunteer",
        summary="Accept volunteer",
        description=(
            "Add a volunteer to the event team. Only the event manager may call "
            "this. The volunteer joins the event chat group as well."
        ),
        request=AcceptVolunteerSerializer,
        responses={
            200: OpenApiResponse(
                response=EventMembershipSerializer,
                description="Updated membership",
            ),
            403: OpenApiResponse(description="Caller does not manage this event"),
            404: OpenApiResponse(description="Event or user not found"),
        },
        tags=["Events"],
    )
    def post(self, request, event_id):
        serializer = AcceptVolunteerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            membership = EventMembershipService.accept_volunteer(
                event_id=event_id,
                manager=request.user,
                volunteer_id=serializer.validated_data["user_id"],
            )
        except BaseApplicationError as e:
            return application_error_response(e)

        return Response(
            EventMembershipSerializer(membership).data,
            status=status.HTTP_200_OK,
        )
