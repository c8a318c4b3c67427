"""
Views for the messaging API.

URL Structure:
    /api/v1/messaging/conversations/                   GET, POST
    /api/v1/messaging/conversations/{id}/              GET
    /api/v1/messaging/conversations/{id}/messages/     GET, POST
    /api/v1/messaging/conversations/{id}/read/         PUT
    /api/v1/messaging/conversations/{id}/archive/      POST, DELETE
    /api/v1/messaging/unread-count/                    GET

Views only parse input, call one service method with request.user.pk and
render the result. Participation checks live in the service layer, so
every failure comes back as a ServiceResult error code mapped through
ERROR_STATUS.
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from messaging.constants import ErrorCode
from messaging.serializers import (
    ConversationCreatedSerializer,
    ConversationCreateSerializer,
    ConversationDetailSerializer,
    ConversationListQuerySerializer,
    ConversationPageSerializer,
    MessageCreateSerializer,
    MessagePageSerializer,
    MessageSerializer,
    PageQuerySerializer,
    UnreadSummarySerializer,
)
from messaging.services import MessagingService, UnreadAggregator

ERROR_STATUS = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.NOT_PARTICIPANT: status.HTTP_403_FORBIDDEN,
    ErrorCode.SELF_CONVERSATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

ERROR_RESPONSES = {
    403: OpenApiResponse(description="Not a participant in this conversation"),
    404: OpenApiResponse(description="Conversation not found"),
}


def error_response(result) -> Response:
    """Render a failed ServiceResult as {"error", "error_code"[, "errors"]}."""
    body = {"error": result.error, "error_code": result.error_code}
    if result.errors:
        body["errors"] = result.errors
    return Response(body, status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST))


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        parameters=[ConversationListQuerySerializer],
        responses={200: ConversationPageSerializer},
        tags=["Messaging - Conversations"],
    ),
    create=extend_schema(
        operation_id="create_conversation",
        summary="Start a conversation about a listing",
        request=ConversationCreateSerializer,
        responses={
            201: ConversationCreatedSerializer,
            200: OpenApiResponse(
                response=ConversationCreatedSerializer,
                description="Conversation already existed; the message was added to it",
            ),
        },
        tags=["Messaging - Conversations"],
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation with latest messages",
        responses={200: ConversationDetailSerializer, **ERROR_RESPONSES},
        tags=["Messaging - Conversations"],
    ),
)
class ConversationViewSet(viewsets.ViewSet):
    """
    Conversations of the authenticated user.

    list:
        The caller's conversations, most recent activity first, each with
        the caller's own unread count. ?archived=true lists archived ones.

    create:
        Start a conversation as the buyer. If one already exists for the
        same listing and seller the message is appended to it (200).

    retrieve:
        Conversation detail with the 50 newest messages.

    messages:
        GET pages through messages newest first; POST sends a message.

    read:
        Reset the caller's unread count.

    archive:
        POST hides the conversation from the caller's list, DELETE restores it.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def list(self, request):
        query = ConversationListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = MessagingService.list_conversations(
            user_id=request.user.pk,
            page=query.validated_data["page"],
            page_size=query.validated_data["page_size"],
            archived=query.validated_data["archived"],
        )
        if not result.success:
            return error_response(result)

        return Response(ConversationPageSerializer(result.data).data)

    def create(self, request):
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessagingService.create_conversation(
            buyer_id=request.user.pk,
            listing_id=serializer.validated_data["listing_id"],
            seller_id=serializer.validated_data["seller_id"],
            initial_message=serializer.validated_data["initial_message"],
        )
        if not result.success:
            return error_response(result)

        return Response(
            ConversationCreatedSerializer(result.data).data,
            status=status.HTTP_201_CREATED if result.data.is_new else status.HTTP_200_OK,
        )

    def retrieve(self, request, pk=None):
        result = MessagingService.get_conversation(conversation_id=pk, user_id=request.user.pk)
        if not result.success:
            return error_response(result)

        return Response(ConversationDetailSerializer(result.data).data)

    @extend_schema(
        methods=["GET"],
        operation_id="list_messages",
        summary="List messages (newest first)",
        parameters=[PageQuerySerializer],
        responses={200: MessagePageSerializer, **ERROR_RESPONSES},
        tags=["Messaging - Messages"],
    )
    @extend_schema(
        methods=["POST"],
        operation_id="send_message",
        summary="Send a message",
        request=MessageCreateSerializer,
        responses={201: MessageSerializer, **ERROR_RESPONSES},
        tags=["Messaging - Messages"],
    )
    @action(detail=True, methods=["get", "post"])
    def messages(self, request, pk=None):
        if request.method == "POST":
            serializer = MessageCreateSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)

            result = MessagingService.send_message(
                conversation_id=pk,
                sender_id=request.user.pk,
                content=serializer.validated_data["content"],
            )
            if not result.success:
                return error_response(result)
            return Response(MessageSerializer(result.data).data, status=status.HTTP_201_CREATED)

        query = PageQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = MessagingService.list_messages(
            conversation_id=pk,
            user_id=request.user.pk,
            page=query.validated_data["page"],
            page_size=query.validated_data["page_size"],
        )
        if not result.success:
            return error_response(result)
        return Response(MessagePageSerializer(result.data).data)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=None,
        responses={200: OpenApiTypes.OBJECT, **ERROR_RESPONSES},
        tags=["Messaging - Conversations"],
    )
    @action(detail=True, methods=["put"])
    def read(self, request, pk=None):
        result = MessagingService.mark_read(conversation_id=pk, user_id=request.user.pk)
        if not result.success:
            return error_response(result)

        return Response({"status": "read", "messages_marked": result.data})

    @extend_schema(
        operation_id="archive_conversation",
        summary="Archive (POST) or unarchive (DELETE) for the caller",
        request=None,
        responses={200: OpenApiTypes.OBJECT, **ERROR_RESPONSES},
        tags=["Messaging - Conversations"],
    )
    @action(detail=True, methods=["post", "delete"])
    def archive(self, request, pk=None):
        if request.method == "DELETE":
            result = MessagingService.unarchive(conversation_id=pk, user_id=request.user.pk)
        else:
            result = MessagingService.archive(conversation_id=pk, user_id=request.user.pk)
        if not result.success:
            return error_response(result)

        return Response({"status": "archived" if request.method == "POST" else "unarchived"})


class UnreadCountView(APIView):
    """Total unread messages for the caller, with a per-conversation breakdown."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_unread_count",
        summary="Unread message counts",
        parameters=[
            OpenApiParameter(
                name="Authorization",
                location=OpenApiParameter.HEADER,
                required=True,
                description="Bearer access token",
            ),
        ],
        responses={200: UnreadSummarySerializer},
        tags=["Messaging - Messages"],
    )
    def get(self, request):
        result = UnreadAggregator.get_unread_summary(request.user.pk)
        if not result.success:
            return error_response(result)

        return Response(UnreadSummarySerializer(result.data).data)
