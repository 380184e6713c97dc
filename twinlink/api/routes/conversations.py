"""
Conversation Routes - two-party messaging endpoints.

Endpoints:
- POST /conversations/messages: Send a message
- GET /conversations/{key}/messages: Enriched view for a participant
- POST /conversations/{key}/read: Read receipts
- POST /conversations/{key}/delivered: Delivery receipts
- GET /conversations/pair/{a}/{b}: Conversations between two participants
- GET /conversations/participant/{participant_id}: A participant's conversations
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from twinlink.api.dependencies import get_conversation_service, unwrap
from twinlink.core.logging_config import get_logger
from twinlink.models.api import (
    ConversationListResponse,
    ConversationSummary,
    LifecycleRequest,
    LifecycleResponse,
    MessageViewResponse,
    SendConversationMessageRequest,
    SendConversationMessageResponse,
)
from twinlink.services.conversation_service import ConversationService

logger = get_logger(__name__)
router = APIRouter(prefix="/conversations", tags=["Conversations"])


@router.post(
    "/messages",
    response_model=SendConversationMessageResponse,
    summary="Send a message",
    description="Appends a message to the pair's conversation, creating it on first send. "
                "Re-sending the same message_id returns the stored message."
)
async def send_message(
    request: SendConversationMessageRequest,
    service: ConversationService = Depends(get_conversation_service)
) -> SendConversationMessageResponse:
    receipt = unwrap(await service.send_message(
        sender_id=request.sender_id,
        recipient_id=request.recipient_id,
        body=request.body,
        owner_id=request.owner_id,
        origin=request.origin,
        message_id=request.message_id,
        voice=request.voice,
        client_id=request.client_id,
        metadata=request.metadata,
    ))
    return SendConversationMessageResponse(
        conversation_key=receipt.conversation_key,
        message=receipt.message,
        created=receipt.created,
        duplicate=receipt.duplicate,
    )


@router.get(
    "/{key}/messages",
    response_model=MessageViewResponse,
    summary="Get conversation messages"
)
async def get_messages(
    key: str,
    requester: str = Query(..., description="Participant reading the conversation"),
    unread_only: bool = Query(False, description="Only messages awaiting the requester's read receipt"),
    period: Optional[str] = Query(None, description="day, week or month"),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    service: ConversationService = Depends(get_conversation_service)
) -> MessageViewResponse:
    view = unwrap(await service.get_messages(
        key,
        requester,
        unread_only=unread_only,
        period=period,
        from_date=from_date,
        to_date=to_date,
    ))
    return MessageViewResponse(
        key=key,
        requester_id=view.requester_id,
        messages=view.messages,
        unread_count=view.unread_count,
        total_count=view.total_count,
    )


@router.post("/{key}/read", response_model=LifecycleResponse, summary="Mark messages read")
async def mark_read(
    key: str,
    request: LifecycleRequest,
    service: ConversationService = Depends(get_conversation_service)
) -> LifecycleResponse:
    report = unwrap(await service.mark_read(key, request.message_ids, request.participant_id))
    return LifecycleResponse.from_report(report)


@router.post("/{key}/delivered", response_model=LifecycleResponse, summary="Mark messages delivered")
async def mark_delivered(
    key: str,
    request: LifecycleRequest,
    service: ConversationService = Depends(get_conversation_service)
) -> LifecycleResponse:
    report = unwrap(await service.mark_delivered(key, request.message_ids, request.participant_id))
    return LifecycleResponse.from_report(report)


@router.get(
    "/pair/{participant_a}/{participant_b}",
    response_model=ConversationListResponse,
    summary="Conversations between two participants"
)
async def find_pair(
    participant_a: str,
    participant_b: str,
    service: ConversationService = Depends(get_conversation_service)
) -> ConversationListResponse:
    conversations = unwrap(await service.find_pair_conversations(participant_a, participant_b))
    return ConversationListResponse(
        conversations=[ConversationSummary.from_conversation(c) for c in conversations],
        count=len(conversations),
    )


@router.get(
    "/participant/{participant_id}",
    response_model=ConversationListResponse,
    summary="A participant's conversations"
)
async def list_conversations(
    participant_id: str,
    service: ConversationService = Depends(get_conversation_service)
) -> ConversationListResponse:
    conversations = unwrap(await service.list_conversations(participant_id))
    return ConversationListResponse(
        conversations=[ConversationSummary.from_conversation(c) for c in conversations],
        count=len(conversations),
    )
