"""
Request and Response models for the HTTP API.

These Pydantic models define the contract between client and server.
They provide:
- Type validation
- Automatic documentation
- Request/response serialization
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from twinlink.models.conversation import (
    Conversation,
    EnrichedMessage,
    LifecycleReport,
    Message,
    Participant,
    Session,
    VoiceAttachment,
    utc_now,
)
from twinlink.models.routing import AgentName, RoutingStatus


# =============================================================================
# Conversations
# =============================================================================

class SendConversationMessageRequest(BaseModel):
    """
    Request model for POST /conversations/messages.

    Attributes:
        sender_id: Author of the message
        recipient_id: Addressee
        body: Message text (may be empty for voice notes)
        origin: Key derivation hint ('canonical', 'initiator', 'responder', ...)
    """
    sender_id: str = Field(..., min_length=1, max_length=128, description="Sender participant id")
    recipient_id: str = Field(..., min_length=1, max_length=128, description="Recipient participant id")
    body: str = Field(default="", max_length=4000, description="Message text", examples=["Hi Bob!"])
    message_id: Optional[str] = Field(
        default=None,
        description="Idempotency id; re-sending the same id is a no-op"
    )
    owner_id: Optional[str] = Field(default=None, description="Application owner of the conversation")
    origin: Optional[str] = Field(default=None, description="Key derivation hint")
    voice: Optional[VoiceAttachment] = Field(default=None, description="Voice note reference")
    client_id: Optional[str] = Field(default=None, description="Owner-side client reference")
    metadata: Dict[str, str] = Field(default_factory=dict)


class SendConversationMessageResponse(BaseModel):
    conversation_key: str
    message: Message
    created: bool = Field(..., description="True when this send created the conversation")
    duplicate: bool = Field(..., description="True when the message id was already stored")


class MessageViewResponse(BaseModel):
    """Enriched messages for one requester."""
    key: str
    requester_id: str
    messages: List[EnrichedMessage]
    unread_count: int
    total_count: int


class LifecycleRequest(BaseModel):
    """Request model for read / delivered receipts."""
    participant_id: str = Field(..., min_length=1, description="Reader or recipient")
    message_ids: List[str] = Field(..., min_length=1, description="Messages to mark")


class LifecycleResponse(BaseModel):
    marked: List[str]
    already_done: List[str]
    not_found: List[str]
    not_addressed: List[str]
    marked_count: int

    @classmethod
    def from_report(cls, report: LifecycleReport) -> "LifecycleResponse":
        return cls(
            marked=report.marked,
            already_done=report.already_done,
            not_found=report.not_found,
            not_addressed=report.not_addressed,
            marked_count=report.marked_count,
        )


class ConversationSummary(BaseModel):
    key: str
    participants: List[str]
    owner_id: Optional[str] = None
    origin: str
    message_count: int
    created_at: datetime
    last_activity_at: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationSummary":
        return cls(
            key=conversation.key,
            participants=conversation.participants,
            owner_id=conversation.owner_id,
            origin=conversation.origin.value,
            message_count=conversation.message_count,
            created_at=conversation.created_at,
            last_activity_at=conversation.last_activity_at,
        )


class ConversationListResponse(BaseModel):
    conversations: List[ConversationSummary]
    count: int


# =============================================================================
# Sessions
# =============================================================================

class ParticipantInput(BaseModel):
    participant_id: str = Field(..., min_length=1, max_length=128)
    display_name: str = Field(default="")
    avatar_url: str = Field(default="")

    def to_participant(self) -> Participant:
        return Participant(
            participant_id=self.participant_id,
            display_name=self.display_name,
            avatar_url=self.avatar_url,
        )


class CreateSessionRequest(BaseModel):
    """Request model for POST /sessions."""
    participants: List[ParticipantInput] = Field(..., description="At least two participants")
    name: Optional[str] = Field(default=None, max_length=200)
    session_id: Optional[str] = Field(default=None, description="Caller-chosen session id")


class SessionResponse(BaseModel):
    session_id: str
    name: str
    participants: List[Participant]
    founding_participant_ids: List[str]
    is_active: bool
    message_count: int
    created_at: datetime
    last_activity_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            session_id=session.session_id,
            name=session.name,
            participants=session.participants,
            founding_participant_ids=session.founding_participant_ids,
            is_active=session.is_active,
            message_count=session.message_count,
            created_at=session.created_at,
            last_activity_at=session.last_activity_at,
        )


class SendSessionMessageRequest(BaseModel):
    """
    Request model for POST /sessions/{session_id}/messages.

    ``continuation_state`` is whatever the previous response returned; it
    is opaque to clients as well.
    """
    sender_id: str = Field(..., min_length=1, max_length=128)
    body: str = Field(..., min_length=1, max_length=4000, examples=["@assistant where should we eat?"])
    recipient_id: Optional[str] = Field(default=None)
    message_id: Optional[str] = Field(default=None)
    continuation_state: Optional[str] = Field(default=None)


class SendSessionMessageResponse(BaseModel):
    session_id: str
    message: Message
    continuation_state: str
    assistant_reply: Optional[str] = None
    duplicate: bool = False


class AddParticipantRequest(BaseModel):
    participant: ParticipantInput


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]
    count: int


# =============================================================================
# Routing
# =============================================================================

class RouteRequest(BaseModel):
    """Request model for POST /router/route."""
    twin_id: str = Field(..., min_length=1, max_length=128)
    message: str = Field(..., min_length=1, max_length=4000, examples=["I want to log what I ate today"])
    current_agent: Optional[str] = Field(default=None, description="Agent bound on the previous turn")
    turn_number: int = Field(default=0, ge=0, description="Turn counter from the previous response")


class RouteResponse(BaseModel):
    success: bool
    status: RoutingStatus
    twin_id: str
    agent_name: Optional[AgentName] = None
    response_prompt: str
    turn_number: int
    confidence: float
    reason: Optional[str] = None
    error: Optional[str] = None
    error_message: Optional[str] = None


# =============================================================================
# Common
# =============================================================================

class HealthResponse(BaseModel):
    """Response model for the /health endpoint."""
    status: str = Field(default="healthy")
    version: str
    timestamp: datetime = Field(default_factory=utc_now)


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str
    message: str
    details: Optional[str] = None
    retryable: bool = False
    timestamp: datetime = Field(default_factory=utc_now)
