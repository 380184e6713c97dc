"""
Conversation documents - messages, two-party conversations and group sessions.

These pydantic models are both the in-memory representation and the JSON
document shape written to the store (``to_document`` / ``from_document``).

- Message: frozen; lifecycle changes produce a new copy
- Conversation: one document per participant pair
- Session: named multi-party container with opaque continuation state
- EnrichedMessage / MessageView: computed per-requester projection
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class PairingOrigin(str, Enum):
    """How a conversation key is derived from its two participants."""
    CANONICAL = "canonical"
    INITIATOR_FIRST = "initiator_first"
    RESPONDER_FIRST = "responder_first"


class MessageState(str, Enum):
    """Lifecycle position of a message: Sent -> Delivered -> Read."""
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class VoiceAttachment(BaseModel):
    """Reference to a recorded voice note stored outside the document."""
    path: str = Field(default="", description="Storage path of the audio file")
    file_name: str = Field(default="", description="Original file name")
    access_url: Optional[str] = Field(default=None, description="Signed URL for playback")


class Message(BaseModel):
    """
    A single message in a conversation or session.

    Only the lifecycle fields (is_delivered, delivered_at, is_read, read_at)
    ever change, and only through twinlink.messaging.lifecycle, which
    returns updated copies.
    """
    model_config = ConfigDict(frozen=True)

    message_id: str
    sender_id: str
    recipient_id: Optional[str] = None
    body: str = ""
    message_type: Literal["text", "voice"] = "text"
    created_at: datetime = Field(default_factory=utc_now)
    voice: Optional[VoiceAttachment] = None
    client_id: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    is_read: bool = False
    read_at: Optional[datetime] = None

    @computed_field
    @property
    def state(self) -> MessageState:
        if self.is_read:
            return MessageState.READ
        if self.is_delivered:
            return MessageState.DELIVERED
        return MessageState.SENT

    def is_addressed_to(self, participant_id: str) -> bool:
        """Direct messages match their recipient; broadcasts match everyone else."""
        if self.recipient_id is None:
            return self.sender_id != participant_id
        return self.recipient_id == participant_id


class MessageLog(BaseModel):
    """Behaviour shared by conversations and sessions."""
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    last_activity_at: datetime = Field(default_factory=utc_now)

    def find_message(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.message_id == message_id:
                return message
        return None

    def index_of(self, message_id: str) -> int:
        for position, message in enumerate(self.messages):
            if message.message_id == message_id:
                return position
        return -1

    @property
    def message_count(self) -> int:
        return len(self.messages)

    def member_ids(self) -> List[str]:
        """Identifiers indexed by the store for member lookups."""
        raise NotImplementedError

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        return cls.model_validate(document)


class Conversation(MessageLog):
    """
    Two-party message thread, one document per conversation key.

    The participant pair is fixed by the first message; later messages
    only append.
    """
    key: str
    participants: List[str]
    owner_id: Optional[str] = None
    origin: PairingOrigin = PairingOrigin.CANONICAL
    type: Literal["conversation"] = "conversation"

    def has_participant(self, participant_id: str) -> bool:
        return participant_id in self.participants

    def member_ids(self) -> List[str]:
        return list(self.participants)


class Participant(BaseModel):
    """Member of a group session."""
    participant_id: str
    display_name: str = ""
    avatar_url: str = ""
    joined_at: datetime = Field(default_factory=utc_now)
    is_online: bool = False
    last_seen_at: Optional[datetime] = None


class Session(MessageLog):
    """
    Named multi-party conversation.

    ``continuation_state`` is an opaque blob owned by the completion
    collaborator; this package stores and forwards it without reading it.
    """
    session_id: str
    name: str = ""
    participants: List[Participant]
    founding_participant_ids: List[str] = Field(default_factory=list)
    continuation_state: str = ""
    is_active: bool = True
    metadata: Dict[str, str] = Field(default_factory=dict)
    type: Literal["session"] = "session"

    @property
    def participant_ids(self) -> List[str]:
        return [p.participant_id for p in self.participants]

    def has_participant(self, participant_id: str) -> bool:
        return participant_id in self.participant_ids

    def member_ids(self) -> List[str]:
        return self.participant_ids

    def display_names(self) -> List[str]:
        return [p.display_name or p.participant_id for p in self.participants]


class EnrichedMessage(Message):
    """Message plus flags computed relative to the requesting participant."""
    is_mine: bool = False
    is_for_me: bool = False
    needs_read_confirmation: bool = False


class MessageView(BaseModel):
    """Enriched messages for one requester; computed, never persisted."""
    requester_id: str
    messages: List[EnrichedMessage] = Field(default_factory=list)
    unread_count: int = 0
    total_count: int = 0


class LifecycleReport(BaseModel):
    """Per-id outcome of a mark-read or mark-delivered batch."""
    marked: List[str] = Field(default_factory=list)
    already_done: List[str] = Field(default_factory=list)
    not_found: List[str] = Field(default_factory=list)
    not_addressed: List[str] = Field(default_factory=list)
    write_cost: float = 0.0

    @property
    def marked_count(self) -> int:
        return len(self.marked)
