"""
Models module - Pydantic schemas for data validation.

This module defines:
- Document models: conversations, sessions and messages as stored
- Routing models: agent names, classifier output, routing results
- Request/response models for the HTTP API (twinlink.models.api)
"""
from twinlink.models.conversation import (
    Conversation,
    EnrichedMessage,
    LifecycleReport,
    Message,
    MessageState,
    MessageView,
    PairingOrigin,
    Participant,
    Session,
    VoiceAttachment,
)
from twinlink.models.routing import (
    AgentName,
    Classification,
    RoutingResult,
    RoutingState,
    RoutingStatus,
)

__all__ = [
    "AgentName",
    "Classification",
    "Conversation",
    "EnrichedMessage",
    "LifecycleReport",
    "Message",
    "MessageState",
    "MessageView",
    "PairingOrigin",
    "Participant",
    "RoutingResult",
    "RoutingState",
    "RoutingStatus",
    "Session",
    "VoiceAttachment",
]
