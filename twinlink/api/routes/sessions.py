"""
Group Session Routes - multi-party sessions with an on-demand assistant.

Endpoints:
- POST /sessions: Create a session
- GET /sessions/participant/{participant_id}: A participant's sessions
- GET /sessions/{session_id}: Session info
- POST /sessions/{session_id}/messages: Post a message
- GET /sessions/{session_id}/messages/{requester}: Enriched view
- POST /sessions/{session_id}/read: Read receipts
- POST /sessions/{session_id}/participants: Add a participant
- POST /sessions/{session_id}/close: Close the session
"""
from fastapi import APIRouter, Depends, Query

from twinlink.api.dependencies import get_session_manager, unwrap
from twinlink.core.logging_config import get_logger
from twinlink.messaging.sessions import GroupSessionManager
from twinlink.models.api import (
    AddParticipantRequest,
    CreateSessionRequest,
    LifecycleRequest,
    LifecycleResponse,
    MessageViewResponse,
    SendSessionMessageRequest,
    SendSessionMessageResponse,
    SessionListResponse,
    SessionResponse,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/sessions", tags=["Group Sessions"])


@router.post("", response_model=SessionResponse, status_code=201, summary="Create a session")
async def create_session(
    request: CreateSessionRequest,
    manager: GroupSessionManager = Depends(get_session_manager)
) -> SessionResponse:
    session = unwrap(await manager.create_session(
        [p.to_participant() for p in request.participants],
        name=request.name,
        session_id=request.session_id,
    ))
    return SessionResponse.from_session(session)


@router.get(
    "/participant/{participant_id}",
    response_model=SessionListResponse,
    summary="A participant's sessions"
)
async def list_sessions(
    participant_id: str,
    active_only: bool = Query(False),
    manager: GroupSessionManager = Depends(get_session_manager)
) -> SessionListResponse:
    sessions = unwrap(await manager.list_sessions(participant_id, active_only=active_only))
    return SessionListResponse(
        sessions=[SessionResponse.from_session(s) for s in sessions],
        count=len(sessions),
    )


@router.get("/{session_id}", response_model=SessionResponse, summary="Session info")
async def get_session(
    session_id: str,
    manager: GroupSessionManager = Depends(get_session_manager)
) -> SessionResponse:
    return SessionResponse.from_session(unwrap(await manager.get_session(session_id)))


@router.post(
    "/{session_id}/messages",
    response_model=SendSessionMessageResponse,
    summary="Post a message",
    description="Mentioning the assistant in the body asks it to reply. "
                "Pass the returned continuation_state on the next call."
)
async def send_message(
    session_id: str,
    request: SendSessionMessageRequest,
    manager: GroupSessionManager = Depends(get_session_manager)
) -> SendSessionMessageResponse:
    outcome = unwrap(await manager.send_message(
        session_id,
        request.sender_id,
        request.body,
        continuation_state=request.continuation_state,
        recipient_id=request.recipient_id,
        message_id=request.message_id,
    ))
    return SendSessionMessageResponse(
        session_id=session_id,
        message=outcome.message,
        continuation_state=outcome.continuation_state,
        assistant_reply=outcome.assistant_reply,
        duplicate=outcome.duplicate,
    )


@router.get(
    "/{session_id}/messages/{requester}",
    response_model=MessageViewResponse,
    summary="Get session messages"
)
async def get_messages(
    session_id: str,
    requester: str,
    unread_only: bool = Query(False),
    manager: GroupSessionManager = Depends(get_session_manager)
) -> MessageViewResponse:
    view = unwrap(await manager.get_messages(session_id, requester, unread_only=unread_only))
    return MessageViewResponse(
        key=session_id,
        requester_id=view.requester_id,
        messages=view.messages,
        unread_count=view.unread_count,
        total_count=view.total_count,
    )


@router.post("/{session_id}/read", response_model=LifecycleResponse, summary="Mark messages read")
async def mark_read(
    session_id: str,
    request: LifecycleRequest,
    manager: GroupSessionManager = Depends(get_session_manager)
) -> LifecycleResponse:
    report = unwrap(await manager.mark_read(session_id, request.message_ids, request.participant_id))
    return LifecycleResponse.from_report(report)


@router.post("/{session_id}/participants", response_model=SessionResponse, summary="Add a participant")
async def add_participant(
    session_id: str,
    request: AddParticipantRequest,
    manager: GroupSessionManager = Depends(get_session_manager)
) -> SessionResponse:
    session = unwrap(await manager.add_participant(session_id, request.participant.to_participant()))
    return SessionResponse.from_session(session)


@router.post("/{session_id}/close", response_model=SessionResponse, summary="Close a session")
async def close_session(
    session_id: str,
    manager: GroupSessionManager = Depends(get_session_manager)
) -> SessionResponse:
    return SessionResponse.from_session(unwrap(await manager.close_session(session_id)))
