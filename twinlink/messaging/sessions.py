"""
Group Session Manager - multi-party conversations with an on-demand assistant.

This module provides:
- Session creation, closing and participant management
- Posting messages, calling the completion collaborator when a message
  mentions the assistant
- Enriched reads and read receipts through the lifecycle engine

The continuation state handed back by the collaborator is stored on the
session in the same conditional write as the message that produced it.
Its content is never inspected here.
"""
import re
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from twinlink.core.exceptions import InvalidArgument, NotFound
from twinlink.core.logging_config import get_logger
from twinlink.core.results import returns_result, with_cost
from twinlink.core.timeouts import with_timeout
from twinlink.core.validators import validate_body, validate_identifier
from twinlink.llm.client import CompletionCollaborator
from twinlink.llm.prompts import get_session_instructions, get_session_turn_prompt
from twinlink.messaging.lifecycle import MessageLifecycleEngine, enrich, mark_delivered
from twinlink.models.conversation import Message, Participant, Session, utc_now
from twinlink.storage.conversation_store import ConversationStore

logger = get_logger(__name__)

MIN_PARTICIPANTS = 2


@dataclass
class SendOutcome:
    """Stored message, resulting continuation state and assistant reply (if any)."""
    message: Message
    continuation_state: str
    assistant_reply: Optional[str] = None
    duplicate: bool = False


class GroupSessionManager:
    """
    Manages group sessions stored through a ConversationStore.

    Example:
        >>> manager = GroupSessionManager(store, completion)
        >>> result = await manager.create_session(["ana", "luis"], name="Trip")
        >>> sent = await manager.send_message(result.value.session_id, "ana", "@assistant ideas?")
        >>> print(sent.value.assistant_reply)
    """

    def __init__(
        self,
        store: ConversationStore[Session],
        completion: CompletionCollaborator,
        mention: str = "@assistant",
        collaborator_timeout_seconds: Optional[float] = None
    ):
        """
        Initialize the session manager.

        Args:
            store: Store adapter for the sessions collection
            completion: Collaborator invoked on assistant mentions
            mention: Token that summons the assistant (case-insensitive)
            collaborator_timeout_seconds: Deadline for each completion call
        """
        self.store = store
        self.completion = completion
        self.mention = mention
        self.collaborator_timeout_seconds = collaborator_timeout_seconds
        self.lifecycle = MessageLifecycleEngine(store)
        self._mention_pattern = re.compile(re.escape(mention), re.IGNORECASE)

        logger.info(f"GroupSessionManager initialized: mention='{mention}'")

    def mentions_assistant(self, body: str) -> bool:
        return bool(self._mention_pattern.search(body or ""))

    @returns_result("create_session")
    async def create_session(
        self,
        participants: Sequence[Union[str, Participant]],
        name: Optional[str] = None,
        session_id: Optional[str] = None
    ):
        """
        Create a session with at least two distinct participants.

        Args:
            participants: Participant ids or Participant records
            name: Display name of the session
            session_id: Caller-chosen id; a UUID is generated when omitted

        Returns:
            Result[Session]
        """
        members: List[Participant] = []
        seen = set()
        for entry in participants:
            participant = entry if isinstance(entry, Participant) else Participant(participant_id=entry)
            participant_id = validate_identifier(participant.participant_id, "participant_id")
            if participant_id in seen:
                continue
            seen.add(participant_id)
            members.append(participant.model_copy(update={"participant_id": participant_id}))

        if len(members) < MIN_PARTICIPANTS:
            raise InvalidArgument(
                f"A session needs at least {MIN_PARTICIPANTS} distinct participants",
                field="participants"
            )

        session_id = validate_identifier(session_id, "session_id") if session_id else str(uuid.uuid4())
        session = Session(
            session_id=session_id,
            name=(name or "").strip(),
            participants=members,
            founding_participant_ids=[p.participant_id for p in members],
        )

        session, cost = await self.store.create(session_id, session)
        logger.info(f"Created session {session_id} with {len(members)} participants")
        return with_cost(session, cost)

    @returns_result("get_session")
    async def get_session(self, session_id: str):
        return await self.store.require(validate_identifier(session_id, "session_id"), "Session")

    @returns_result("send_session_message")
    async def send_message(
        self,
        session_id: str,
        sender_id: str,
        body: str,
        continuation_state: Optional[str] = None,
        recipient_id: Optional[str] = None,
        message_id: Optional[str] = None
    ):
        """
        Post a message to a session.

        When the body mentions the assistant the completion collaborator is
        called with the current continuation state; otherwise the state is
        passed through unchanged. Re-sending an already stored message id
        returns the stored message and state without calling the collaborator.

        Args:
            session_id: Target session
            sender_id: Posting participant
            body: Message text
            continuation_state: State from the previous turn; the stored
                state is used when None
            recipient_id: Optional direct recipient (must be a participant)
            message_id: Optional idempotency id

        Returns:
            Result[SendOutcome]
        """
        session_id = validate_identifier(session_id, "session_id")
        sender_id = validate_identifier(sender_id, "sender_id")
        body = validate_body(body)
        if recipient_id is not None:
            recipient_id = validate_identifier(recipient_id, "recipient_id")
        message_id = validate_identifier(message_id, "message_id") if message_id else str(uuid.uuid4())

        session = await self.store.require(session_id, "Session")
        self._check_can_post(session, sender_id, recipient_id)

        existing = session.find_message(message_id)
        if existing is not None:
            logger.info(f"Duplicate session message {message_id} in {session_id}")
            return SendOutcome(
                message=existing,
                continuation_state=session.continuation_state,
                duplicate=True,
            )

        state_in = session.continuation_state if continuation_state is None else continuation_state
        state_out = state_in
        reply = None

        if self.mentions_assistant(body):
            sender = next(p for p in session.participants if p.participant_id == sender_id)
            completion = await with_timeout(
                self.completion.complete(
                    prompt=get_session_turn_prompt(sender.display_name or sender_id, body),
                    continuation_state=state_in or None,
                    instructions=get_session_instructions(
                        session.display_names(), session.name, self.mention
                    ),
                ),
                self.collaborator_timeout_seconds,
                "session assistant completion",
            )
            state_out = completion.continuation_state
            reply = completion.text
            logger.info(f"Assistant answered in session {session_id} ({len(reply)} chars)")

        message = mark_delivered(Message(
            message_id=message_id,
            sender_id=sender_id,
            recipient_id=recipient_id,
            body=body,
        ))

        def merge(document: Session, new_message: Message) -> Session:
            self._check_can_post(document, sender_id, recipient_id)
            return document.model_copy(update={
                "messages": [*document.messages, new_message],
                "continuation_state": state_out,
                "last_activity_at": utc_now(),
            })

        outcome = await self.store.upsert_message(session_id, message, merge_fn=merge)

        if outcome.duplicate:
            # A concurrent retry stored the same id first
            return with_cost(
                SendOutcome(
                    message=outcome.stored_message,
                    continuation_state=outcome.document.continuation_state,
                    duplicate=True,
                ),
                outcome.write_cost,
            )

        return with_cost(
            SendOutcome(message=outcome.stored_message, continuation_state=state_out, assistant_reply=reply),
            outcome.write_cost,
        )

    @staticmethod
    def _check_can_post(session: Session, sender_id: str, recipient_id: Optional[str]) -> None:
        if not session.is_active:
            raise InvalidArgument(f"Session {session.session_id} is closed", field="session_id")
        if not session.has_participant(sender_id):
            raise InvalidArgument(f"{sender_id} is not a participant of this session", field="sender_id")
        if recipient_id is not None and not session.has_participant(recipient_id):
            raise InvalidArgument(
                f"{recipient_id} is not a participant of this session",
                field="recipient_id"
            )

    @returns_result("get_session_messages")
    async def get_messages(self, session_id: str, requester_id: str, unread_only: bool = False):
        """Enriched view of the session for ``requester_id``."""
        requester_id = validate_identifier(requester_id, "requester_id")
        session = await self.store.require(validate_identifier(session_id, "session_id"), "Session")
        if not session.has_participant(requester_id):
            raise InvalidArgument(f"{requester_id} is not a participant of this session", field="requester_id")
        return enrich(session.messages, requester_id, unread_only=unread_only)

    async def mark_read(self, session_id: str, message_ids: Sequence[str], reader_id: str):
        """Mark session messages read by ``reader_id``; returns Result[LifecycleReport]."""
        return await self.lifecycle.mark_read(session_id, message_ids, reader_id)

    @returns_result("close_session")
    async def close_session(self, session_id: str):
        """Deactivate a session. Closing a closed session is a no-op."""
        session_id = validate_identifier(session_id, "session_id")

        def close(session: Session):
            if not session.is_active:
                return None, session
            updated = session.model_copy(update={"is_active": False, "last_activity_at": utc_now()})
            return updated, updated

        try:
            outcome = await self.store.mutate(session_id, close)
        except NotFound:
            raise NotFound("Session", session_id) from None
        logger.info(f"Closed session {session_id} (changed={outcome.changed})")
        return with_cost(outcome.value, outcome.write_cost)

    @returns_result("add_participant")
    async def add_participant(self, session_id: str, participant: Union[str, Participant]):
        """
        Add a participant to an active session.

        The founding participant set is left unchanged. Adding an existing
        participant is a no-op.
        """
        session_id = validate_identifier(session_id, "session_id")
        if not isinstance(participant, Participant):
            participant = Participant(participant_id=participant)
        participant_id = validate_identifier(participant.participant_id, "participant_id")
        participant = participant.model_copy(update={"participant_id": participant_id})

        def add(session: Session):
            if not session.is_active:
                raise InvalidArgument(f"Session {session_id} is closed", field="session_id")
            if session.has_participant(participant_id):
                return None, session
            updated = session.model_copy(update={
                "participants": [*session.participants, participant],
                "last_activity_at": utc_now(),
            })
            return updated, updated

        try:
            outcome = await self.store.mutate(session_id, add)
        except NotFound:
            raise NotFound("Session", session_id) from None
        logger.info(f"Participant {participant_id} in session {session_id} (added={outcome.changed})")
        return with_cost(outcome.value, outcome.write_cost)

    @returns_result("list_sessions")
    async def list_sessions(self, participant_id: str, active_only: bool = False):
        """Sessions the participant belongs to, most recent activity first."""
        participant_id = validate_identifier(participant_id, "participant_id")
        sessions, cost = await self.store.find_by_member(participant_id)
        if active_only:
            sessions = [s for s in sessions if s.is_active]
        sessions.sort(key=lambda s: s.last_activity_at, reverse=True)
        return with_cost(sessions, cost)
