"""
Conversation Service - two-party messaging.

This service orchestrates the send flow:
1. Resolves the conversation key from the participant pair
2. Builds the message (already delivered, in the same write)
3. Appends it through the conversation store's idempotent upsert
4. Returns the stored message and the key

Reads return the enriched view for one participant, optionally limited to
a recent period or a date range.

Why a service layer:
1. Routes stay thin
2. The core can be exercised without HTTP
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from twinlink.core.exceptions import InvalidArgument
from twinlink.core.logging_config import get_logger
from twinlink.core.results import returns_result, with_cost
from twinlink.core.validators import validate_body, validate_identifier
from twinlink.messaging.lifecycle import MessageLifecycleEngine, enrich, mark_delivered
from twinlink.messaging.pairing import candidate_keys, parse_origin, resolve
from twinlink.models.conversation import Conversation, Message, VoiceAttachment, utc_now
from twinlink.storage.conversation_store import ConversationStore, append_message

logger = get_logger(__name__)

# Recent-period filters (Spanish spellings are accepted from older clients)
PERIOD_DAYS: Dict[str, int] = {
    "day": 1,
    "dia": 1,
    "día": 1,
    "week": 7,
    "semana": 7,
    "month": 30,
    "mes": 30,
}


@dataclass
class SendReceipt:
    """Outcome of a two-party send."""
    conversation_key: str
    message: Message
    created: bool
    duplicate: bool


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def filter_by_period(
    messages: Iterable[Message],
    period: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> List[Message]:
    """
    Keep messages inside a recent period or an explicit date range.

    Args:
        messages: Messages to filter
        period: "day", "week" or "month" (last 1/7/30 days)
        from_date: Inclusive lower bound
        to_date: Inclusive upper bound
        now: Reference time for ``period`` (defaults to the current time)

    Returns:
        Matching messages ordered by created_at

    Raises:
        InvalidArgument: Unknown period or an inverted range
    """
    lower = _as_utc(from_date) if from_date else None
    upper = _as_utc(to_date) if to_date else None

    if period:
        days = PERIOD_DAYS.get(period.strip().lower())
        if days is None:
            raise InvalidArgument(
                f"Unknown period '{period}' (use day, week or month)",
                field="period"
            )
        period_start = (now or utc_now()) - timedelta(days=days)
        lower = max(lower, period_start) if lower else period_start

    if lower and upper and lower > upper:
        raise InvalidArgument("from_date must not be after to_date", field="from_date")

    selected = [
        m for m in messages
        if (lower is None or _as_utc(m.created_at) >= lower)
        and (upper is None or _as_utc(m.created_at) <= upper)
    ]
    selected.sort(key=lambda m: _as_utc(m.created_at))
    return selected


class ConversationService:
    """
    Two-party conversations keyed by participant pair.

    Example:
        >>> service = ConversationService(store)
        >>> sent = await service.send_message("alice", "bob", "hi", message_id="m1")
        >>> sent.value.conversation_key
        'alice_bob'
    """

    def __init__(self, store: ConversationStore[Conversation]):
        self.store = store
        self.lifecycle = MessageLifecycleEngine(store)

    @returns_result("send_message")
    async def send_message(
        self,
        sender_id: str,
        recipient_id: str,
        body: str = "",
        owner_id: Optional[str] = None,
        origin: Optional[str] = None,
        message_id: Optional[str] = None,
        voice: Optional[VoiceAttachment] = None,
        client_id: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None
    ):
        """
        Send a message from ``sender_id`` to ``recipient_id``.

        Re-sending the same ``message_id`` is a no-op that returns the
        stored message.

        Args:
            sender_id: Author (the initiator for directed keys)
            recipient_id: Addressee (the responder for directed keys)
            body: Text; may be empty when a voice attachment is given
            owner_id: Application owner of the conversation
            origin: Key derivation hint (see messaging.pairing.parse_origin)
            message_id: Idempotency id; a UUID is generated when omitted
            voice: Optional voice-note reference
            client_id: Optional owner-side client reference
            metadata: Free-form string attributes

        Returns:
            Result[SendReceipt]
        """
        sender_id = validate_identifier(sender_id, "sender_id")
        recipient_id = validate_identifier(recipient_id, "recipient_id")
        if sender_id == recipient_id:
            raise InvalidArgument("sender_id and recipient_id must differ", field="recipient_id")

        mode = parse_origin(origin)
        key = resolve(sender_id, recipient_id, mode)
        body = validate_body(body, has_attachment=voice is not None)
        message_id = validate_identifier(message_id, "message_id") if message_id else str(uuid.uuid4())

        message = mark_delivered(Message(
            message_id=message_id,
            sender_id=sender_id,
            recipient_id=recipient_id,
            body=body,
            message_type="voice" if voice is not None else "text",
            voice=voice,
            client_id=client_id,
            metadata=metadata or {},
        ))

        def seed(first: Message) -> Conversation:
            return Conversation(
                key=key,
                participants=[sender_id, recipient_id],
                owner_id=owner_id,
                origin=mode,
                messages=[first],
                created_at=first.created_at,
                last_activity_at=first.created_at,
            )

        def merge(conversation: Conversation, new_message: Message) -> Conversation:
            if set(conversation.participants) != {sender_id, recipient_id}:
                raise InvalidArgument(
                    f"Conversation {key} belongs to other participants",
                    field="recipient_id"
                )
            return append_message(conversation, new_message)

        outcome = await self.store.upsert_message(key, message, merge_fn=merge, seed_fn=seed)

        return with_cost(
            SendReceipt(
                conversation_key=key,
                message=outcome.stored_message,
                created=outcome.created,
                duplicate=outcome.duplicate,
            ),
            outcome.write_cost,
        )

    @returns_result("get_conversation")
    async def get_conversation(self, key: str):
        return await self.store.require(validate_identifier(key, "key"), "Conversation")

    @returns_result("get_messages")
    async def get_messages(
        self,
        key: str,
        requester_id: str,
        unread_only: bool = False,
        period: Optional[str] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None
    ):
        """
        Enriched view of a conversation for one of its participants.

        Returns:
            Result[MessageView]
        """
        requester_id = validate_identifier(requester_id, "requester_id")
        conversation = await self.store.require(validate_identifier(key, "key"), "Conversation")
        if not conversation.has_participant(requester_id):
            raise InvalidArgument(
                f"{requester_id} is not a participant of this conversation",
                field="requester_id"
            )

        messages = conversation.messages
        if period or from_date or to_date:
            messages = filter_by_period(messages, period, from_date, to_date)

        view = enrich(messages, requester_id, unread_only=unread_only)
        logger.debug(
            f"View of {key} for {requester_id}: {len(view.messages)} messages, "
            f"{view.unread_count} unread"
        )
        return view

    async def mark_read(self, key: str, message_ids: Sequence[str], reader_id: str):
        """Result[LifecycleReport] for a read-receipt batch."""
        return await self.lifecycle.mark_read(key, message_ids, reader_id)

    async def mark_delivered(self, key: str, message_ids: Sequence[str], recipient_id: str):
        """Result[LifecycleReport] for a delivery-receipt batch."""
        return await self.lifecycle.mark_delivered(key, message_ids, recipient_id)

    @returns_result("find_pair_conversations")
    async def find_pair_conversations(self, participant_a: str, participant_b: str):
        """
        Every stored conversation between two participants, whichever key
        order it was created under, most recent activity first.
        """
        found: List[Conversation] = []
        for key in candidate_keys(participant_a, participant_b):
            conversation = await self.store.load(key)
            if conversation is not None:
                found.append(conversation)

        found.sort(key=lambda c: c.last_activity_at, reverse=True)
        logger.info(f"Pair lookup {participant_a}/{participant_b}: {len(found)} conversation(s)")
        return found

    @returns_result("list_conversations")
    async def list_conversations(self, participant_id: str):
        """Conversations the participant is part of, most recent activity first."""
        participant_id = validate_identifier(participant_id, "participant_id")
        conversations, cost = await self.store.find_by_member(participant_id)
        conversations.sort(key=lambda c: c.last_activity_at, reverse=True)
        return with_cost(conversations, cost)
