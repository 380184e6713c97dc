"""
Message Lifecycle Engine - Sent -> Delivered -> Read.

The per-message transitions are pure functions that return updated copies
of the frozen Message model. The engine applies them to stored documents
in batches through the conversation store's retry loop, and builds the
per-requester enriched view used by readers.

Transitions only move forward: a read message is never unread, and a
message is never shown as read without also being delivered.
"""
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from twinlink.core.exceptions import InvalidArgument
from twinlink.core.logging_config import get_logger
from twinlink.core.results import returns_result, with_cost
from twinlink.core.validators import validate_identifier
from twinlink.models.conversation import (
    EnrichedMessage,
    LifecycleReport,
    Message,
    MessageLog,
    MessageView,
    utc_now,
)
from twinlink.storage.conversation_store import ConversationStore

logger = get_logger(__name__)


def mark_delivered(message: Message, now: Optional[datetime] = None) -> Message:
    """Return a delivered copy; already-delivered messages are returned as is."""
    if message.is_delivered:
        return message
    return message.model_copy(update={
        "is_delivered": True,
        "delivered_at": now or utc_now(),
    })


def mark_read(message: Message, now: Optional[datetime] = None) -> Message:
    """
    Return a read copy.

    A message that was never delivered is marked delivered with the same
    timestamp. Already-read messages are returned unchanged.
    """
    if message.is_read:
        return message
    timestamp = now or utc_now()
    delivered = mark_delivered(message, timestamp)
    return delivered.model_copy(update={"is_read": True, "read_at": timestamp})


def enrich(
    messages: Iterable[Message],
    requester_id: str,
    unread_only: bool = False
) -> MessageView:
    """
    Build the enriched view of ``messages`` for ``requester_id``.

    Counts always cover the full list; ``unread_only`` only filters the
    returned messages.
    """
    enriched: List[EnrichedMessage] = []
    unread_count = 0
    total_count = 0

    for message in messages:
        total_count += 1
        is_mine = message.sender_id == requester_id
        is_for_me = message.recipient_id is None or message.recipient_id == requester_id
        needs_confirmation = not is_mine and not message.is_read and is_for_me
        if needs_confirmation:
            unread_count += 1
        if unread_only and not needs_confirmation:
            continue
        enriched.append(EnrichedMessage(
            **message.model_dump(),
            is_mine=is_mine,
            is_for_me=is_for_me,
            needs_read_confirmation=needs_confirmation,
        ))

    return MessageView(
        requester_id=requester_id,
        messages=enriched,
        unread_count=unread_count,
        total_count=total_count,
    )


Transition = Callable[[Message, Optional[datetime]], Message]


def _apply_batch(
    document: MessageLog,
    message_ids: Sequence[str],
    participant_id: str,
    transition: Transition,
    is_done: Callable[[Message], bool],
    now: datetime
) -> Tuple[Optional[MessageLog], LifecycleReport]:
    if participant_id not in document.member_ids():
        raise InvalidArgument(f"{participant_id} is not a participant", field="participant_id")

    report = LifecycleReport()
    messages = list(document.messages)
    seen = set()

    for message_id in message_ids:
        if message_id in seen:
            continue
        seen.add(message_id)

        position = document.index_of(message_id)
        if position < 0:
            report.not_found.append(message_id)
            continue
        message = messages[position]
        if not message.is_addressed_to(participant_id):
            report.not_addressed.append(message_id)
            continue
        if is_done(message):
            report.already_done.append(message_id)
            continue
        messages[position] = transition(message, now)
        report.marked.append(message_id)

    if not report.marked:
        return None, report
    return document.model_copy(update={"messages": messages}), report


class MessageLifecycleEngine:
    """
    Applies lifecycle transitions to stored message logs.

    One engine wraps one ConversationStore (conversations or sessions).
    """

    def __init__(self, store: ConversationStore):
        self.store = store

    @returns_result("mark_read")
    async def mark_read(self, key: str, message_ids: Sequence[str], reader_id: str):
        """
        Mark the given messages read by ``reader_id``.

        Ids that do not exist, are addressed to someone else, or are already
        read are reported in the LifecycleReport; they never fail the batch.
        A reader who is not a member of the log fails with InvalidArgument.
        Nothing is written when no message changes.

        Returns:
            Result[LifecycleReport]
        """
        return await self._apply(key, message_ids, reader_id, mark_read, lambda m: m.is_read)

    @returns_result("mark_delivered")
    async def mark_delivered(self, key: str, message_ids: Sequence[str], recipient_id: str):
        """Mark the given messages delivered to ``recipient_id``; see mark_read."""
        return await self._apply(
            key, message_ids, recipient_id, mark_delivered, lambda m: m.is_delivered
        )

    async def _apply(
        self,
        key: str,
        message_ids: Sequence[str],
        participant_id: str,
        transition: Transition,
        is_done: Callable[[Message], bool]
    ):
        participant_id = validate_identifier(participant_id, "participant_id")
        ids = [validate_identifier(mid, "message_id") for mid in message_ids]
        now = utc_now()

        outcome = await self.store.mutate(
            key,
            lambda document: _apply_batch(document, ids, participant_id, transition, is_done, now),
        )
        report: LifecycleReport = outcome.value
        report.write_cost = outcome.write_cost

        logger.info(
            f"{transition.__name__} on {self.store.collection}/{key} by {participant_id}: "
            f"marked={len(report.marked)}, already={len(report.already_done)}, "
            f"not_found={len(report.not_found)}, not_addressed={len(report.not_addressed)}, "
            f"cost={outcome.write_cost:g}"
        )
        return with_cost(report, outcome.write_cost)
