"""
Conversation Store - optimistic read-modify-write over a DocumentStore.

Each conversation or session is a single document. Writers never lock;
they read the document and its etag, apply a pure function, and write back
conditionally. When another writer got there first the whole cycle is
retried from a fresh read, up to ``max_write_retries`` attempts.

Appends are idempotent on message_id: re-sending a message that is
already stored returns the stored copy without writing.
"""
import asyncio
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Tuple, Type, TypeVar

from twinlink.core.exceptions import ConcurrencyExceeded, InvalidArgument, NotFound, WriteConflict
from twinlink.core.logging_config import get_logger
from twinlink.core.timeouts import with_timeout
from twinlink.models.conversation import Message, utc_now, MessageLog
from twinlink.storage.documents import DocumentStore

logger = get_logger(__name__)

D = TypeVar("D", bound=MessageLog)
R = TypeVar("R")

MergeFn = Callable[[D, Message], D]
SeedFn = Callable[[Message], D]
# Returns (new document or None when nothing changed, value for the caller)
MutateFn = Callable[[D], Tuple[Optional[D], R]]


def append_message(document: D, message: Message) -> D:
    """Default merge: append and bump last activity."""
    return document.model_copy(update={
        "messages": [*document.messages, message],
        "last_activity_at": max(document.last_activity_at, message.created_at, utc_now()),
    })


@dataclass
class UpsertOutcome(Generic[D]):
    """Result of an idempotent append."""
    document: D
    stored_message: Message
    created: bool
    duplicate: bool
    write_cost: float


@dataclass
class MutateOutcome(Generic[D, R]):
    """Result of an in-place document update."""
    document: D
    value: R
    changed: bool
    write_cost: float


class ConversationStore(Generic[D]):
    """
    Typed adapter for one collection of message-log documents.

    Args:
        documents: Backend implementing the DocumentStore interface
        collection: Collection name (e.g. "conversations", "sessions")
        model: Document model class used to (de)serialize bodies
        max_write_retries: Attempts before giving up with ConcurrencyExceeded
        timeout_seconds: Deadline for every single store call
    """

    def __init__(
        self,
        documents: DocumentStore,
        collection: str,
        model: Type[D],
        max_write_retries: int = 5,
        timeout_seconds: Optional[float] = None
    ):
        if max_write_retries < 1:
            raise ValueError("max_write_retries must be at least 1")
        self.documents = documents
        self.collection = collection
        self.model = model
        self.max_write_retries = max_write_retries
        self.timeout_seconds = timeout_seconds

    async def _read(self, key: str) -> Tuple[Optional[D], Optional[str], float]:
        read = await with_timeout(
            self.documents.get(self.collection, key),
            self.timeout_seconds,
            f"read {self.collection}/{key}",
        )
        if read.document is None:
            return None, None, read.cost
        return self.model.from_document(read.document.body), read.document.etag, read.cost

    async def _write(self, key: str, document: D, etag: Optional[str]) -> float:
        receipt = await with_timeout(
            self.documents.put(
                self.collection,
                key,
                document.to_document(),
                etag,
                members=document.member_ids(),
            ),
            self.timeout_seconds,
            f"write {self.collection}/{key}",
        )
        return receipt.cost

    async def load(self, key: str) -> Optional[D]:
        """Fetch a document; a miss returns None."""
        document, _, cost = await self._read(key)
        logger.debug(f"Loaded {self.collection}/{key} (found={document is not None}, cost={cost:g})")
        return document

    async def require(self, key: str, resource: str = "Document") -> D:
        document = await self.load(key)
        if document is None:
            raise NotFound(resource, key)
        return document

    async def create(self, key: str, document: D) -> Tuple[D, float]:
        """
        Create a new document.

        Raises:
            InvalidArgument: If a document with this key already exists
        """
        try:
            cost = await self._write(key, document, etag=None)
        except WriteConflict as e:
            raise InvalidArgument(f"{self.collection} '{key}' already exists", field="key") from e
        logger.info(f"Created {self.collection}/{key} (cost={cost:g})")
        return document, cost

    async def upsert_message(
        self,
        key: str,
        message: Message,
        merge_fn: MergeFn = append_message,
        seed_fn: Optional[SeedFn] = None
    ) -> UpsertOutcome[D]:
        """
        Append ``message`` to the document at ``key`` exactly once.

        Args:
            key: Document key
            message: Message to append
            merge_fn: Builds the updated document from the current one
            seed_fn: Builds a new document when none exists; when omitted a
                missing document raises NotFound

        Returns:
            UpsertOutcome with the written (or already-stored) state

        Raises:
            NotFound: Missing document and no seed_fn
            ConcurrencyExceeded: Retry budget exhausted
            StoreUnavailable, OperationTimeout: Backend failures
        """
        total_cost = 0.0

        for attempt in range(1, self.max_write_retries + 1):
            document, etag, cost = await self._read(key)
            total_cost += cost

            if document is None:
                if seed_fn is None:
                    raise NotFound(self.collection, key)
                updated = seed_fn(message)
                created = True
            else:
                existing = document.find_message(message.message_id)
                if existing is not None:
                    logger.info(
                        f"Duplicate message {message.message_id} on {self.collection}/{key}, "
                        f"skipping write (cost={total_cost:g})"
                    )
                    return UpsertOutcome(
                        document=document,
                        stored_message=existing,
                        created=False,
                        duplicate=True,
                        write_cost=total_cost,
                    )
                updated = merge_fn(document, message)
                created = False

            try:
                total_cost += await self._write(key, updated, etag)
            except WriteConflict:
                logger.warning(
                    f"Write conflict on {self.collection}/{key} "
                    f"(attempt {attempt}/{self.max_write_retries})"
                )
                await asyncio.sleep(0)
                continue

            logger.info(
                f"Appended message {message.message_id} to {self.collection}/{key} "
                f"(created={created}, attempts={attempt}, cost={total_cost:g})"
            )
            return UpsertOutcome(
                document=updated,
                stored_message=updated.find_message(message.message_id) or message,
                created=created,
                duplicate=False,
                write_cost=total_cost,
            )

        raise ConcurrencyExceeded(f"{self.collection}/{key}", self.max_write_retries)

    async def mutate(self, key: str, mutate_fn: MutateFn) -> MutateOutcome:
        """
        Apply ``mutate_fn`` to the stored document with the same retry loop.

        When ``mutate_fn`` returns no new document nothing is written.

        Raises:
            NotFound: If the document does not exist
            ConcurrencyExceeded: Retry budget exhausted
        """
        total_cost = 0.0

        for attempt in range(1, self.max_write_retries + 1):
            document, etag, cost = await self._read(key)
            total_cost += cost
            if document is None:
                raise NotFound(self.collection, key)

            updated, value = mutate_fn(document)
            if updated is None:
                return MutateOutcome(document=document, value=value, changed=False, write_cost=total_cost)

            try:
                total_cost += await self._write(key, updated, etag)
            except WriteConflict:
                logger.warning(
                    f"Write conflict on {self.collection}/{key} "
                    f"(attempt {attempt}/{self.max_write_retries})"
                )
                await asyncio.sleep(0)
                continue

            logger.debug(f"Updated {self.collection}/{key} (attempts={attempt}, cost={total_cost:g})")
            return MutateOutcome(document=updated, value=value, changed=True, write_cost=total_cost)

        raise ConcurrencyExceeded(f"{self.collection}/{key}", self.max_write_retries)

    async def find_by_member(self, member_id: str) -> Tuple[List[D], float]:
        scan = await with_timeout(
            self.documents.find_by_member(self.collection, member_id),
            self.timeout_seconds,
            f"list {self.collection} for {member_id}",
        )
        return [self.model.from_document(doc.body) for doc in scan.documents], scan.cost
