"""
Document Store - interface and in-memory implementation.

The conversation core persists whole JSON documents (one per conversation
or session) through this small interface:

- get: read a document and its etag
- put: conditional write guarded by the etag read earlier
- find_by_member: documents whose member index contains a participant

Every call reports a cost value so callers can log how expensive an
operation was. The cost has no effect on behaviour.
"""
import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from twinlink.core.exceptions import WriteConflict
from twinlink.core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class StoredDocument:
    """A document body together with the etag of the version read."""
    key: str
    body: Dict[str, Any]
    etag: str


@dataclass
class DocumentRead:
    document: Optional[StoredDocument]
    cost: float


@dataclass
class WriteReceipt:
    etag: str
    cost: float


@dataclass
class MemberScan:
    documents: List[StoredDocument] = field(default_factory=list)
    cost: float = 0.0


class DocumentStore(Protocol):
    """
    Storage backend used by twinlink.storage.conversation_store.

    ``put`` with ``etag=None`` must only succeed when the key does not
    exist yet; with an etag it must only succeed when the stored version
    still carries that etag. A failed precondition raises WriteConflict.
    Backend failures raise StoreUnavailable.
    """

    async def get(self, collection: str, key: str) -> DocumentRead:
        ...

    async def put(
        self,
        collection: str,
        key: str,
        body: Dict[str, Any],
        etag: Optional[str],
        members: Sequence[str] = ()
    ) -> WriteReceipt:
        ...

    async def find_by_member(self, collection: str, member_id: str) -> MemberScan:
        ...

    async def check_connection(self) -> bool:
        ...

    def close(self) -> None:
        ...


class InMemoryDocumentStore:
    """
    Process-local document store.

    Used by the test-suite and by ``STORE_BACKEND=memory``. Bodies are deep
    copied on the way in and out so callers never share mutable state with
    the store, and every write bumps a version counter used as the etag.
    """

    READ_COST = 1.0
    WRITE_COST = 1.0

    def __init__(self):
        self._documents: Dict[Tuple[str, str], Tuple[Dict[str, Any], int]] = {}
        self._members: Dict[Tuple[str, str], Set[str]] = {}
        self._version = 0
        logger.info("In-memory document store initialized")

    async def get(self, collection: str, key: str) -> DocumentRead:
        entry = self._documents.get((collection, key))
        if entry is None:
            return DocumentRead(document=None, cost=self.READ_COST)
        body, version = entry
        return DocumentRead(
            document=StoredDocument(key=key, body=copy.deepcopy(body), etag=str(version)),
            cost=self.READ_COST,
        )

    async def put(
        self,
        collection: str,
        key: str,
        body: Dict[str, Any],
        etag: Optional[str],
        members: Sequence[str] = ()
    ) -> WriteReceipt:
        current = self._documents.get((collection, key))

        if etag is None and current is not None:
            raise WriteConflict(collection, key)
        if etag is not None and (current is None or str(current[1]) != etag):
            raise WriteConflict(collection, key)

        self._version += 1
        self._documents[(collection, key)] = (copy.deepcopy(body), self._version)
        self._members[(collection, key)] = set(members)
        return WriteReceipt(etag=str(self._version), cost=self.WRITE_COST)

    async def find_by_member(self, collection: str, member_id: str) -> MemberScan:
        scan = MemberScan(cost=self.READ_COST)
        for (doc_collection, key), members in self._members.items():
            if doc_collection != collection or member_id not in members:
                continue
            body, version = self._documents[(doc_collection, key)]
            scan.documents.append(
                StoredDocument(key=key, body=copy.deepcopy(body), etag=str(version))
            )
        return scan

    async def check_connection(self) -> bool:
        return True

    def close(self) -> None:
        self._documents.clear()
        self._members.clear()
