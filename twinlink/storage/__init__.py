"""Storage module - document stores and the optimistic conversation store."""
from twinlink.storage.conversation_store import ConversationStore, MutateOutcome, UpsertOutcome
from twinlink.storage.documents import DocumentStore, InMemoryDocumentStore, StoredDocument

__all__ = [
    "ConversationStore",
    "DocumentStore",
    "InMemoryDocumentStore",
    "MutateOutcome",
    "StoredDocument",
    "UpsertOutcome",
]
