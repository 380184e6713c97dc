"""
Test Configuration and Fixtures

Shared fakes for the collaborators (completion, agent handlers) and store
wrappers that inject conflicts, latency and outages.
"""
import asyncio
import dataclasses
import os
import tempfile
from typing import Any, Dict, List, Optional, Sequence

import pytest

# Set test environment variables before importing the app
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="twinlink-logs-"))
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("ENABLE_AUDIT_LOGGING", "true")
os.environ["GROQ_API_KEY"] = ""
os.environ["GOOGLE_API_KEY"] = ""

from twinlink.core.config import Settings, get_settings  # noqa: E402
from twinlink.core.exceptions import CollaboratorFailure, StoreUnavailable, WriteConflict  # noqa: E402
from twinlink.llm.client import Completion  # noqa: E402
from twinlink.messaging.sessions import GroupSessionManager  # noqa: E402
from twinlink.models.conversation import Conversation, Session  # noqa: E402
from twinlink.models.routing import AgentName, Classification  # noqa: E402
from twinlink.routing.classifier import KeywordAgentClassifier  # noqa: E402
from twinlink.routing.router import IntentRouter  # noqa: E402
from twinlink.services.conversation_service import ConversationService  # noqa: E402
from twinlink.storage.conversation_store import ConversationStore  # noqa: E402
from twinlink.storage.documents import DocumentRead, InMemoryDocumentStore, MemberScan, WriteReceipt  # noqa: E402


# =============================================================================
# COLLABORATOR FAKES
# =============================================================================


class FakeCompletion:
    """Completion collaborator returning numbered replies and states."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def complete(
        self,
        prompt: str,
        continuation_state: Optional[str] = None,
        instructions: Optional[str] = None
    ) -> Completion:
        self.calls.append({
            "prompt": prompt,
            "continuation_state": continuation_state,
            "instructions": instructions,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise CollaboratorFailure("model unavailable")
        turn = len(self.calls)
        return Completion(text=f"assistant reply {turn}", continuation_state=f"state-{turn}")


class FakeHandler:
    """Sub-agent handler that echoes with fixed markup."""

    def __init__(self, reply: str = "<p>Saved &amp; done</p>"):
        self.reply = reply
        self.calls: List[tuple] = []

    async def handle(self, twin_id: str, message: str) -> str:
        self.calls.append((twin_id, message))
        return self.reply


class FixedClassifier:
    """Classifier returning a preset verdict."""

    def __init__(self, agent_name: Optional[str], confidence: float = 0.9, message: Optional[str] = None):
        self.result = Classification(agent_name=agent_name, confidence=confidence, reason="fixed", message=message)
        self.calls: List[str] = []

    async def classify(self, text: str):
        self.calls.append(text)
        return self.result


# =============================================================================
# STORE WRAPPERS
# =============================================================================


class InterleavingStore:
    """
    Yields to the event loop after every read so that concurrent writers
    read the same version and race on the conditional write.
    """

    def __init__(self, inner: InMemoryDocumentStore):
        self.inner = inner
        self.conflicts = 0

    async def get(self, collection: str, key: str) -> DocumentRead:
        read = await self.inner.get(collection, key)
        await asyncio.sleep(0)
        return read

    async def put(self, collection, key, body, etag, members: Sequence[str] = ()) -> WriteReceipt:
        try:
            return await self.inner.put(collection, key, body, etag, members)
        except WriteConflict:
            self.conflicts += 1
            raise

    async def find_by_member(self, collection: str, member_id: str) -> MemberScan:
        return await self.inner.find_by_member(collection, member_id)

    async def check_connection(self) -> bool:
        return True

    def close(self) -> None:
        self.inner.close()


class AlwaysConflictingStore(InMemoryDocumentStore):
    """Every conditional write loses the race."""

    def __init__(self):
        super().__init__()
        self.put_attempts = 0

    async def put(self, collection, key, body, etag, members: Sequence[str] = ()) -> WriteReceipt:
        self.put_attempts += 1
        raise WriteConflict(collection, key)


class SlowStore(InMemoryDocumentStore):
    """Reads take longer than any reasonable test timeout."""

    async def get(self, collection: str, key: str) -> DocumentRead:
        await asyncio.sleep(5)
        return await super().get(collection, key)


class UnavailableStore(InMemoryDocumentStore):
    async def get(self, collection: str, key: str) -> DocumentRead:
        raise StoreUnavailable("backend down")

    async def check_connection(self) -> bool:
        return False


# =============================================================================
# FIXTURES
# =============================================================================


def make_settings(**overrides) -> Settings:
    get_settings.cache_clear()
    return dataclasses.replace(get_settings(), **overrides)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def conversation_store(documents) -> ConversationStore:
    return ConversationStore(documents, "conversations", Conversation, max_write_retries=5)


@pytest.fixture
def session_store(documents) -> ConversationStore:
    return ConversationStore(documents, "sessions", Session, max_write_retries=5)


@pytest.fixture
def conversation_service(conversation_store) -> ConversationService:
    return ConversationService(conversation_store)


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def session_manager(session_store, completion) -> GroupSessionManager:
    return GroupSessionManager(session_store, completion, mention="@assistant")


@pytest.fixture
def handlers() -> Dict[AgentName, FakeHandler]:
    return {agent: FakeHandler() for agent in AgentName}


@pytest.fixture
def intent_router(handlers) -> IntentRouter:
    return IntentRouter(KeywordAgentClassifier(), handlers)
