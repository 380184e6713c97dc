"""
Dependency wiring for the HTTP layer.

``build_container`` constructs every collaborator once at startup; the
result is stored on ``app.state.container`` and handed to routes through
FastAPI dependencies. Tests build their own container with fakes.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Request

from twinlink.core.config import Settings
from twinlink.core.exceptions import status_code_for
from twinlink.core.logging_config import get_logger
from twinlink.core.results import Result
from twinlink.llm.client import CompletionClient, CompletionCollaborator, UnconfiguredCompletion
from twinlink.messaging.sessions import GroupSessionManager
from twinlink.models.conversation import Conversation, Session
from twinlink.models.routing import AgentName
from twinlink.routing.agents import AgentHandler, build_dispatch_table, parse_agent_list
from twinlink.routing.classifier import AgentClassifier, KeywordAgentClassifier, LLMAgentClassifier
from twinlink.routing.router import IntentRouter
from twinlink.services.conversation_service import ConversationService
from twinlink.storage.conversation_store import ConversationStore
from twinlink.storage.documents import DocumentStore, InMemoryDocumentStore

logger = get_logger(__name__)

CONVERSATIONS_COLLECTION = "conversations"
SESSIONS_COLLECTION = "sessions"


@dataclass
class Container:
    """Collaborators shared by all requests."""
    settings: Settings
    documents: DocumentStore
    conversations: ConversationService
    sessions: GroupSessionManager
    router: IntentRouter


def build_document_store(settings: Settings) -> DocumentStore:
    """Select the document store backend from settings."""
    if settings.uses_sql_store():
        from twinlink.storage.sql_store import SQLDocumentStore

        store = SQLDocumentStore(settings.database_url)
        store.init_tables()
        return store
    return InMemoryDocumentStore()


def build_completion(settings: Settings, model: Optional[str] = None) -> CompletionCollaborator:
    if not settings.has_llm_credentials():
        logger.warning("No LLM provider configured; assistant features will report errors")
        return UnconfiguredCompletion()
    return CompletionClient(settings, model=model)


def build_container(
    settings: Settings,
    documents: Optional[DocumentStore] = None,
    completion: Optional[CompletionCollaborator] = None,
    classifier: Optional[AgentClassifier] = None,
    handlers: Optional[Dict[AgentName, AgentHandler]] = None
) -> Container:
    """
    Build the application container.

    Args:
        settings: Application settings
        documents: Document store (selected from settings when omitted)
        completion: Completion collaborator (built from settings when omitted)
        classifier: Intent classifier (selected by CLASSIFIER_BACKEND when omitted)
        handlers: Dispatch table (completion-backed agents when omitted)
    """
    documents = documents or build_document_store(settings)
    completion = completion or build_completion(settings)
    agents = parse_agent_list(settings.enabled_agents) or list(AgentName)

    conversation_store = ConversationStore(
        documents,
        CONVERSATIONS_COLLECTION,
        Conversation,
        max_write_retries=settings.max_write_retries,
        timeout_seconds=settings.store_timeout_seconds,
    )
    session_store = ConversationStore(
        documents,
        SESSIONS_COLLECTION,
        Session,
        max_write_retries=settings.max_write_retries,
        timeout_seconds=settings.store_timeout_seconds,
    )

    if classifier is None:
        if settings.classifier_backend == "llm":
            classifier_completion = (
                build_completion(settings, model=settings.llm_model_fast)
                if settings.has_llm_credentials() else completion
            )
            classifier = LLMAgentClassifier(classifier_completion, agents)
        else:
            classifier = KeywordAgentClassifier(agents)

    container = Container(
        settings=settings,
        documents=documents,
        conversations=ConversationService(conversation_store),
        sessions=GroupSessionManager(
            session_store,
            completion,
            mention=settings.assistant_mention,
            collaborator_timeout_seconds=settings.collaborator_timeout_seconds,
        ),
        router=IntentRouter(
            classifier,
            handlers if handlers is not None else build_dispatch_table(completion, agents),
            collaborator_timeout_seconds=settings.collaborator_timeout_seconds,
        ),
    )
    logger.info(
        f"Container built: store={type(documents).__name__}, "
        f"classifier={type(classifier).__name__}, agents={len(container.router.handlers)}"
    )
    return container


class ResultFailure(Exception):
    """Raised by routes when a core operation returned a failed Result."""

    def __init__(self, result: Result):
        super().__init__(result.message)
        self.result = result
        self.status_code = status_code_for(result.error)


def unwrap(result: Result):
    """Return the value of a successful Result or raise ResultFailure."""
    if not result.success:
        raise ResultFailure(result)
    return result.value


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_conversation_service(request: Request) -> ConversationService:
    return get_container(request).conversations


def get_session_manager(request: Request) -> GroupSessionManager:
    return get_container(request).sessions


def get_intent_router(request: Request) -> IntentRouter:
    return get_container(request).router
