"""
Intent Router - bind a routing session to a sub-agent and keep it there.

Each turn is either:
- Bound: the caller passes the agent chosen on an earlier turn; the
  message goes straight to that agent's handler
- Unbound: the classifier picks an agent; the router confirms the choice
  and binds without calling the handler yet, or asks the user to clarify

The routing state (agent name and turn counter) lives with the caller and
comes back on every request. The turn counter in the result is always the
incoming counter plus one.
"""
import html
import re
from typing import Dict, Optional, Union

from twinlink.core.exceptions import ErrorKind, InvalidArgument, TwinLinkError, UnknownAgent
from twinlink.core.logging_config import get_logger
from twinlink.core.timeouts import with_timeout
from twinlink.core.validators import sanitize_message, validate_identifier
from twinlink.llm.prompts import get_clarification_prompt, get_confirmation_prompt
from twinlink.models.routing import AgentName, RoutingResult, RoutingStatus
from twinlink.routing.agents import AgentHandler
from twinlink.routing.classifier import AgentClassifier

logger = get_logger(__name__)

_BLOCK_TAGS = re.compile(r"<\s*(br|/p|/div|/li|/h[1-6]|/tr)\b[^>]*>", re.IGNORECASE)
_TAGS = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")

RETRY_PROMPT = "Sorry, I couldn't process that right now. Please try again in a moment."


def strip_markup(text: Optional[str]) -> str:
    """
    Remove presentation markup from agent output.

    Tags are removed (block-level closers become spaces), HTML entities
    are decoded and whitespace runs collapse to a single space.
    """
    if not text:
        return ""
    without_blocks = _BLOCK_TAGS.sub(" ", text)
    without_tags = _TAGS.sub("", without_blocks)
    decoded = html.unescape(without_tags)
    return _WHITESPACE.sub(" ", decoded).strip()


class IntentRouter:
    """
    Routes utterances to sub-agents.

    Args:
        classifier: Classifier used on unbound turns
        handlers: Dispatch table of agents that can be bound
        collaborator_timeout_seconds: Deadline for classifier and handler calls

    Example:
        >>> router = IntentRouter(KeywordAgentClassifier(), handlers)
        >>> first = await router.route("twin-1", "I want to save a memory")
        >>> first.agent_name, first.turn_number
        (<AgentName.MIS_MEMORIAS: 'Mis-Memorias'>, 1)
        >>> second = await router.route("twin-1", "Today I ...", first.agent_name, first.turn_number)
        >>> second.turn_number
        2
    """

    def __init__(
        self,
        classifier: AgentClassifier,
        handlers: Dict[AgentName, AgentHandler],
        collaborator_timeout_seconds: Optional[float] = None
    ):
        self.classifier = classifier
        self.handlers = dict(handlers)
        self.collaborator_timeout_seconds = collaborator_timeout_seconds

        logger.info(f"IntentRouter initialized with {len(self.handlers)} agents")

    @property
    def registered_agents(self):
        return [agent.value for agent in self.handlers]

    def clarification_prompt(self) -> str:
        return get_clarification_prompt([agent.label for agent in self.handlers])

    async def route(
        self,
        twin_id: str,
        message: str,
        current_agent: Optional[Union[str, AgentName]] = None,
        turn_number: int = 0
    ) -> RoutingResult:
        """
        Route one user turn.

        Args:
            twin_id: Owner of the routing session
            message: User utterance, passed to the classifier and handler as typed
            current_agent: Agent bound on a previous turn, if any
            turn_number: Turn counter returned by the previous call (0 at start)

        Returns:
            RoutingResult; failures are reported in the result, never raised
        """
        next_turn = turn_number + 1 if turn_number >= 0 else 1
        bound_name = current_agent.value if isinstance(current_agent, AgentName) else current_agent

        try:
            if turn_number < 0:
                raise InvalidArgument("turn_number must not be negative", field="turn_number")
            twin_id = validate_identifier(twin_id, "twin_id")
            text = sanitize_message(message or "")
            if not text:
                raise InvalidArgument("Message cannot be empty", field="message")

            if bound_name:
                return await self._continue(twin_id, text, bound_name, next_turn)
            return await self._classify(twin_id, text, next_turn)

        except UnknownAgent as e:
            logger.warning(f"Routing for {twin_id} targeted unknown agent '{e.agent_name}'")
            return RoutingResult(
                success=False,
                status=RoutingStatus.UNBOUND,
                twin_id=twin_id or "",
                response_prompt=self.clarification_prompt(),
                turn_number=next_turn,
                error=ErrorKind.UNKNOWN_AGENT,
                error_message=e.message,
            )
        except TwinLinkError as e:
            log_fn = logger.warning if e.retryable else logger.info
            log_fn(f"Routing failed for {twin_id}: {e.error_code.value}: {e.message}")
            bound_agent = AgentName.parse(bound_name) if bound_name else None
            return RoutingResult(
                success=False,
                status=RoutingStatus.BOUND if bound_agent else RoutingStatus.UNBOUND,
                twin_id=twin_id or "",
                agent_name=bound_agent,
                response_prompt=RETRY_PROMPT if e.retryable else e.message,
                turn_number=next_turn,
                error=e.error_code,
                error_message=e.message,
            )
        except Exception as e:
            logger.exception(f"Unexpected routing error for {twin_id}: {e}")
            return RoutingResult(
                success=False,
                status=RoutingStatus.UNBOUND,
                twin_id=twin_id or "",
                response_prompt=RETRY_PROMPT,
                turn_number=next_turn,
                error=ErrorKind.INTERNAL,
                error_message="routing failed unexpectedly",
            )

    async def _continue(self, twin_id: str, text: str, agent_name: str, next_turn: int) -> RoutingResult:
        agent = self._lookup(agent_name)

        reply = await with_timeout(
            self.handlers[agent].handle(twin_id, text),
            self.collaborator_timeout_seconds,
            f"agent {agent.value}",
        )

        logger.info(f"Routed turn {next_turn} for {twin_id} to {agent.value}")
        return RoutingResult(
            success=True,
            status=RoutingStatus.BOUND,
            twin_id=twin_id,
            agent_name=agent,
            response_prompt=strip_markup(reply),
            turn_number=next_turn,
            confidence=1.0,
            reason="continuing with bound agent",
        )

    async def _classify(self, twin_id: str, text: str, next_turn: int) -> RoutingResult:
        classification = await with_timeout(
            self.classifier.classify(text),
            self.collaborator_timeout_seconds,
            "intent classification",
        )

        if not classification.agent_name:
            logger.info(f"No agent selected for {twin_id} ({classification.reason})")
            return RoutingResult(
                success=True,
                status=RoutingStatus.UNBOUND,
                twin_id=twin_id,
                response_prompt=self.clarification_prompt(),
                turn_number=next_turn,
                confidence=classification.confidence,
                reason=classification.reason,
            )

        agent = self._lookup(classification.agent_name)

        logger.info(
            f"Bound {twin_id} to {agent.value} "
            f"(confidence={classification.confidence:.2f}, turn={next_turn})"
        )
        return RoutingResult(
            success=True,
            status=RoutingStatus.BOUND,
            twin_id=twin_id,
            agent_name=agent,
            response_prompt=get_confirmation_prompt(agent.label),
            turn_number=next_turn,
            confidence=classification.confidence,
            reason=classification.reason,
        )

    def _lookup(self, name: str) -> AgentName:
        agent = AgentName.parse(name)
        if agent is None or agent not in self.handlers:
            raise UnknownAgent(name)
        return agent
