"""
Sub-agent handlers and the dispatch table used by the intent router.

A handler turns one user message into one reply. The default handlers are
backed by the completion collaborator, each with its own system prompt;
other implementations only need the ``handle`` coroutine.
"""
from typing import Dict, Iterable, Optional, Protocol

from twinlink.core.logging_config import get_logger
from twinlink.llm.client import CompletionCollaborator
from twinlink.llm.prompts import AGENT_DESCRIPTIONS, get_agent_instructions
from twinlink.models.routing import AgentName

logger = get_logger(__name__)


class AgentHandler(Protocol):
    async def handle(self, twin_id: str, message: str) -> str:
        ...


class CompletionAgentHandler:
    """Answers with a single completion call scoped by the agent's prompt."""

    def __init__(self, agent: AgentName, completion: CompletionCollaborator):
        self.agent = agent
        self.completion = completion

    async def handle(self, twin_id: str, message: str) -> str:
        completion = await self.completion.complete(
            prompt=message,
            instructions=get_agent_instructions(
                self.agent.value,
                AGENT_DESCRIPTIONS.get(self.agent.value, self.agent.label),
                twin_id,
            ),
        )
        return completion.text


def build_dispatch_table(
    completion: CompletionCollaborator,
    agents: Optional[Iterable[AgentName]] = None
) -> Dict[AgentName, AgentHandler]:
    """
    Register a completion-backed handler for each enabled agent.

    Args:
        completion: Collaborator shared by all handlers
        agents: Agents to register (all of them when omitted)
    """
    table: Dict[AgentName, AgentHandler] = {
        agent: CompletionAgentHandler(agent, completion)
        for agent in (agents or AgentName)
    }
    logger.info(f"Dispatch table built: {', '.join(a.value for a in table)}")
    return table


def parse_agent_list(raw: str) -> list:
    """
    Parse a comma-separated agent list (ENABLED_AGENTS).

    Raises:
        ValueError: If an entry is not a known agent
    """
    agents = []
    for entry in (raw or "").split(","):
        if not entry.strip():
            continue
        agent = AgentName.parse(entry)
        if agent is None:
            raise ValueError(f"Unknown agent in ENABLED_AGENTS: '{entry.strip()}'")
        if agent not in agents:
            agents.append(agent)
    return agents
