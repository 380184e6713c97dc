"""
Agent Classifier - decide which sub-agent an utterance is for.

Two interchangeable implementations:
- KeywordAgentClassifier: regex keyword scoring, no network calls
- LLMAgentClassifier: asks the completion collaborator for a JSON verdict

Both return a Classification whose ``agent_name`` is raw text; the router
parses it against the AgentName enumeration.
"""
import json
import re
from typing import Dict, List, Optional, Protocol, Sequence

from twinlink.core.logging_config import get_logger
from twinlink.llm.client import CompletionCollaborator
from twinlink.llm.prompts import get_classifier_system_prompt
from twinlink.models.routing import AgentName, Classification, fold_name

logger = get_logger(__name__)


class AgentClassifier(Protocol):
    async def classify(self, text: str) -> Classification:
        ...


class KeywordAgentClassifier:
    """
    Classifies utterances by keyword patterns (English and Spanish).

    A message that names exactly one agent ("I want the Mi-Alimentacion
    agent", "mi alimentación") is bound to it with confidence 1.0. Otherwise
    the agent with the most pattern hits wins; ties and zero hits return
    an empty Classification.

    Example:
        >>> classifier = KeywordAgentClassifier()
        >>> result = await classifier.classify("What did I eat yesterday?")
        >>> print(result.agent_name)
        Mi-Alimentacion
    """

    PATTERNS: Dict[AgentName, List[str]] = {
        AgentName.DATOS_PERSONALES: [
            r"\b(my|mi|mis)\s+(personal\s+data|datos\s+personales)\b",
            r"\b(address|direcci[oó]n|phone|tel[eé]fono|birthday|cumplea[nñ]os|passport|pasaporte)\b",
        ],
        AgentName.MI_FAMILIA: [
            r"\b(family|familia|mother|madre|father|padre|sister|hermana|brother|hermano)\b",
            r"\b(grandparents?|abuel[oa]s?|cousins?|prim[oa]s?|family\s+tree|[aá]rbol\s+geneal[oó]gico)\b",
        ],
        AgentName.CONTACTOS: [
            r"\b(contacts?|contactos?|friends?|amig[oa]s?|colleagues?|colegas?)\b",
        ],
        AgentName.FOTOS_FAMILIARES: [
            r"\b(photos?|fotos?|pictures?|im[aá]genes|albums?|[aá]lbum(es)?)\b",
        ],
        AgentName.DOCUMENTOS_ESTRUCTURADOS: [
            r"\b(invoices?|facturas?|spreadsheets?|hojas?\s+de\s+c[aá]lculo|forms?|formularios?)\b",
            r"\bstructured\s+documents?\b|\bdocumentos?\s+estructurados?\b",
        ],
        AgentName.DOCUMENTOS_SEMI_ESTRUCTURADOS: [
            r"\b(emails?|correos?|receipts?|recibos?)\b",
            r"\bsemi[\s-]?(structured|estructurados?)\b",
        ],
        AgentName.DOCUMENTOS_NO_ESTRUCTURADOS: [
            r"\b(letters?|cartas?|pdfs?|notes?\s+files?)\b",
            r"\bunstructured\b|\bno[\s-]?estructurados?\b",
        ],
        AgentName.MIS_MEMORIAS: [
            r"\b(memor(y|ies)|memorias?|recuerdos?|remember|recordar|remind(er)?|recordatorios?)\b",
        ],
        AgentName.MI_ALIMENTACION: [
            r"\b(food|comida|meals?|eat|ate|com[ií]|diet|dieta|nutrition|nutrici[oó]n|calories|calor[ií]as)\b",
            r"\b(breakfast|desayuno|lunch|almuerzo|dinner|cena)\b",
        ],
    }

    def __init__(self, agents: Optional[Sequence[AgentName]] = None):
        enabled = set(agents) if agents else set(AgentName)
        self._compiled = {
            agent: [re.compile(p, re.IGNORECASE) for p in patterns]
            for agent, patterns in self.PATTERNS.items()
            if agent in enabled
        }
        self._names = {fold_name(agent.value): agent for agent in self._compiled}
        self._longest_name = max((len(agent.value.split("-")) for agent in self._compiled), default=0)

    def named_agents(self, text: str) -> List[AgentName]:
        """Agents whose canonical name appears in the text, accents and separators ignored."""
        words = [fold_name(word) for word in re.findall(r"\w+", text)]
        found: List[AgentName] = []
        for start in range(len(words)):
            for size in range(self._longest_name, 0, -1):
                if start + size > len(words):
                    continue
                agent = self._names.get("".join(words[start:start + size]))
                if agent is not None:
                    if agent not in found:
                        found.append(agent)
                    break
        return found

    async def classify(self, text: str) -> Classification:
        """
        Score every agent by pattern hits.

        Args:
            text: User utterance (markup already stripped)

        Returns:
            Classification with the winning agent, or no agent
        """
        if not text:
            return Classification(reason="empty message")

        named = self.named_agents(text)
        if len(named) == 1:
            return Classification(agent_name=named[0].value, confidence=1.0, reason="agent named explicitly")

        scores = {
            agent: sum(1 for pattern in patterns if pattern.search(text))
            for agent, patterns in self._compiled.items()
        }
        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        best_agent, best_score = ranked[0] if ranked else (None, 0)

        if best_score == 0:
            return Classification(reason="no keyword matched")
        if len(ranked) > 1 and ranked[1][1] == best_score:
            logger.debug(f"Keyword tie between {ranked[0][0].value} and {ranked[1][0].value}")
            return Classification(reason="ambiguous keywords")

        total_patterns = len(self._compiled[best_agent])
        return Classification(
            agent_name=best_agent.value,
            confidence=round(best_score / total_patterns, 2),
            reason=f"matched {best_score} keyword pattern(s)",
        )


class LLMAgentClassifier:
    """
    Classifies utterances with the completion collaborator.

    The model is asked for a JSON object with agent_name, confidence,
    reason and message. Output that cannot be parsed is treated as "no
    agent" rather than an error, so the user gets a clarification prompt.
    Collaborator failures propagate as CollaboratorFailure.
    """

    _FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

    def __init__(self, completion: CompletionCollaborator, agents: Optional[Sequence[AgentName]] = None):
        self.completion = completion
        self.agent_names = [a.value for a in (agents or list(AgentName))]

    async def classify(self, text: str) -> Classification:
        if not text:
            return Classification(reason="empty message")

        completion = await self.completion.complete(
            prompt=text,
            instructions=get_classifier_system_prompt(self.agent_names),
        )
        return self.parse_response(completion.text)

    def parse_response(self, raw: str) -> Classification:
        """Parse the model's JSON verdict; anything unusable means no agent."""
        cleaned = self._FENCE.sub("", (raw or "").strip())
        try:
            payload = json.loads(cleaned)
        except ValueError:
            logger.warning(f"Classifier returned non-JSON output: {cleaned[:100]}")
            return Classification(reason="unparseable classifier output")

        if not isinstance(payload, dict):
            return Classification(reason="unparseable classifier output")

        agent_name = payload.get("agent_name")
        if isinstance(agent_name, str) and agent_name.strip().lower() in ("", "null", "none"):
            agent_name = None

        try:
            confidence = float(payload.get("confidence") or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0

        return Classification(
            agent_name=agent_name if isinstance(agent_name, str) else None,
            confidence=max(0.0, min(confidence, 1.0)),
            reason=payload.get("reason") if isinstance(payload.get("reason"), str) else None,
            message=payload.get("message") if isinstance(payload.get("message"), str) else None,
        )
