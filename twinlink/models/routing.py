"""
Routing models - agent names, classifier output and router results.

AgentName is a closed enumeration. Free text coming from users or from an
LLM classifier is mapped onto it with ``AgentName.parse``; anything that
does not map is treated as "no agent".
"""
import re
import unicodedata
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field

from twinlink.core.exceptions import ErrorKind


def fold_name(text: str) -> str:
    """Lower-case, strip accents and drop separators: 'Mi Alimentación' -> 'mialimentacion'."""
    decomposed = unicodedata.normalize("NFKD", text)
    without_accents = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"[\s\-_.]+", "", without_accents.lower())


class AgentName(str, Enum):
    """Sub-agents a routing session can be bound to."""
    DATOS_PERSONALES = "Datos-Personales"
    MI_FAMILIA = "Mi-Familia"
    CONTACTOS = "Contactos"
    FOTOS_FAMILIARES = "Fotos-Familiares"
    DOCUMENTOS_ESTRUCTURADOS = "Documentos-Estructurados"
    DOCUMENTOS_SEMI_ESTRUCTURADOS = "Documentos-Semi-Estructurados"
    DOCUMENTOS_NO_ESTRUCTURADOS = "Documentos-No-Estructurados"
    MIS_MEMORIAS = "Mis-Memorias"
    MI_ALIMENTACION = "Mi-Alimentacion"

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["AgentName"]:
        """Map a canonical name or a known alias onto the enumeration."""
        if not text:
            return None
        return _ALIASES.get(fold_name(text))

    @property
    def label(self) -> str:
        """Human-friendly name used in prompts shown to the user."""
        return self.value.replace("-", " ")


# Folded spelling -> agent. Canonical names are added below.
_ALIASES: Dict[str, AgentName] = {
    "personaldata": AgentName.DATOS_PERSONALES,
    "datospersonales": AgentName.DATOS_PERSONALES,
    "myfamily": AgentName.MI_FAMILIA,
    "family": AgentName.MI_FAMILIA,
    "contacts": AgentName.CONTACTOS,
    "familyphotos": AgentName.FOTOS_FAMILIARES,
    "photos": AgentName.FOTOS_FAMILIARES,
    "structureddocuments": AgentName.DOCUMENTOS_ESTRUCTURADOS,
    "semistructureddocuments": AgentName.DOCUMENTOS_SEMI_ESTRUCTURADOS,
    "unstructureddocuments": AgentName.DOCUMENTOS_NO_ESTRUCTURADOS,
    "documentosnoestructurados": AgentName.DOCUMENTOS_NO_ESTRUCTURADOS,
    "shortmemory": AgentName.MIS_MEMORIAS,
    "mymemories": AgentName.MIS_MEMORIAS,
    "memories": AgentName.MIS_MEMORIAS,
    "fooddietary": AgentName.MI_ALIMENTACION,
    "fooddiary": AgentName.MI_ALIMENTACION,
    "nutrition": AgentName.MI_ALIMENTACION,
    "nutricion": AgentName.MI_ALIMENTACION,
}
_ALIASES.update({fold_name(agent.value): agent for agent in AgentName})


class RoutingStatus(str, Enum):
    UNBOUND = "unbound"
    BOUND = "bound"


class Classification(BaseModel):
    """
    Output of a classifier.

    ``agent_name`` is raw text; the router decides whether it is a
    recognised, registered agent.
    """
    agent_name: Optional[str] = None
    confidence: float = 0.0
    reason: Optional[str] = None
    message: Optional[str] = None


class RoutingState(BaseModel):
    """Per-turn routing state, owned by the caller between requests."""
    agent_name: Optional[AgentName] = None
    turn_number: int = 0
    confidence: float = 0.0
    reason: Optional[str] = None

    @property
    def status(self) -> RoutingStatus:
        return RoutingStatus.BOUND if self.agent_name else RoutingStatus.UNBOUND


class RoutingResult(BaseModel):
    """Response envelope returned by the intent router for every turn."""
    success: bool
    status: RoutingStatus = RoutingStatus.UNBOUND
    twin_id: str = ""
    agent_name: Optional[AgentName] = None
    response_prompt: str = ""
    turn_number: int = Field(default=1, ge=1)
    confidence: float = 0.0
    reason: Optional[str] = None
    error: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @property
    def state(self) -> RoutingState:
        return RoutingState(
            agent_name=self.agent_name if self.status == RoutingStatus.BOUND else None,
            turn_number=self.turn_number,
            confidence=self.confidence,
            reason=self.reason,
        )
