"""
Prompts module - LLM prompt templates.

Prompts are stored as separate Python files for:
- Version control of prompt changes
- Clear documentation of prompt purpose
"""
from twinlink.llm.prompts.agent_prompts import get_agent_instructions
from twinlink.llm.prompts.routing_prompts import (
    AGENT_DESCRIPTIONS,
    get_clarification_prompt,
    get_classifier_system_prompt,
    get_confirmation_prompt,
)
from twinlink.llm.prompts.session_prompts import (
    get_session_instructions,
    get_session_turn_prompt,
)

__all__ = [
    "AGENT_DESCRIPTIONS",
    "get_agent_instructions",
    "get_clarification_prompt",
    "get_classifier_system_prompt",
    "get_confirmation_prompt",
    "get_session_instructions",
    "get_session_turn_prompt",
]
