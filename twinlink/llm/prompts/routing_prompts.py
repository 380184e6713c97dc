# Intent Routing Prompts

CLASSIFIER_SYSTEM_PROMPT = """You route user requests on a personal-data platform to a specialised agent.

Available agents:
{agents}

Rules:
- Pick the single agent that best matches the user's request
- If no agent clearly matches, use null
- Reply in the user's language in the "message" field

Respond ONLY with a JSON object, no markdown:
{{"agent_name": "<agent name or null>", "confidence": <0.0-1.0>, "reason": "<short reason>", "message": "<short reply to the user>"}}"""

AGENT_DESCRIPTIONS = {
    "Datos-Personales": "personal data: name, address, phone, birthday, identity documents",
    "Mi-Familia": "family members, relatives and family tree",
    "Contactos": "contacts, friends, colleagues and how to reach them",
    "Fotos-Familiares": "family photos and albums",
    "Documentos-Estructurados": "structured documents such as forms, invoices and spreadsheets",
    "Documentos-Semi-Estructurados": "semi-structured documents such as emails and receipts",
    "Documentos-No-Estructurados": "free-form documents such as letters, notes and PDFs",
    "Mis-Memorias": "personal memories, notes to self and short reminders",
    "Mi-Alimentacion": "food diary, meals, diet and nutrition",
}

CLARIFICATION_PROMPT = """I'm not sure which area you'd like help with. I can help you with:
{agents}

Which one would you like to use?"""

CONFIRMATION_PROMPT = "Great, I'll help you with {agent}. What would you like to do?"


def _agent_lines(agent_names: list) -> str:
    return "\n".join(f"- {name}: {AGENT_DESCRIPTIONS.get(name, name)}" for name in agent_names)


def get_classifier_system_prompt(agent_names: list) -> str:
    """Build the classifier system prompt for the registered agents."""
    return CLASSIFIER_SYSTEM_PROMPT.format(agents=_agent_lines(agent_names))


def get_clarification_prompt(agent_names: list) -> str:
    """Prompt listing the registered agents, shown when routing is undecided."""
    return CLARIFICATION_PROMPT.format(agents="\n".join(f"- {name}" for name in agent_names))


def get_confirmation_prompt(agent_label: str) -> str:
    return CONFIRMATION_PROMPT.format(agent=agent_label)
