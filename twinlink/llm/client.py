"""
LLM Client for Groq and Google Gemini.

This module provides the completion collaborator used by group sessions,
the LLM intent classifier and the completion-backed agents. It handles:
- Provider initialization (only providers with an API key are used)
- The fallback cascade across providers and models
- The continuation-state format (the conversation history)

The rest of the package treats continuation state as an opaque string.
Only this module reads or writes it: a versioned JSON document holding
the recent chat history.
"""
import asyncio
import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

import google.generativeai as genai
from groq import Groq

from twinlink.core.config import Settings, get_settings
from twinlink.core.exceptions import CollaboratorFailure
from twinlink.core.logging_config import get_logger

logger = get_logger(__name__)

STATE_VERSION = 1
MAX_HISTORY_MESSAGES = 40


@dataclass
class Completion:
    """Text produced by the model and the state to pass on the next call."""
    text: str
    continuation_state: str


class CompletionCollaborator(Protocol):
    async def complete(
        self,
        prompt: str,
        continuation_state: Optional[str] = None,
        instructions: Optional[str] = None
    ) -> Completion:
        ...


def decode_history(continuation_state: Optional[str]) -> List[Dict[str, str]]:
    """
    Read the chat history out of a continuation state.

    Unknown or corrupt states start a fresh history instead of failing the
    turn.
    """
    if not continuation_state:
        return []
    try:
        payload = json.loads(continuation_state)
    except (TypeError, ValueError):
        logger.warning("Unreadable continuation state, starting a new thread")
        return []
    if not isinstance(payload, dict) or payload.get("v") != STATE_VERSION:
        logger.warning("Unsupported continuation state version, starting a new thread")
        return []
    return [
        {"role": m["role"], "content": m["content"]}
        for m in payload.get("messages", [])
        if isinstance(m, dict) and m.get("role") in ("user", "assistant") and "content" in m
    ]


def encode_history(history: List[Dict[str, str]]) -> str:
    return json.dumps(
        {"v": STATE_VERSION, "messages": history[-MAX_HISTORY_MESSAGES:]},
        ensure_ascii=False,
    )


class CompletionClient:
    """
    Hybrid client for Groq and Google Gemini.

    Features:
    - Multi-provider support (Groq, Google)
    - Automatic fallback on failure, in cascade order
    - Conversation history carried in the continuation state
    """

    def __init__(self, settings: Optional[Settings] = None, model: Optional[str] = None):
        """
        Initialize clients for the configured providers.

        Args:
            settings: Application settings (defaults to get_settings())
            model: Model tried first (defaults to settings.llm_model)

        Raises:
            ValueError: If neither GROQ_API_KEY nor GOOGLE_API_KEY is set
        """
        self.settings = settings or get_settings()
        if not self.settings.has_llm_credentials():
            raise ValueError("Set GROQ_API_KEY or GOOGLE_API_KEY to enable the completion client")

        self.groq_client = Groq(api_key=self.settings.groq_api_key) if self.settings.groq_api_key else None
        if self.settings.google_api_key:
            genai.configure(api_key=self.settings.google_api_key)

        self.model = model or self.settings.llm_model
        self.temperature = self.settings.llm_temperature
        self.max_tokens = self.settings.llm_max_tokens

        providers = [p for p, on in (("groq", self.groq_client), ("google", self.settings.google_api_key)) if on]
        logger.info(f"Completion client initialized (providers: {', '.join(providers)}, model: {self.model})")

    def _cascade(self) -> List[Dict[str, str]]:
        """
        Build the fallback cascade.

        Priority: requested model -> Gemini fallback -> small Groq model.
        Entries for providers without credentials are dropped.
        """
        cascade = [
            {"provider": "google" if "gemini" in self.model.lower() else "groq", "model": self.model},
            {"provider": "google", "model": self.settings.llm_model_fallback},
            {"provider": "groq", "model": self.settings.llm_model_fast},
        ]
        available = []
        for attempt in cascade:
            if attempt["provider"] == "groq" and self.groq_client is None:
                continue
            if attempt["provider"] == "google" and not self.settings.google_api_key:
                continue
            if attempt not in available:
                available.append(attempt)
        return available

    async def complete(
        self,
        prompt: str,
        continuation_state: Optional[str] = None,
        instructions: Optional[str] = None
    ) -> Completion:
        """
        Generate a completion, trying each provider in the cascade.

        Args:
            prompt: User turn
            continuation_state: State returned by the previous call, if any
            instructions: System prompt

        Returns:
            Completion with the reply and the updated continuation state

        Raises:
            CollaboratorFailure: If every provider failed
        """
        history = decode_history(continuation_state)
        system_prompt = instructions or "You are a helpful assistant."
        last_error: Optional[Exception] = None

        for i, attempt in enumerate(self._cascade()):
            provider = attempt["provider"]
            target_model = attempt["model"]

            try:
                if i > 0:
                    logger.info(f"Attempt {i + 1}: Falling back to {provider.title()} ({target_model})...")
                    await asyncio.sleep(1 * i)

                if provider == "google":
                    text = await asyncio.to_thread(
                        self._generate_google, prompt, system_prompt, history, target_model
                    )
                else:
                    text = await asyncio.to_thread(
                        self._generate_groq, prompt, system_prompt, history, target_model
                    )

            except Exception as e:
                error_msg = str(e).lower()
                is_rate_limit = "429" in error_msg or "quota" in error_msg or "rate limit" in error_msg

                log_level = logger.warning if is_rate_limit else logger.error
                log_level(f"Provider failed ({provider}/{target_model}): {e}")

                last_error = e
                continue

            updated = history + [
                {"role": "user", "content": prompt},
                {"role": "assistant", "content": text},
            ]
            return Completion(text=text, continuation_state=encode_history(updated))

        logger.critical("ALL LLM PROVIDERS FAILED.")
        raise CollaboratorFailure(f"All completion providers failed. Last error: {last_error}")

    def _generate_groq(self, prompt, system_prompt, history, model) -> str:
        """Execute request using Groq."""
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(history)
        messages.append({"role": "user", "content": prompt})

        response = self.groq_client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or ""

    def _generate_google(self, prompt, system_prompt, history, model) -> str:
        """Execute request using Google Gemini."""
        model_instance = genai.GenerativeModel(
            model_name=model,
            system_instruction=system_prompt
        )

        # Convert history format (OpenAI -> Google)
        chat_history = [
            {"role": "user" if msg["role"] == "user" else "model", "parts": [msg["content"]]}
            for msg in history
        ]

        generation_config = genai.types.GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
        )

        chat = model_instance.start_chat(history=chat_history)
        response = chat.send_message(prompt, generation_config=generation_config)
        return response.text


class UnconfiguredCompletion:
    """
    Stand-in collaborator used when no LLM provider key is configured.

    Every call fails with CollaboratorFailure, so plain messaging keeps
    working and only assistant features report an error.
    """

    async def complete(
        self,
        prompt: str,
        continuation_state: Optional[str] = None,
        instructions: Optional[str] = None
    ) -> Completion:
        raise CollaboratorFailure("No LLM provider configured (set GROQ_API_KEY or GOOGLE_API_KEY)")
