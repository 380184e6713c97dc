"""LLM module - completion client and prompt templates."""
from twinlink.llm.client import Completion, CompletionClient, CompletionCollaborator

__all__ = ["Completion", "CompletionClient", "CompletionCollaborator"]
