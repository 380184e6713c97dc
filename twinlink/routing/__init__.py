"""Routing module - intent classification and sub-agent dispatch."""
from twinlink.routing.agents import AgentHandler, CompletionAgentHandler, build_dispatch_table
from twinlink.routing.classifier import AgentClassifier, KeywordAgentClassifier, LLMAgentClassifier
from twinlink.routing.router import IntentRouter, strip_markup

__all__ = [
    "AgentClassifier",
    "AgentHandler",
    "CompletionAgentHandler",
    "IntentRouter",
    "KeywordAgentClassifier",
    "LLMAgentClassifier",
    "build_dispatch_table",
    "strip_markup",
]
