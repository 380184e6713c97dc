"""
TwinLink - conversation and session core for digital-twin agents.

This package is organized by responsibility:
- api/       : FastAPI routes and HTTP handling
- core/      : Configuration, logging, errors and cross-cutting utilities
- models/    : Pydantic documents and request/response schemas
- storage/   : Document stores and the optimistic conversation store
- messaging/ : Pairing keys, message lifecycle and group sessions
- routing/   : Intent classification and sub-agent dispatch
- llm/       : LLM integration and prompt management
- services/  : Two-party conversation orchestration
"""

__version__ = "0.1.0"
