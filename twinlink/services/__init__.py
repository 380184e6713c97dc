"""
Services module - Business logic and orchestration.

Services contain the application logic:
- No HTTP concerns (those belong in api/)
- No storage details (those belong in storage/)
"""
from twinlink.services.conversation_service import ConversationService, SendReceipt, filter_by_period

__all__ = [
    "ConversationService",
    "SendReceipt",
    "filter_by_period",
]
