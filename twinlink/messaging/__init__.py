"""Messaging module - pairing keys, message lifecycle and group sessions."""
from twinlink.messaging.lifecycle import MessageLifecycleEngine, enrich, mark_delivered, mark_read
from twinlink.messaging.pairing import candidate_keys, parse_origin, resolve
from twinlink.messaging.sessions import GroupSessionManager, SendOutcome

__all__ = [
    "GroupSessionManager",
    "MessageLifecycleEngine",
    "SendOutcome",
    "candidate_keys",
    "enrich",
    "mark_delivered",
    "mark_read",
    "parse_origin",
    "resolve",
]
