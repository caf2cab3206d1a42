"""
Listener registry and commit listener protocol.
"""

from .dispatcher import (
    AFTER_DELETE,
    AFTER_SAVE,
    BEFORE_DELETE,
    BEFORE_SAVE,
    CommitListener,
    ListenerRegistry,
)

__all__ = [
    "AFTER_DELETE",
    "AFTER_SAVE",
    "BEFORE_DELETE",
    "BEFORE_SAVE",
    "CommitListener",
    "ListenerRegistry",
]
