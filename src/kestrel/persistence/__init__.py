"""
Persistence layer: session, identity map, unit of work and transactions.
"""

from .factory import SessionFactory
from .identity_map import IdentityMap
from .options import DeleteMode, SessionOptions
from .session import Session, SessionState
from .statements import StatementBuilder
from .transaction import Transaction, TransactionManager
from .unit_of_work import UnitOfWork, sort_by_dependencies

__all__ = [
    "DeleteMode",
    "IdentityMap",
    "Session",
    "SessionFactory",
    "SessionOptions",
    "SessionState",
    "StatementBuilder",
    "Transaction",
    "TransactionManager",
    "UnitOfWork",
    "sort_by_dependencies",
]
