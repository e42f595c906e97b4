"""
AUTHCORE - Context

Société active: sélection, persistance, changement atomique et
synchronisation entre onglets.
"""

from .interfaces import (
    # Enums
    ContextStatus,
    # Data classes
    ContextOutcome,
    # Interfaces
    IContextManager,
)
from .context_manager import (
    ContextManager,
    # Exceptions
    UnknownOrInactiveCompany,
)

__all__ = [
    # Enums
    "ContextStatus",
    # Data classes
    "ContextOutcome",
    # Interfaces
    "IContextManager",
    # Implementations
    "ContextManager",
    # Exceptions
    "UnknownOrInactiveCompany",
]
