"""
AUTHCORE - Directory

Annuaire des sociétés accessibles sous le tenant de la session.
"""

from .interfaces import (
    # Data classes
    AccessibleCompany,
    KNOWN_ENTITY_TYPES,
    # Interfaces
    IDirectoryClient,
)
from .directory_client import (
    DirectoryClient,
    # Exceptions
    DirectoryError,
)

__all__ = [
    # Data classes
    "AccessibleCompany",
    "KNOWN_ENTITY_TYPES",
    # Interfaces
    "IDirectoryClient",
    # Implementations
    "DirectoryClient",
    # Exceptions
    "DirectoryError",
]
