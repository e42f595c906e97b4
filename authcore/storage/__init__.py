"""
AUTHCORE - Storage

Stockage client clé/valeur:
- InMemoryStorage: volatile
- SharedStorageArea / StorageView: partagé entre onglets avec notifications
- YamlFileStorage: durable (fichier YAML)
"""

from .interfaces import (
    # Data classes
    StorageEvent,
    StorageListener,
    # Interfaces
    IClientStorage,
)
from .memory_storage import InMemoryStorage
from .shared_storage import SharedStorageArea, StorageView
from .yaml_storage import YamlFileStorage, StorageFileError

__all__ = [
    # Data classes
    "StorageEvent",
    "StorageListener",
    # Interfaces
    "IClientStorage",
    # Implementations
    "InMemoryStorage",
    "SharedStorageArea",
    "StorageView",
    "YamlFileStorage",
    # Exceptions
    "StorageFileError",
]
