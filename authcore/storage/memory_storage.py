"""
AUTHCORE - In-Memory Storage

Stockage volatile, une seule vue: aucun événement externe.
"""

from typing import Callable, Dict, Optional

from .interfaces import IClientStorage, StorageListener


class InMemoryStorage(IClientStorage):
    """Stockage volatile en mémoire (perdu au redémarrage)."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        # Aucune autre vue ne peut écrire ici
        return lambda: None

    def __len__(self) -> int:
        return len(self._data)
