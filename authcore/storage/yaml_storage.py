"""
AUTHCORE - YAML File Storage

Stockage durable dans un fichier YAML: la sélection de société survit au
redémarrage du processus hôte.
"""

from pathlib import Path
from typing import Callable, Dict, Optional, Union

import yaml

from ..core.errors import AuthCoreError
from .interfaces import IClientStorage, StorageListener


class StorageFileError(AuthCoreError):
    """Fichier de stockage illisible ou non inscriptible."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="STORAGE_FILE_ERROR")


class YamlFileStorage(IClientStorage):
    """
    Stockage clé/valeur persistant dans un fichier YAML.

    Chaque écriture réécrit le fichier complet. Un seul processus écrit
    le fichier: pas de notification inter-processus.

    Example:
        storage = YamlFileStorage("~/.authcore/state.yaml")
        storage.set("authcore.active_company:t-1:u-1", "c-42")
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path).expanduser()
        self._data: Dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                content = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise StorageFileError(f"Lecture impossible de {self._path}: {e}") from e

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise StorageFileError(f"Contenu invalide dans {self._path}: mapping attendu")
        return {str(k): str(v) for k, v in content.items() if v is not None}

    def _flush(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                yaml.safe_dump(self._data, f, default_flow_style=False, sort_keys=True)
        except OSError as e:
            raise StorageFileError(f"Écriture impossible de {self._path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        return lambda: None
