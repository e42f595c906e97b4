"""
AUTHCORE - Storage Interfaces

Stockage clé/valeur côté client (équivalent du stockage local d'un
navigateur), avec notification des modifications faites par les autres
vues du même espace de stockage.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class StorageEvent:
    """
    Modification d'une clé observée par une autre vue.

    Attributes:
        key: Clé modifiée
        old_value: Valeur précédente (None si absente)
        new_value: Nouvelle valeur (None si supprimée)
    """

    key: str
    old_value: Optional[str]
    new_value: Optional[str]

    @property
    def removed(self) -> bool:
        """True si la clé a été supprimée."""
        return self.new_value is None


StorageListener = Callable[[StorageEvent], None]


class IClientStorage(ABC):
    """
    Interface stockage client.

    Les listeners ne reçoivent que les modifications faites par d'AUTRES
    vues: une écriture locale ne se notifie jamais à elle-même.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Retourne la valeur ou None."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Écrit une valeur."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Supprime une clé (sans erreur si absente)."""
        pass

    @abstractmethod
    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """
        Abonne un listener aux modifications externes.

        Returns:
            Fonction de désabonnement
        """
        pass
