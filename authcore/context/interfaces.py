"""
AUTHCORE - Context Interfaces

Contexte actif: la société dans laquelle l'utilisateur opère.

Invariant: le contexte actif est soit absent, soit membre de la dernière
liste de sociétés accessibles connue.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..directory.interfaces import AccessibleCompany
from ..permissions.interfaces import IPermissionEngine, Role


class ContextStatus(Enum):
    """Statut du contexte actif."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    NO_ACCESSIBLE_COMPANY = "no_accessible_company"


@dataclass(frozen=True)
class ContextOutcome:
    """Résultat d'une initialisation, d'un switch ou d'une resynchronisation."""

    previous: Optional[str]
    current: Optional[str]
    status: ContextStatus

    @property
    def changed(self) -> bool:
        return self.previous != self.current


class IContextManager(ABC):
    """Interface gestion du contexte actif."""

    @abstractmethod
    async def initialize(self) -> ContextOutcome:
        """
        Résout le contexte actif depuis l'annuaire.

        Raises:
            DirectoryError / TransportError: contexte inchangé
        """
        pass

    @abstractmethod
    async def switch(self, company_id: str) -> ContextOutcome:
        """
        Change de société active (atomique).

        Raises:
            UnknownOrInactiveCompany: Cible invalide, aucune mutation
        """
        pass

    @abstractmethod
    async def switch_tenant(self, tenant_id: str) -> ContextOutcome:
        """Change de tenant puis réinitialise le contexte."""
        pass

    @abstractmethod
    async def resync(self) -> ContextOutcome:
        """Recharge l'annuaire et corrige le contexte actif."""
        pass

    @abstractmethod
    def get_active(self) -> Optional[str]:
        """Instantané synchrone de la société active."""
        pass

    @abstractmethod
    def companies(self) -> List[AccessibleCompany]:
        """Dernière liste de sociétés accessibles connue."""
        pass

    @abstractmethod
    def effective_role(self) -> Role:
        """Rôle effectif dans la société active."""
        pass

    @abstractmethod
    def permissions(self) -> IPermissionEngine:
        """Moteur de permissions pour le rôle effectif."""
        pass
