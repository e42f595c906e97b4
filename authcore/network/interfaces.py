"""
AUTHCORE - Network Interfaces

Contrats du transport HTTP vers le service d'identité:
- Timeouts par endpoint (connexion ≤ 10s, requête ≤ 30s)
- Enveloppe de réponse {success, data?, error?: {code, message, details}}
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class TimeoutType(Enum):
    """Types de timeout supportés."""

    CONNECTION = "connection"
    REQUEST = "request"


class Endpoint(Enum):
    """Endpoints logiques ayant un timeout dédié."""

    DEFAULT = "default"
    LOGIN = "auth.login"
    LOGOUT = "auth.logout"
    RENEW = "auth.renew"
    SWITCH_COMPANY = "auth.switch_company"
    DIRECTORY = "tenant.directory"
    TENANTS = "auth.tenants"
    SWITCH_TENANT = "auth.switch_tenant"
    CURRENT_USER = "auth.me"


@dataclass
class TimeoutConfig:
    """
    Configuration des timeouts (secondes).

    connection_timeout: max 10s
    request_timeout: max 30s (configurable par endpoint)
    """

    connection_timeout: float = 10.0
    request_timeout: float = 30.0


@dataclass
class ApiResponse:
    """
    Réponse du service distant, enveloppe décodée.

    Attributes:
        status_code: Statut HTTP
        success: Champ success de l'enveloppe (ou statut 2xx à défaut)
        data: Charge utile
        error_code: Code machine de l'erreur
        error_message: Message lisible
        error_details: Détails optionnels (ex: retryAfterSeconds)
    """

    status_code: int
    success: bool
    data: Any = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def is_forbidden(self) -> bool:
        return self.status_code == 403


class ITimeoutManager(ABC):
    """Interface gestion timeouts."""

    @abstractmethod
    def get_timeout(self, timeout_type: TimeoutType, endpoint: Optional[Endpoint] = None) -> float:
        """
        Retourne timeout configuré (spécifique à l'endpoint ou défaut).

        Args:
            timeout_type: Type de timeout
            endpoint: Endpoint optionnel pour config spécifique

        Returns:
            Valeur du timeout en secondes
        """
        pass

    @abstractmethod
    def set_endpoint_timeout(self, endpoint: Endpoint, config: TimeoutConfig) -> None:
        """Configure un timeout spécifique par endpoint."""
        pass


class IApiTransport(ABC):
    """Interface transport HTTP vers le service d'identité."""

    @abstractmethod
    async def send(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        endpoint: Endpoint = Endpoint.DEFAULT,
    ) -> ApiResponse:
        """
        Envoie une requête et décode l'enveloppe.

        Une réponse non-2xx n'est PAS une exception: elle est rendue comme
        ApiResponse(success=False). Seuls les échecs réseau lèvent.

        Raises:
            TransportError: Échec réseau
            TransportTimeout: Timeout dépassé
        """
        pass

    @abstractmethod
    def csrf_token(self) -> Optional[str]:
        """Valeur du cookie anti-forgery, None si absent."""
        pass

    @abstractmethod
    def clear_cookies(self) -> None:
        """Vide le cookie jar (cookie de renouvellement inclus)."""
        pass

    @abstractmethod
    async def aclose(self) -> None:
        """Ferme le client HTTP."""
        pass
