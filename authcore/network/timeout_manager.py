"""
AUTHCORE - Timeout Manager

Gestion centralisée des timeouts réseau.

Limites:
    Connexion 10 secondes max
    Requête 30 secondes max (configurable par endpoint)
"""

from typing import Dict, Optional

import httpx

from ..core.errors import AuthCoreError
from ..core.interfaces import ClientConfig
from .interfaces import Endpoint, ITimeoutManager, TimeoutConfig, TimeoutType


class InvalidTimeoutError(AuthCoreError):
    """Configuration timeout invalide."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_TIMEOUT")


class TimeoutManager(ITimeoutManager):
    """
    Gestion centralisée des timeouts.

    Example:
        manager = TimeoutManager.from_client_config(config)
        manager.get_timeout(TimeoutType.REQUEST, Endpoint.RENEW)  # 10.0
    """

    MAX_CONNECTION_TIMEOUT: float = 10.0
    MAX_REQUEST_TIMEOUT: float = 30.0

    def __init__(self, default_config: Optional[TimeoutConfig] = None) -> None:
        """
        Args:
            default_config: Configuration par défaut (optionnel)

        Raises:
            InvalidTimeoutError: Si la configuration dépasse les limites
        """
        self._default = default_config or TimeoutConfig()
        self._endpoint_configs: Dict[Endpoint, TimeoutConfig] = {}

        self._validate_config(self._default)

    @classmethod
    def from_client_config(cls, config: ClientConfig) -> "TimeoutManager":
        """
        Construit le gestionnaire depuis la configuration client.

        Renouvellement et annuaire ont leur propre borne.
        """
        manager = cls(
            TimeoutConfig(
                connection_timeout=config.connection_timeout,
                request_timeout=config.request_timeout,
            )
        )
        manager.set_endpoint_timeout(
            Endpoint.RENEW,
            TimeoutConfig(
                connection_timeout=config.connection_timeout,
                request_timeout=config.renewal_timeout,
            ),
        )
        manager.set_endpoint_timeout(
            Endpoint.DIRECTORY,
            TimeoutConfig(
                connection_timeout=config.connection_timeout,
                request_timeout=config.directory_timeout,
            ),
        )
        return manager

    def _validate_config(self, config: TimeoutConfig) -> None:
        """
        Valide une configuration complète.

        Raises:
            InvalidTimeoutError: Si configuration invalide
        """
        if config.connection_timeout <= 0:
            raise InvalidTimeoutError("connection_timeout must be positive")

        if config.connection_timeout > self.MAX_CONNECTION_TIMEOUT:
            raise InvalidTimeoutError(
                f"connection_timeout ({config.connection_timeout}s) exceeds "
                f"maximum ({self.MAX_CONNECTION_TIMEOUT}s)"
            )

        if config.request_timeout <= 0:
            raise InvalidTimeoutError("request_timeout must be positive")

        if config.request_timeout > self.MAX_REQUEST_TIMEOUT:
            raise InvalidTimeoutError(
                f"request_timeout ({config.request_timeout}s) exceeds "
                f"maximum ({self.MAX_REQUEST_TIMEOUT}s)"
            )

    def get_timeout(self, timeout_type: TimeoutType, endpoint: Optional[Endpoint] = None) -> float:
        """
        Retourne timeout configuré (endpoint-specific ou default).

        Args:
            timeout_type: Type de timeout demandé
            endpoint: Endpoint pour config spécifique (optionnel)

        Returns:
            Valeur du timeout en secondes
        """
        config = self.get_config(endpoint)

        if timeout_type == TimeoutType.CONNECTION:
            return config.connection_timeout
        elif timeout_type == TimeoutType.REQUEST:
            return config.request_timeout
        else:
            raise ValueError(f"Unknown timeout type: {timeout_type}")

    def get_config(self, endpoint: Optional[Endpoint] = None) -> TimeoutConfig:
        """Configuration effective pour un endpoint."""
        if endpoint is not None and endpoint in self._endpoint_configs:
            return self._endpoint_configs[endpoint]
        return self._default

    def httpx_timeout(self, endpoint: Optional[Endpoint] = None) -> httpx.Timeout:
        """Timeout httpx équivalent (connexion bornée séparément)."""
        config = self.get_config(endpoint)
        return httpx.Timeout(config.request_timeout, connect=config.connection_timeout)

    def set_endpoint_timeout(self, endpoint: Endpoint, config: TimeoutConfig) -> None:
        """
        Configure timeout spécifique par endpoint.

        Raises:
            InvalidTimeoutError: Si configuration invalide
        """
        self._validate_config(config)
        self._endpoint_configs[endpoint] = config
