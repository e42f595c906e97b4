"""
AUTHCORE - Network

Transport HTTP vers le service d'identité avec:
- Timeouts connexion/requête (connexion ≤ 10s, requête ≤ 30s, par endpoint)
- Décodage de l'enveloppe {success, data, error}
- Cookie jar (cookie de renouvellement, cookie anti-forgery)
"""

from .interfaces import (
    # Enums
    TimeoutType,
    Endpoint,
    # Data classes
    TimeoutConfig,
    ApiResponse,
    # Interfaces
    ITimeoutManager,
    IApiTransport,
)
from .timeout_manager import (
    TimeoutManager,
    InvalidTimeoutError,
)
from .transport import (
    ApiTransport,
    # Exceptions
    ApiError,
    TransportError,
    TransportTimeout,
)

__all__ = [
    # Enums
    "TimeoutType",
    "Endpoint",
    # Data classes
    "TimeoutConfig",
    "ApiResponse",
    # Interfaces
    "ITimeoutManager",
    "IApiTransport",
    # Implementations
    "TimeoutManager",
    "ApiTransport",
    # Exceptions
    "InvalidTimeoutError",
    "ApiError",
    "TransportError",
    "TransportTimeout",
]
