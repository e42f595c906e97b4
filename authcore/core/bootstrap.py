"""
AUTHCORE - Bootstrap

Assemble un jeu de singletons (store, session, annuaire, contexte,
gateway) par session de navigation.
"""

import sys
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import httpx

from ..auth.credential_store import CredentialStore
from ..auth.session_manager import SessionManager
from ..context.context_manager import ContextManager
from ..directory.directory_client import DirectoryClient
from ..gateway.request_gateway import RequestGateway
from ..logging.interfaces import LogConfig, LogLevel
from ..logging.structured_logger import StructuredLogger
from ..network.timeout_manager import TimeoutManager
from ..network.transport import ApiTransport
from ..storage.interfaces import IClientStorage
from ..storage.memory_storage import InMemoryStorage
from .config_loader import ConfigLoader
from .interfaces import ClientConfig
from .signals import SignalBus


@dataclass
class AuthCore:
    """Composants câblés d'une session de navigation."""

    config: ClientConfig
    logger: StructuredLogger
    signals: SignalBus
    transport: ApiTransport
    credentials: CredentialStore
    session: SessionManager
    directory: DirectoryClient
    context: ContextManager
    gateway: RequestGateway

    async def aclose(self) -> None:
        """Détache les abonnements et ferme le transport."""
        self.context.close()
        self.signals.clear()
        await self.transport.aclose()


def _stderr_handler(line: str) -> None:
    print(line, file=sys.stderr)


def create_auth_core(
    config: Union[ClientConfig, Mapping[str, Any]],
    *,
    storage: Optional[IClientStorage] = None,
    credential_storage: Optional[IClientStorage] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    logger: Optional[StructuredLogger] = None,
) -> AuthCore:
    """
    Construit le core d'identité.

    Args:
        config: Configuration (ou dictionnaire à valider)
        storage: Stockage de la société active (vue partagée pour le
            multi-onglets); volatile par défaut
        credential_storage: Slot du credential d'accès; volatile par défaut
        http_client: Client httpx injecté (proxy, tests)
        logger: Logger structuré; JSON sur stderr par défaut

    Returns:
        AuthCore prêt à l'emploi (initialize() reste à appeler après login)

    Raises:
        ConfigIntegrityError: Configuration invalide
        InvalidTimeoutError: Timeouts hors limites
    """
    if not isinstance(config, ClientConfig):
        config = ConfigLoader().from_dict(config)

    logger = logger or StructuredLogger(
        "authcore",
        config=LogConfig(min_level=LogLevel.parse(config.log_level)),
        output_handler=_stderr_handler,
    )
    signals = SignalBus(logger)

    timeouts = TimeoutManager.from_client_config(config)
    transport = ApiTransport(config, timeouts, client=http_client, logger=logger)

    credentials = CredentialStore(
        credential_storage if credential_storage is not None else InMemoryStorage(),
        storage_key=config.credential_storage_key,
        skew_seconds=config.expiry_skew_seconds,
    )
    session = SessionManager(config, transport, credentials, signals, logger)
    directory = DirectoryClient(config, transport, session, logger)
    if storage is None:
        storage = InMemoryStorage()
    context = ContextManager(config, session, directory, storage, signals, logger)
    gateway = RequestGateway(config, transport, session, context, logger)

    return AuthCore(
        config=config,
        logger=logger,
        signals=signals,
        transport=transport,
        credentials=credentials,
        session=session,
        directory=directory,
        context=context,
        gateway=gateway,
    )
