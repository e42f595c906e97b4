"""
AUTHCORE - Directory Client

Lecture distante de la liste des sociétés accessibles (GET /tenant/companies).
Aucun état: le cache est tenu par le ContextManager.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..auth.interfaces import ISessionManager
from ..core.errors import AuthCoreError
from ..core.interfaces import ClientConfig
from ..logging.interfaces import IStructuredLogger
from ..network.interfaces import ApiResponse, Endpoint, IApiTransport
from .interfaces import AccessibleCompany, IDirectoryClient


class DirectoryError(AuthCoreError):
    """Réponse d'annuaire en échec ou malformée."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(message, code=code or "DIRECTORY_ERROR")


class DirectoryClient(IDirectoryClient):
    """
    Client de l'annuaire des sociétés.

    Example:
        directory = DirectoryClient(config, transport, session, logger)
        companies = await directory.list_accessible_companies()
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: IApiTransport,
        session: ISessionManager,
        logger: IStructuredLogger,
    ) -> None:
        self._config = config
        self._transport = transport
        self._session = session
        self._logger = logger

    async def list_accessible_companies(self) -> List[AccessibleCompany]:
        """
        Un 401 déclenche un renouvellement puis un unique nouvel essai.

        Raises:
            DirectoryError: Réponse en échec ou malformée
            TransportError: Échec réseau (inchangé)
            RenewalFailed: Session fermée
        """
        credential = await self._session.ensure_fresh()
        response = await self._fetch(credential)

        if response.status_code == 401 or response.error_code in self._config.unauthenticated_codes:
            credential = await self._session.renew()
            response = await self._fetch(credential)

        if not response.success:
            raise DirectoryError(
                response.error_message or f"Directory request failed with status {response.status_code}",
                status_code=response.status_code,
                code=response.error_code,
            )

        companies = self._parse(response)
        self._logger.debug("Directory fetched", company_count=len(companies))
        return companies

    async def _fetch(self, credential: str) -> ApiResponse:
        headers: Dict[str, str] = {self._config.authorization_header: f"Bearer {credential}"}
        return await self._transport.send(
            "GET",
            self._config.directory_path,
            headers=headers,
            endpoint=Endpoint.DIRECTORY,
        )

    @staticmethod
    def _parse(response: ApiResponse) -> List[AccessibleCompany]:
        data: Any = response.data
        if isinstance(data, dict):
            data = data.get("companies")
        if not isinstance(data, list):
            raise DirectoryError(
                "Malformed directory payload: list expected",
                status_code=response.status_code,
                code="DIRECTORY_MALFORMED",
            )

        try:
            return [AccessibleCompany.model_validate(item) for item in data]
        except ValidationError as e:
            raise DirectoryError(
                f"Malformed directory entry: {e.error_count()} error(s)",
                status_code=response.status_code,
                code="DIRECTORY_MALFORMED",
            ) from e
