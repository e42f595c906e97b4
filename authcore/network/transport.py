"""
AUTHCORE - API Transport

Transport HTTP asynchrone (httpx) vers le service d'identité.

Le cookie jar du client httpx tient le cookie de renouvellement (HTTP-only,
jamais lu par le core) et le cookie anti-forgery (recopié en en-tête par le
gateway).
"""

import asyncio
import time
from typing import Any, Dict, Mapping, Optional

import httpx

from ..core.errors import AuthCoreError
from ..core.interfaces import ClientConfig
from ..logging.interfaces import IStructuredLogger
from .interfaces import ApiResponse, Endpoint, IApiTransport, TimeoutType
from .timeout_manager import TimeoutManager


class ApiError(AuthCoreError):
    """Réponse non réussie du service distant."""

    def __init__(
        self,
        status_code: int,
        code: Optional[str] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message or f"Request failed with status {status_code}", code=code)

    @classmethod
    def from_response(cls, response: ApiResponse) -> "ApiError":
        return cls(
            response.status_code,
            code=response.error_code,
            message=response.error_message,
            details=response.error_details,
        )


class TransportError(AuthCoreError):
    """Échec réseau (connexion refusée, coupure, DNS...)."""

    def __init__(self, message: str, code: str = "TRANSPORT_ERROR") -> None:
        super().__init__(message, code=code)


class TransportTimeout(TransportError):
    """Timeout réseau dépassé."""

    def __init__(self, message: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(message, code="TRANSPORT_TIMEOUT")


class ApiTransport(IApiTransport):
    """
    Transport httpx avec timeouts par endpoint.

    Example:
        transport = ApiTransport(config, TimeoutManager.from_client_config(config))
        response = await transport.send("GET", "/tenant/companies", headers=headers)
        await transport.aclose()
    """

    def __init__(
        self,
        config: ClientConfig,
        timeouts: Optional[TimeoutManager] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        """
        Args:
            config: Configuration client
            timeouts: Gestionnaire de timeouts (dérivé de config si absent)
            client: Client httpx injecté (tests, proxy...); créé sinon
            logger: Logger structuré
        """
        self._config = config
        self._timeouts = timeouts or TimeoutManager.from_client_config(config)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=self._timeouts.httpx_timeout(),
        )
        self._logger = logger

    @property
    def timeouts(self) -> TimeoutManager:
        return self._timeouts

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

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
        Envoie une requête bornée par le timeout de l'endpoint.

        Raises:
            TransportTimeout: Timeout dépassé
            TransportError: Échec réseau
        """
        url = self._config.base_url + self._config.endpoint(path)
        timeout = self._timeouts.get_timeout(TimeoutType.REQUEST, endpoint)
        started = time.monotonic()

        try:
            response = await asyncio.wait_for(
                self._client.request(
                    method.upper(),
                    url,
                    headers=dict(headers or {}),
                    json=json,
                    params=dict(params) if params else None,
                    timeout=self._timeouts.httpx_timeout(endpoint),
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            self._log_failure(method, url, "timeout", e)
            raise TransportTimeout(f"{method.upper()} {url} timed out after {timeout}s", timeout) from e
        except httpx.TransportError as e:
            self._log_failure(method, url, "transport", e)
            raise TransportError(f"{method.upper()} {url} failed: {e}") from e

        result = self._decode(response)

        if self._logger is not None:
            self._logger.debug(
                "HTTP request completed",
                method=method.upper(),
                path=url,
                status=result.status_code,
                error_code=result.error_code,
                duration_ms=round((time.monotonic() - started) * 1000, 1),
            )

        return result

    @staticmethod
    def _decode(response: httpx.Response) -> ApiResponse:
        """
        Décode l'enveloppe {success, data?, error?}.

        Un corps qui n'est pas une enveloppe JSON donne success selon le
        statut HTTP et aucun code d'erreur.
        """
        status = response.status_code
        status_ok = 200 <= status < 300

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict) or "success" not in body:
            return ApiResponse(status_code=status, success=status_ok, data=body)

        error = body.get("error")
        code: Optional[str] = None
        message: Optional[str] = None
        details: Dict[str, Any] = {}
        if isinstance(error, dict):
            code = error.get("code")
            message = error.get("message")
            if isinstance(error.get("details"), dict):
                details = error["details"]
        elif isinstance(error, str):
            message = error

        return ApiResponse(
            status_code=status,
            success=bool(body.get("success")) and status < 400,
            data=body.get("data"),
            error_code=code,
            error_message=message,
            error_details=details,
        )

    def _log_failure(self, method: str, url: str, kind: str, error: Exception) -> None:
        if self._logger is not None:
            self._logger.warn(
                "HTTP request failed",
                method=method.upper(),
                path=url,
                failure=kind,
                error_type=type(error).__name__,
            )

    def csrf_token(self) -> Optional[str]:
        """Valeur du cookie anti-forgery (premier trouvé, tous domaines)."""
        for cookie in self._client.cookies.jar:
            if cookie.name == self._config.csrf_cookie_name:
                return cookie.value
        return None

    def clear_cookies(self) -> None:
        self._client.cookies.clear()

    async def aclose(self) -> None:
        """Ferme le client httpx s'il a été créé ici."""
        if self._owns_client:
            await self._client.aclose()
