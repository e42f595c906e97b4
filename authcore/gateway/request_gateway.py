"""
AUTHCORE - Request Gateway

Enveloppe de tous les appels authentifiés au service:
- En-têtes identité, contexte société, anti-forgery, corrélation
- 401 → renouvellement single-flight → un seul nouvel essai
- 403 "pas d'accès à la société" → resynchronisation de l'annuaire
- 403 générique → rafraîchissement de l'annuaire puis PermissionDenied
"""

import uuid
from typing import Any, Dict, Mapping, Optional

from ..auth.interfaces import SessionState
from ..auth.session_manager import RenewalFailed, SessionManager
from ..context.context_manager import ContextManager
from ..context.interfaces import ContextStatus
from ..core.errors import AuthCoreError
from ..core.interfaces import ClientConfig
from ..logging.structured_logger import ContextualLogger, StructuredLogger
from ..network.interfaces import ApiResponse, IApiTransport
from ..network.transport import ApiError


# ══════════════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════════════


class SessionExpired(AuthCoreError):
    """L'appel nécessite une session qui n'existe plus."""

    def __init__(self, message: str = "Session expired", code: Optional[str] = None) -> None:
        super().__init__(message, code=code or "SESSION_EXPIRED")


class NoAccessibleCompany(AuthCoreError):
    """Plus aucune société accessible après resynchronisation."""

    def __init__(self, previous: Optional[str] = None) -> None:
        self.previous = previous
        super().__init__("No accessible company remains", code="NO_ACCESSIBLE_COMPANY")


class CompanyContextChanged(AuthCoreError):
    """
    Accès à la société active révoqué; une autre société a été activée.

    L'appel d'origine n'est pas rejoué sous la nouvelle société.
    """

    def __init__(self, previous: Optional[str], current: Optional[str]) -> None:
        self.previous = previous
        self.current = current
        super().__init__(
            f"Active company changed from {previous!r} to {current!r}",
            code="COMPANY_CONTEXT_CHANGED",
        )


class PermissionDenied(AuthCoreError):
    """403 générique: le rôle effectif n'autorise pas l'opération."""

    def __init__(self, message: str = "Permission denied", code: Optional[str] = None, status_code: int = 403) -> None:
        self.status_code = status_code
        super().__init__(message, code=code or "PERMISSION_DENIED")


# ══════════════════════════════════════════════════════════════════════════════
# IMPLEMENTATION
# ══════════════════════════════════════════════════════════════════════════════


class RequestGateway:
    """
    Passerelle des appels authentifiés.

    Example:
        gateway = RequestGateway(config, transport, session, context, logger)
        orders = await gateway.get("/sales-orders", params={"page": 1})
        await gateway.post("/customers", json={"name": "PT Maju"})
    """

    MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

    def __init__(
        self,
        config: ClientConfig,
        transport: IApiTransport,
        session: SessionManager,
        context: ContextManager,
        logger: StructuredLogger,
    ) -> None:
        self._config = config
        self._transport = transport
        self._session = session
        self._context = context
        self._logger = logger

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        company_scoped: bool = True,
    ) -> Any:
        """
        Exécute un appel authentifié et retourne le champ data.

        Raises:
            SessionExpired: Session absente ou définitivement expirée
            CompanyContextChanged: Société active révoquée, autre société activée
            NoAccessibleCompany: Plus aucune société accessible
            PermissionDenied: 403 générique
            ApiError: Autre réponse en échec
            TransportError / TransportTimeout: Échec réseau
        """
        method = method.upper()
        correlation_id = str(uuid.uuid4())
        log = self._logger.with_context(correlation_id=correlation_id)

        if self._session.state == SessionState.ANONYMOUS:
            raise SessionExpired("No active session")

        credential = await self._fresh_credential()
        response = await self._send(method, path, credential, correlation_id, json, params, company_scoped)

        if self._is_unauthenticated(response):
            log.info("Access credential rejected, renewing", method=method, path=path)
            credential = await self._renewed_credential(credential)
            response = await self._send(method, path, credential, correlation_id, json, params, company_scoped)

            if self._is_unauthenticated(response):
                log.warn("Access credential rejected after renewal", method=method, path=path)
                self._session.sign_out("session_expired")
                raise SessionExpired(code=response.error_code)

        if response.is_forbidden:
            if response.error_code in self._config.no_context_access_codes:
                await self._handle_context_denied(response, log)
            await self._handle_forbidden(response, log)

        if not response.success:
            raise ApiError.from_response(response)

        return response.data

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    # ──────────────────────────────────────────────────────────────────────────
    # Credential
    # ──────────────────────────────────────────────────────────────────────────

    async def _fresh_credential(self) -> str:
        try:
            return await self._session.ensure_fresh()
        except RenewalFailed as e:
            raise SessionExpired(str(e), code=e.code) from e

    async def _renewed_credential(self, rejected: str) -> str:
        """
        Credential à utiliser après un 401.

        Si un autre appel a déjà renouvelé le credential rejeté, le nouveau
        est réutilisé sans second renouvellement.
        """
        current = self._session.credential
        try:
            if self._session.renewal_in_flight or current is None or current == rejected:
                return await self._session.renew()
            return current
        except RenewalFailed as e:
            raise SessionExpired(str(e), code=e.code) from e

    def _is_unauthenticated(self, response: ApiResponse) -> bool:
        return response.is_unauthorized or (
            not response.success and response.error_code in self._config.unauthenticated_codes
        )

    # ──────────────────────────────────────────────────────────────────────────
    # Envoi
    # ──────────────────────────────────────────────────────────────────────────

    async def _send(
        self,
        method: str,
        path: str,
        credential: str,
        correlation_id: str,
        json: Any,
        params: Optional[Mapping[str, Any]],
        company_scoped: bool,
    ) -> ApiResponse:
        headers = self._headers(method, credential, correlation_id, company_scoped)
        return await self._transport.send(method, path, headers=headers, json=json, params=params)

    def _headers(self, method: str, credential: str, correlation_id: str, company_scoped: bool) -> Dict[str, str]:
        """En-têtes construits au moment de l'envoi (instantané du contexte actif)."""
        headers = {
            self._config.authorization_header: f"Bearer {credential}",
            self._config.correlation_header: correlation_id,
        }

        if company_scoped:
            active = self._context.get_active()
            if active:
                headers[self._config.company_header] = active

        if method in self.MUTATING_METHODS:
            csrf = self._transport.csrf_token()
            if csrf:
                headers[self._config.csrf_header] = csrf

        return headers

    # ──────────────────────────────────────────────────────────────────────────
    # 403
    # ──────────────────────────────────────────────────────────────────────────

    async def _handle_context_denied(self, response: ApiResponse, log: ContextualLogger) -> None:
        """
        Accès révoqué à la société active: resynchronise l'annuaire.

        Raises:
            NoAccessibleCompany: Plus aucune société
            CompanyContextChanged: Une autre société a été activée
            PermissionDenied: La société reste accessible
        """
        previous = self._context.get_active()
        log.warn("Company access denied, resyncing directory", company_id=previous, error_code=response.error_code)

        outcome = await self._context.resync()

        if outcome.status == ContextStatus.NO_ACCESSIBLE_COMPANY or outcome.current is None:
            raise NoAccessibleCompany(previous)
        if outcome.current != previous:
            raise CompanyContextChanged(previous, outcome.current)

        # Société toujours présente dans l'annuaire: refus ordinaire
        raise PermissionDenied(
            response.error_message or "Company access denied",
            code=response.error_code,
            status_code=response.status_code,
        )

    async def _handle_forbidden(self, response: ApiResponse, log: ContextualLogger) -> None:
        """
        403 générique: les rôles en cache peuvent être périmés, on
        rafraîchit l'annuaire une fois avant de refuser.

        Raises:
            PermissionDenied: Toujours
        """
        try:
            await self._context.resync()
        except AuthCoreError as e:
            log.warn("Directory refresh after 403 failed", error=str(e), error_type=type(e).__name__)

        raise PermissionDenied(
            response.error_message or "Permission denied",
            code=response.error_code,
            status_code=response.status_code,
        )
