"""
AUTHCORE - Session Manager

Cycle de vie de la session client: login, logout, renouvellement
single-flight du credential d'accès et re-scoping sur une société.

Machine d'états:
    ANONYMOUS → AUTHENTICATING → AUTHENTICATED → REFRESHING → AUTHENTICATED
    Tout échec de renouvellement ramène à ANONYMOUS (sortie via login seulement).
"""

import asyncio
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..core.errors import AuthCoreError
from ..core.interfaces import ClientConfig, Signal
from ..core.signals import SignalBus
from ..logging.interfaces import IStructuredLogger
from ..network.interfaces import ApiResponse, Endpoint, IApiTransport
from ..network.transport import TransportError, TransportTimeout
from .credential_store import CredentialStore
from .interfaces import (
    ALLOWED_TRANSITIONS,
    Identity,
    ISessionManager,
    LoginResult,
    SessionState,
    TenantInfo,
    TokenClaims,
)


# ══════════════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════════════


class InvalidCredentials(AuthCoreError):
    """Identifiant ou secret refusé."""

    def __init__(self, message: str = "Invalid credentials", code: str = "INVALID_CREDENTIALS") -> None:
        super().__init__(message, code=code)


class AccountLocked(AuthCoreError):
    """Compte verrouillé après trop de tentatives."""

    def __init__(self, message: str = "Account locked", retry_after: Optional[int] = None) -> None:
        self.retry_after = retry_after
        super().__init__(message, code="ACCOUNT_LOCKED")


class LoginFailed(AuthCoreError):
    """Échec de login autre que identifiants/verrouillage."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(message, code=code or "LOGIN_FAILED")


class RenewalFailed(AuthCoreError):
    """Renouvellement impossible: la session est fermée."""

    def __init__(self, message: str, code: str = "RENEWAL_FAILED") -> None:
        super().__init__(message, code=code)


class RescopeFailed(AuthCoreError):
    """Le service a refusé de scoper le credential sur la société."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(message, code=code or "RESCOPE_FAILED")


class AccountRequestFailed(AuthCoreError):
    """Requête de compte (tenants, changement de tenant, identité) refusée ou malformée."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(message, code=code or "ACCOUNT_REQUEST_FAILED")


class SessionStateError(AuthCoreError):
    """Transition d'état de session interdite."""

    def __init__(self, current: SessionState, target: SessionState) -> None:
        self.current = current
        self.target = target
        super().__init__(
            f"Illegal session transition: {current.value} -> {target.value}",
            code="ILLEGAL_SESSION_TRANSITION",
        )


# ══════════════════════════════════════════════════════════════════════════════
# WIRE MODELS
# ══════════════════════════════════════════════════════════════════════════════


class _CredentialPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    credential: str = Field(
        min_length=1,
        validation_alias=AliasChoices("accessCredential", "accessToken", "access_token", "credential"),
    )


class _LoginPayload(_CredentialPayload):
    identity: Optional[Identity] = Field(default=None, validation_alias=AliasChoices("identity", "user"))


# ══════════════════════════════════════════════════════════════════════════════
# IMPLEMENTATION
# ══════════════════════════════════════════════════════════════════════════════


class SessionManager(ISessionManager):
    """
    Gestionnaire de la session client.

    Seul composant autorisé à écrire dans le CredentialStore.

    Le renouvellement est single-flight: tous les appelants concurrents
    attendent la même tâche, et un seul appel réseau part. Un appelant
    annulé n'annule pas la tâche partagée (asyncio.shield).

    Example:
        session = SessionManager(config, transport, store, signals, logger)
        await session.login("user@example.com", "secret")
        credential = await session.ensure_fresh()
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: IApiTransport,
        credential_store: CredentialStore,
        signals: SignalBus,
        logger: IStructuredLogger,
    ) -> None:
        self._config = config
        self._transport = transport
        self._store = credential_store
        self._signals = signals
        self._logger = logger
        self._renewal: Optional["asyncio.Task[str]"] = None

        # Un credential restauré (rechargement) rouvre la session
        if credential_store.read():
            self._state = SessionState.AUTHENTICATED
            self._identity: Optional[Identity] = self._identity_from_claims(credential_store.claims())
            self._apply_tenant(credential_store.claims())
        else:
            self._state = SessionState.ANONYMOUS
            self._identity = None

    # ──────────────────────────────────────────────────────────────────────────
    # Properties
    # ──────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def claims(self) -> Optional[TokenClaims]:
        return self._store.claims()

    @property
    def credential(self) -> Optional[str]:
        """Credential courant tel que stocké (sans contrôle d'expiration)."""
        return self._store.read()

    @property
    def is_authenticated(self) -> bool:
        return self._state in (SessionState.AUTHENTICATED, SessionState.REFRESHING)

    @property
    def renewal_in_flight(self) -> bool:
        return self._renewal is not None

    # ──────────────────────────────────────────────────────────────────────────
    # State machine
    # ──────────────────────────────────────────────────────────────────────────

    def _transition(self, target: SessionState, reason: Optional[str] = None) -> None:
        """
        Applique une transition et émet SESSION_STATE_CHANGED.

        Raises:
            SessionStateError: Transition non autorisée
        """
        if target not in ALLOWED_TRANSITIONS[self._state]:
            raise SessionStateError(self._state, target)

        previous = self._state
        self._state = target
        self._logger.debug(
            "Session state changed",
            previous=previous.value,
            current=target.value,
            reason=reason,
        )
        self._signals.emit(
            Signal.SESSION_STATE_CHANGED,
            previous=previous,
            current=target,
            reason=reason,
        )

    # ──────────────────────────────────────────────────────────────────────────
    # Login / logout
    # ──────────────────────────────────────────────────────────────────────────

    async def login(self, identifier: str, secret: str) -> LoginResult:
        """
        Authentifie l'utilisateur auprès du service.

        Une session déjà ouverte est fermée localement avant la tentative.

        Raises:
            InvalidCredentials: Identifiants refusés (401)
            AccountLocked: Compte verrouillé (code ACCOUNT_LOCKED)
            LoginFailed: Tout autre échec (réseau, réponse malformée...)
            SessionStateError: Login ou renouvellement déjà en cours
        """
        if not identifier or not secret:
            raise InvalidCredentials("Identifier and secret are required")

        if self._state == SessionState.AUTHENTICATED:
            self._sign_out_locally("replaced")

        self._transition(SessionState.AUTHENTICATING, "login")

        try:
            response = await self._transport.send(
                "POST",
                self._config.login_path,
                headers=self._headers(),
                json={"email": identifier, "password": secret},
                endpoint=Endpoint.LOGIN,
            )
        except TransportError as e:
            self._abort_login()
            raise LoginFailed(f"Login request failed: {e}", code=e.code) from e

        if self._state != SessionState.AUTHENTICATING:
            raise LoginFailed("Login interrupted by sign-out", code="LOGIN_INTERRUPTED")

        if not response.success:
            self._abort_login()
            error = self._login_error(response)
            self._logger.warn(
                "Login rejected",
                status=response.status_code,
                error_code=response.error_code,
            )
            raise error

        try:
            payload = _LoginPayload.model_validate(response.data)
        except ValidationError as e:
            self._abort_login()
            raise LoginFailed("Malformed login response", status_code=response.status_code) from e

        self._store.save(payload.credential)
        claims = self._store.claims()
        self._identity = payload.identity or self._identity_from_claims(claims)
        if self._identity is None:
            self._store.clear()
            self._abort_login()
            raise LoginFailed("Login response carries no identity", status_code=response.status_code)

        self._apply_tenant(claims)
        self._transition(SessionState.AUTHENTICATED, "login")
        self._logger.info("Login succeeded", identity_id=self._identity.identity_id)

        return LoginResult(identity=self._identity, credential=payload.credential)

    def _abort_login(self) -> None:
        if self._state == SessionState.AUTHENTICATING:
            self._transition(SessionState.ANONYMOUS, "login_failed")

    def _login_error(self, response: ApiResponse) -> AuthCoreError:
        code = response.error_code
        message = response.error_message or "Login failed"

        if code in self._config.account_locked_codes:
            return AccountLocked(message, retry_after=_retry_after(response.error_details))

        if response.status_code == 401 or code in self._config.invalid_credentials_codes:
            return InvalidCredentials(message, code=code or "INVALID_CREDENTIALS")

        return LoginFailed(message, status_code=response.status_code, code=code)

    async def logout(self) -> None:
        """
        Logout distant best-effort, puis nettoyage local inconditionnel.

        Ne lève jamais sur échec distant.
        """
        credential = self._store.read()
        if credential and self._state != SessionState.ANONYMOUS:
            try:
                response = await self._transport.send(
                    "POST",
                    self._config.logout_path,
                    headers=self._headers(credential),
                    endpoint=Endpoint.LOGOUT,
                )
                if not response.success:
                    self._logger.warn(
                        "Remote logout rejected",
                        status=response.status_code,
                        error_code=response.error_code,
                    )
            except TransportError as e:
                self._logger.warn("Remote logout failed", error=str(e), error_type=type(e).__name__)

        self._sign_out_locally("logout")

    def sign_out(self, reason: str) -> None:
        """Fermeture locale forcée (ex: 401 persistant après renouvellement)."""
        self._sign_out_locally(reason)

    def _sign_out_locally(self, reason: str) -> None:
        had_session = self._state != SessionState.ANONYMOUS or self._store.read() is not None

        self._store.clear()
        self._transport.clear_cookies()
        self._identity = None
        if self._state != SessionState.ANONYMOUS:
            self._transition(SessionState.ANONYMOUS, reason)
        self._logger.set_default_tenant(None)

        if had_session:
            self._logger.info("Signed out", reason=reason)
            self._signals.emit(Signal.SIGNED_OUT, reason=reason)

    # ──────────────────────────────────────────────────────────────────────────
    # Renewal
    # ──────────────────────────────────────────────────────────────────────────

    async def renew(self) -> str:
        """
        Renouvelle le credential d'accès (single-flight).

        Raises:
            RenewalFailed: Pas de session, ou échec du renouvellement
                (la session est alors fermée)
        """
        if self._renewal is None:
            if self._state != SessionState.AUTHENTICATED:
                raise RenewalFailed(
                    f"No session to renew (state: {self._state.value})",
                    code="NO_SESSION",
                )
            task = asyncio.get_running_loop().create_task(self._run_renewal())
            task.add_done_callback(_consume_result)
            self._renewal = task

        return await asyncio.shield(self._renewal)

    async def ensure_fresh(self) -> str:
        """
        Credential courant s'il n'est pas expiré, sinon renouvelé.

        Un renouvellement en cours est toujours rejoint.
        """
        if self._renewal is None and self._state == SessionState.AUTHENTICATED:
            credential = self._store.read()
            if credential and not self._store.is_expired():
                return credential
        return await self.renew()

    async def _run_renewal(self) -> str:
        try:
            # Une fermeture a pu survenir avant le démarrage de la tâche
            if self._state != SessionState.AUTHENTICATED:
                raise RenewalFailed("Session closed before renewal", code="SESSION_CLOSED")
            self._transition(SessionState.REFRESHING, "renewal")

            try:
                response = await self._transport.send(
                    "POST",
                    self._config.renew_path,
                    headers=self._headers(),
                    endpoint=Endpoint.RENEW,
                )
            except TransportTimeout as e:
                raise self._renewal_failure("Renewal timed out", "RENEWAL_TIMEOUT") from e
            except TransportError as e:
                raise self._renewal_failure(f"Renewal transport failure: {e}", "RENEWAL_TRANSPORT") from e

            if self._state != SessionState.REFRESHING:
                raise RenewalFailed("Session closed during renewal", code="SESSION_CLOSED")

            if not response.success:
                raise self._renewal_failure(
                    response.error_message or f"Renewal rejected with status {response.status_code}",
                    response.error_code or "RENEWAL_REJECTED",
                )

            credential = _extract_credential(response.data)
            if credential is None:
                raise self._renewal_failure("Renewal response carries no credential", "RENEWAL_MALFORMED")

            self._store.save(credential)
            claims = self._store.claims()
            if self._identity is None:
                self._identity = self._identity_from_claims(claims)
            self._apply_tenant(claims)
            self._transition(SessionState.AUTHENTICATED, "renewed")
            self._logger.info("Credential renewed")
            return credential
        finally:
            self._renewal = None

    def _renewal_failure(self, message: str, code: str) -> RenewalFailed:
        self._logger.warn("Credential renewal failed", failure=code, detail=message)
        self._sign_out_locally("session_expired")
        return RenewalFailed(message, code=code)

    # ──────────────────────────────────────────────────────────────────────────
    # Company re-scoping
    # ──────────────────────────────────────────────────────────────────────────

    async def rescope(self, company_id: str) -> str:
        """
        Obtient un credential scopé sur company_id (POST switch-company).

        Un 401 déclenche un renouvellement puis un unique nouvel essai.

        Raises:
            RescopeFailed: Refus du service ou réponse malformée
            RenewalFailed: Session fermée
            TransportError: Échec réseau
        """
        if not company_id:
            raise ValueError("company_id cannot be empty")

        response = await self._send_authorized(
            "POST",
            self._config.switch_company_path,
            Endpoint.SWITCH_COMPANY,
            json={"companyId": company_id, "company_id": company_id},
        )

        if not response.success:
            raise RescopeFailed(
                response.error_message or f"Company switch rejected with status {response.status_code}",
                status_code=response.status_code,
                code=response.error_code,
            )

        scoped = _extract_credential(response.data)
        if scoped is None:
            raise RescopeFailed("Company switch response carries no credential", status_code=response.status_code)

        if self._state == SessionState.ANONYMOUS:
            raise RescopeFailed("Session closed during company switch", code="SESSION_CLOSED")

        self._store.save(scoped)
        self._logger.info("Credential rescoped", company_id=company_id)
        return scoped

    # ──────────────────────────────────────────────────────────────────────────
    # Tenants et identité
    # ──────────────────────────────────────────────────────────────────────────

    async def list_tenants(self) -> List[TenantInfo]:
        """
        Tenants accessibles (GET /auth/tenants).

        Raises:
            AccountRequestFailed: Réponse en échec ou malformée
            RenewalFailed: Session fermée
            TransportError: Échec réseau
        """
        response = await self._send_authorized("GET", self._config.tenants_path, Endpoint.TENANTS)
        self._raise_for_account(response, "Tenant listing")

        data: Any = response.data
        if isinstance(data, dict):
            data = data.get("tenants")
        if not isinstance(data, list):
            raise AccountRequestFailed(
                "Malformed tenant payload: list expected",
                status_code=response.status_code,
                code="TENANTS_MALFORMED",
            )

        try:
            return [TenantInfo.model_validate(item) for item in data]
        except ValidationError as e:
            raise AccountRequestFailed(
                f"Malformed tenant entry: {e.error_count()} error(s)",
                status_code=response.status_code,
                code="TENANTS_MALFORMED",
            ) from e

    async def switch_tenant(self, tenant_id: str) -> str:
        """
        Obtient un credential scopé sur tenant_id (POST switch-tenant).

        Le nouveau credential n'est scopé sur aucune société: TENANT_CHANGED
        est émis pour que le contexte actif soit vidé puis résolu à nouveau.

        Raises:
            AccountRequestFailed: Refus du service ou réponse malformée
            RenewalFailed: Session fermée
            TransportError: Échec réseau
        """
        if not tenant_id:
            raise ValueError("tenant_id cannot be empty")

        response = await self._send_authorized(
            "POST",
            self._config.switch_tenant_path,
            Endpoint.SWITCH_TENANT,
            json={"tenantId": tenant_id},
        )
        self._raise_for_account(response, "Tenant switch")

        credential = _extract_credential(response.data)
        if credential is None:
            raise AccountRequestFailed(
                "Tenant switch response carries no credential",
                status_code=response.status_code,
                code="TENANT_SWITCH_MALFORMED",
            )

        if self._state == SessionState.ANONYMOUS:
            raise AccountRequestFailed("Session closed during tenant switch", code="SESSION_CLOSED")

        previous = self.claims.tenant_id if self.claims else None
        self._store.save(credential)
        claims = self._store.claims()
        self._apply_tenant(claims)

        current = claims.tenant_id if claims else None
        self._logger.info("Tenant switched", previous=previous, current=current)
        self._signals.emit(Signal.TENANT_CHANGED, previous=previous, current=current)
        return credential

    async def refresh_identity(self) -> Identity:
        """
        Recharge l'identité courante (GET /auth/me).

        Raises:
            AccountRequestFailed: Réponse en échec ou sans utilisateur
            RenewalFailed: Session fermée
            TransportError: Échec réseau
        """
        response = await self._send_authorized("GET", self._config.current_user_path, Endpoint.CURRENT_USER)
        self._raise_for_account(response, "Identity refresh")

        data = response.data if isinstance(response.data, dict) else {}
        try:
            identity = Identity.model_validate(data.get("user", data))
        except ValidationError as e:
            raise AccountRequestFailed(
                "Malformed current user payload",
                status_code=response.status_code,
                code="CURRENT_USER_MALFORMED",
            ) from e

        if self._state == SessionState.ANONYMOUS:
            raise AccountRequestFailed("Session closed during identity refresh", code="SESSION_CLOSED")

        self._identity = identity
        self._logger.debug("Identity refreshed", identity_id=identity.identity_id)
        return identity

    def _raise_for_account(self, response: ApiResponse, operation: str) -> None:
        if not response.success:
            raise AccountRequestFailed(
                response.error_message or f"{operation} rejected with status {response.status_code}",
                status_code=response.status_code,
                code=response.error_code,
            )

    async def _send_authorized(
        self,
        method: str,
        path: str,
        endpoint: Endpoint,
        json: Any = None,
    ) -> ApiResponse:
        """Envoi avec le credential courant; un 401 renouvelle puis réessaie une fois."""
        credential = await self.ensure_fresh()
        response = await self._transport.send(
            method, path, headers=self._headers(credential), json=json, endpoint=endpoint
        )

        if self._is_unauthenticated(response):
            credential = await self.renew()
            response = await self._transport.send(
                method, path, headers=self._headers(credential), json=json, endpoint=endpoint
            )
        return response

    # ──────────────────────────────────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────────────────────────────────

    def _is_unauthenticated(self, response: ApiResponse) -> bool:
        return response.status_code == 401 or response.error_code in self._config.unauthenticated_codes

    def _headers(self, credential: Optional[str] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if credential:
            headers[self._config.authorization_header] = f"Bearer {credential}"
        csrf = self._transport.csrf_token()
        if csrf:
            headers[self._config.csrf_header] = csrf
        return headers

    def _apply_tenant(self, claims: Optional[TokenClaims]) -> None:
        self._logger.set_default_tenant(claims.tenant_id if claims else None)

    @staticmethod
    def _identity_from_claims(claims: Optional[TokenClaims]) -> Optional[Identity]:
        if claims is None or not claims.identity_id:
            return None
        return Identity(identity_id=claims.identity_id, email=claims.email)


def _extract_credential(data: Any) -> Optional[str]:
    try:
        return _CredentialPayload.model_validate(data).credential
    except ValidationError:
        return None


def _retry_after(details: Dict[str, Any]) -> Optional[int]:
    value = details.get("retryAfterSeconds", details.get("retry_after"))
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _consume_result(task: "asyncio.Task[str]") -> None:
    # Évite "exception was never retrieved" quand aucun appelant n'attend plus
    if not task.cancelled():
        task.exception()
