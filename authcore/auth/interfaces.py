"""
AUTHCORE - Interfaces Auth

Contrats pour le credential d'accès et la session client.
Toute implémentation DOIT respecter ces interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SessionState(Enum):
    """États de la session client."""

    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


# Transitions autorisées; toute autre lève SessionStateError
ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.ANONYMOUS: frozenset({SessionState.AUTHENTICATING}),
    SessionState.AUTHENTICATING: frozenset(
        {SessionState.AUTHENTICATED, SessionState.ANONYMOUS}
    ),
    SessionState.AUTHENTICATED: frozenset({SessionState.REFRESHING, SessionState.ANONYMOUS}),
    SessionState.REFRESHING: frozenset(
        {SessionState.AUTHENTICATED, SessionState.ANONYMOUS}
    ),
}


class Identity(BaseModel):
    """
    Utilisateur authentifié.

    Accepte les noms de champs du service (id, fullName) comme les noms
    canoniques.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    identity_id: str = Field(validation_alias=AliasChoices("identity_id", "identityId", "id"))
    display_name: str = Field(
        default="",
        validation_alias=AliasChoices("display_name", "displayName", "fullName", "name"),
    )
    email: Optional[str] = Field(default=None, validation_alias=AliasChoices("email", "contact"))

    @field_validator("identity_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class TenantInfo(BaseModel):
    """
    Tenant accessible à l'utilisateur, avec son rôle de niveau tenant.

    Accepte les noms de champs du service (id, tenantId).
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    tenant_id: str = Field(validation_alias=AliasChoices("tenant_id", "tenantId", "id"))
    name: str = ""
    status: Optional[str] = None
    role: Optional[str] = None

    @property
    def active(self) -> bool:
        # Statuts ouvrant l'accès côté service
        return self.status is None or self.status.upper() in ("ACTIVE", "TRIAL")


@dataclass(frozen=True)
class TokenClaims:
    """
    Claims décodés du credential d'accès (JWT).

    Attributes:
        identity_id: Identifiant utilisateur (user_id ou sub)
        tenant_id: Tenant de la session
        role: Rôle tenant porté par le credential (ex: OWNER)
        company_id: Société pour laquelle le credential est scopé
        email: Email utilisateur
        issued_at: Date d'émission (iat)
        expires_at: Date d'expiration (exp)
    """

    identity_id: Optional[str]
    tenant_id: Optional[str]
    role: Optional[str] = None
    company_id: Optional[str] = None
    email: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TokenClaims":
        """Construit les claims depuis un payload JWT décodé."""
        return cls(
            identity_id=_as_str(payload.get("user_id") or payload.get("sub")),
            tenant_id=_as_str(payload.get("tenant_id")),
            role=_as_str(payload.get("role")),
            company_id=_as_str(payload.get("company_id")),
            email=_as_str(payload.get("email")),
            issued_at=_as_datetime(payload.get("iat")),
            expires_at=_as_datetime(payload.get("exp")),
        )


def _as_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


@dataclass(frozen=True)
class LoginResult:
    """Résultat d'un login réussi."""

    identity: Identity
    credential: str


class ICredentialStore(ABC):
    """
    Interface stockage du credential d'accès.

    Aucune opération réseau. Seul le SessionManager écrit.
    """

    @abstractmethod
    def save(self, credential: str) -> None:
        """Enregistre le credential courant."""
        pass

    @abstractmethod
    def read(self) -> Optional[str]:
        """Retourne le credential courant ou None."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Efface le credential."""
        pass

    @abstractmethod
    def is_expired(self, skew_seconds: Optional[int] = None) -> bool:
        """
        True si absent, indécodable, sans exp, ou expiré (avec avance skew).
        """
        pass

    @abstractmethod
    def claims(self) -> Optional[TokenClaims]:
        """Claims du credential courant, None si absent ou indécodable."""
        pass


class ISessionManager(ABC):
    """Interface cycle de vie de la session."""

    @property
    @abstractmethod
    def state(self) -> SessionState:
        """État courant."""
        pass

    @abstractmethod
    async def login(self, identifier: str, secret: str) -> LoginResult:
        """
        Authentifie l'utilisateur.

        Raises:
            InvalidCredentials: Identifiants refusés
            AccountLocked: Compte verrouillé
            LoginFailed: Tout autre échec
        """
        pass

    @abstractmethod
    async def logout(self) -> None:
        """Logout distant best-effort puis nettoyage local inconditionnel."""
        pass

    @abstractmethod
    async def renew(self) -> str:
        """
        Renouvelle le credential (single-flight).

        Raises:
            RenewalFailed: Renouvellement impossible, session fermée
        """
        pass

    @abstractmethod
    async def ensure_fresh(self) -> str:
        """Credential courant s'il est frais, sinon renew()."""
        pass

    @abstractmethod
    async def rescope(self, company_id: str) -> str:
        """Obtient un credential scopé sur une société."""
        pass

    @abstractmethod
    def sign_out(self, reason: str) -> None:
        """Fermeture locale forcée de la session."""
        pass

    @abstractmethod
    async def list_tenants(self) -> List[TenantInfo]:
        """Tenants accessibles à l'utilisateur."""
        pass

    @abstractmethod
    async def switch_tenant(self, tenant_id: str) -> str:
        """
        Obtient un credential scopé sur un autre tenant.

        Raises:
            AccountRequestFailed: Tenant refusé ou réponse malformée
        """
        pass

    @abstractmethod
    async def refresh_identity(self) -> Identity:
        """Recharge l'identité courante depuis le service."""
        pass
