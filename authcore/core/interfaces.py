"""
AUTHCORE - Core Interfaces
Configuration client et contrat de chargement.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..logging.interfaces import LogLevel


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class Signal(Enum):
    """Signaux émis par le core vers la couche présentation."""

    SESSION_STATE_CHANGED = "session_state_changed"
    SIGNED_OUT = "signed_out"
    COMPANY_CHANGED = "company_changed"
    CACHE_INVALIDATED = "cache_invalidated"
    NO_ACCESSIBLE_COMPANY = "no_accessible_company"
    TENANT_CHANGED = "tenant_changed"


class ClientConfig(BaseModel):
    """
    Configuration du client d'identité.

    Les chemins d'endpoints sont relatifs à base_url + api_prefix.
    """

    model_config = ConfigDict(extra="forbid")

    base_url: str
    api_prefix: str = "/api/v1"

    # Endpoints du service distant
    login_path: str = "/auth/login"
    logout_path: str = "/auth/logout"
    renew_path: str = "/auth/renew"
    switch_company_path: str = "/auth/switch-company"
    directory_path: str = "/tenant/companies"
    tenants_path: str = "/auth/tenants"
    switch_tenant_path: str = "/auth/switch-tenant"
    current_user_path: str = "/auth/me"

    # En-têtes émis par le gateway
    authorization_header: str = "Authorization"
    company_header: str = "X-Company-ID"
    csrf_header: str = "X-CSRF-Token"
    correlation_header: str = "X-Correlation-ID"
    csrf_cookie_name: str = "csrf_token"

    # Expiration anticipée du credential (horloge serveur)
    expiry_skew_seconds: int = Field(default=30, ge=0, le=300)

    # Timeouts (secondes)
    connection_timeout: float = Field(default=10.0, gt=0)
    request_timeout: float = Field(default=30.0, gt=0)
    renewal_timeout: float = Field(default=10.0, gt=0)
    directory_timeout: float = Field(default=15.0, gt=0)

    storage_key_prefix: str = "authcore.active_company"
    credential_storage_key: str = "authcore.credential"
    log_level: str = "INFO"

    # Codes d'erreur machine sur lesquels le core branche
    unauthenticated_codes: List[str] = ["AUTHENTICATION_ERROR", "UNAUTHENTICATED", "TOKEN_EXPIRED"]
    invalid_credentials_codes: List[str] = ["INVALID_CREDENTIALS", "AUTHENTICATION_ERROR"]
    account_locked_codes: List[str] = ["ACCOUNT_LOCKED"]
    no_context_access_codes: List[str] = [
        "COMPANY_ACCESS_DENIED",
        "NO_COMPANY_ACCESS",
        "COMPANY_ACCESS_REVOKED",
    ]

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url doit commencer par http:// ou https://")
        return value

    @field_validator("api_prefix")
    @classmethod
    def _check_api_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        try:
            return LogLevel.parse(value).value
        except ValueError:
            raise ValueError(f"log_level invalide: {value}") from None

    def endpoint(self, path: str) -> str:
        """Chemin complet (préfixe API inclus) d'un endpoint."""
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.api_prefix}{path}"


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge la configuration client depuis un fichier YAML."""

    @abstractmethod
    def load(self, name: str) -> ClientConfig:
        """
        Charge la configuration nommée.

        Raises:
            ConfigIntegrityError: Fichier absent, YAML invalide ou champs invalides
        """
        pass

    @abstractmethod
    def from_dict(self, data: Mapping[str, Any]) -> ClientConfig:
        """Construit une configuration depuis un dictionnaire."""
        pass
