"""
AUTHCORE - Authentication

Credential d'accès et session client:
- CredentialStore: credential courant, expiration anticipée (skew)
- SessionManager: login/logout, renouvellement single-flight, re-scoping société,
  changement de tenant et rechargement de l'identité
"""

from .interfaces import (
    # Enums
    SessionState,
    ALLOWED_TRANSITIONS,
    # Data classes
    Identity,
    TenantInfo,
    TokenClaims,
    LoginResult,
    # Interfaces
    ICredentialStore,
    ISessionManager,
)
from .credential_store import CredentialStore
from .session_manager import (
    SessionManager,
    # Exceptions
    InvalidCredentials,
    AccountLocked,
    LoginFailed,
    RenewalFailed,
    RescopeFailed,
    AccountRequestFailed,
    SessionStateError,
)

__all__ = [
    # Enums
    "SessionState",
    "ALLOWED_TRANSITIONS",
    # Data classes
    "Identity",
    "TenantInfo",
    "TokenClaims",
    "LoginResult",
    # Interfaces
    "ICredentialStore",
    "ISessionManager",
    # Implementations
    "CredentialStore",
    "SessionManager",
    # Exceptions
    "InvalidCredentials",
    "AccountLocked",
    "LoginFailed",
    "RenewalFailed",
    "RescopeFailed",
    "AccountRequestFailed",
    "SessionStateError",
]
