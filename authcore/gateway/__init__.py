"""
AUTHCORE - Gateway

Passerelle des appels authentifiés: en-têtes, renouvellement sur 401,
resynchronisation du contexte sur 403.
"""

from .request_gateway import (
    RequestGateway,
    # Exceptions
    SessionExpired,
    NoAccessibleCompany,
    CompanyContextChanged,
    PermissionDenied,
)

__all__ = [
    # Implementations
    "RequestGateway",
    # Exceptions
    "SessionExpired",
    "NoAccessibleCompany",
    "CompanyContextChanged",
    "PermissionDenied",
]
