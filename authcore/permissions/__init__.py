"""
AUTHCORE - Permissions

Modèle de rôles à deux niveaux:
- Tier 1 (tenant) l'emporte sur tier 2 (société)
- Table statique rôle → ressource → actions
- Tags de capacité typés "resource.action"
"""

from .interfaces import (
    # Enums
    Role,
    Resource,
    Action,
    # Data classes
    Permission,
    PermissionLike,
    TenantAssignment,
    CompanyAssignment,
    # Interfaces
    IPermissionEngine,
)
from .role_table import (
    ROLE_TABLE,
    CAPABILITY_CATALOGUE,
    TIER_ONE_ROLES,
    TIER_TWO_ROLES,
    permissions_for,
)
from .permission_engine import (
    PermissionEngine,
    resolve_effective_role,
)

__all__ = [
    # Enums
    "Role",
    "Resource",
    "Action",
    # Data classes
    "Permission",
    "PermissionLike",
    "TenantAssignment",
    "CompanyAssignment",
    # Interfaces
    "IPermissionEngine",
    # Table
    "ROLE_TABLE",
    "CAPABILITY_CATALOGUE",
    "TIER_ONE_ROLES",
    "TIER_TWO_ROLES",
    "permissions_for",
    # Implementations
    "PermissionEngine",
    "resolve_effective_role",
]
