"""
AUTHCORE - Permission Engine

Résolution du rôle effectif (deux niveaux) et réponses aux requêtes
ponctuelles "ce rôle peut-il faire X ?". Pur, sans effet de bord.
"""

from typing import FrozenSet, Iterable, Optional

from .interfaces import (
    Action,
    CompanyAssignment,
    IPermissionEngine,
    Permission,
    PermissionLike,
    Resource,
    Role,
    TenantAssignment,
)
from .role_table import permissions_for


def resolve_effective_role(
    tenant_id: Optional[str],
    company_id: Optional[str],
    tenant_assignments: Iterable[TenantAssignment],
    company_assignments: Iterable[CompanyAssignment],
) -> Role:
    """
    Rôle effectif pour une société du tenant.

    Une affectation tier 1 sur le tenant l'emporte toujours, quel que soit
    le rôle tier 2 dans la société. Sinon le rôle tier 2 de la société
    active, sinon NO_ACCESS.

    Args:
        tenant_id: Tenant de la session
        company_id: Société active (None si aucune)
        tenant_assignments: Affectations tier 1 connues
        company_assignments: Affectations tier 2 connues

    Returns:
        Rôle effectif
    """
    if tenant_id is not None:
        for assignment in tenant_assignments:
            if assignment.tenant_id == tenant_id:
                return assignment.role

    if company_id is not None:
        for assignment in company_assignments:
            if assignment.company_id == company_id:
                return assignment.role

    return Role.NO_ACCESS


class PermissionEngine(IPermissionEngine):
    """
    Moteur de permissions pour un rôle effectif.

    Example:
        engine = PermissionEngine(Role.ADMIN)
        engine.can("team.invite")                                   # True
        engine.can(Permission(Resource.SYSTEM_CONFIG, Action.EDIT)) # False
    """

    def __init__(self, role: Role) -> None:
        self._role = role
        self._granted = permissions_for(role)

    @classmethod
    def for_context(
        cls,
        tenant_id: Optional[str],
        company_id: Optional[str],
        tenant_assignments: Iterable[TenantAssignment],
        company_assignments: Iterable[CompanyAssignment],
    ) -> "PermissionEngine":
        """Moteur pour le rôle résolu d'un contexte."""
        return cls(
            resolve_effective_role(tenant_id, company_id, tenant_assignments, company_assignments)
        )

    @property
    def role(self) -> Role:
        return self._role

    @property
    def granted(self) -> FrozenSet[Permission]:
        """Permissions accordées."""
        return self._granted

    def can(self, permission: PermissionLike) -> bool:
        """
        Raises:
            ValueError: Tag texte hors catalogue
        """
        return _coerce(permission) in self._granted

    def cannot(self, permission: PermissionLike) -> bool:
        return not self.can(permission)

    def can_any(self, permissions: Iterable[PermissionLike]) -> bool:
        return any(self.can(p) for p in permissions)

    def can_all(self, permissions: Iterable[PermissionLike]) -> bool:
        return all(self.can(p) for p in permissions)

    def allowed_actions(self, resource: Resource) -> FrozenSet[Action]:
        return frozenset(p.action for p in self._granted if p.resource == resource)

    @staticmethod
    def permissions_for(role: Role) -> FrozenSet[Permission]:
        return permissions_for(role)


def _coerce(permission: PermissionLike) -> Permission:
    if isinstance(permission, Permission):
        return permission
    return Permission.parse(permission)
