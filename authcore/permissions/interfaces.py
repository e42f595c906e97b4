"""
AUTHCORE - Permissions Interfaces

Modèle de rôles à deux niveaux et tags de capacité typés.

Tier 1 (tenant): OWNER, TENANT_ADMIN - accès complet à toutes les
sociétés du tenant.
Tier 2 (société): ADMIN, FINANCE, SALES, WAREHOUSE, STAFF - portée
limitée à une société.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Union


class Role(Enum):
    """Rôles effectifs."""

    # Tier 1
    OWNER = "OWNER"
    TENANT_ADMIN = "TENANT_ADMIN"
    # Tier 2
    ADMIN = "ADMIN"
    FINANCE = "FINANCE"
    SALES = "SALES"
    WAREHOUSE = "WAREHOUSE"
    STAFF = "STAFF"
    # Aucune affectation
    NO_ACCESS = "NO_ACCESS"

    @property
    def tier(self) -> Optional[int]:
        """1 (tenant), 2 (société) ou None (NO_ACCESS)."""
        if self in (Role.OWNER, Role.TENANT_ADMIN):
            return 1
        if self == Role.NO_ACCESS:
            return None
        return 2

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        """
        Rôle depuis sa forme texte (casse et synonymes tolérés).

        Returns:
            Role ou None si inconnu

        Example:
            Role.parse("general-staff")  # Role.STAFF
        """
        if not value:
            return None
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        key = _ROLE_SYNONYMS.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return None


_ROLE_SYNONYMS = {
    "TENANT_ADMINISTRATOR": "TENANT_ADMIN",
    "ADMINISTRATOR": "ADMIN",
    "GENERAL_STAFF": "STAFF",
}


class Resource(Enum):
    """Ressources protégées."""

    # Données de référence
    CUSTOMERS = "customers"
    SUPPLIERS = "suppliers"
    PRODUCTS = "products"
    WAREHOUSES = "warehouses"
    # Stock
    STOCK = "stock"
    STOCK_TRANSFERS = "stock-transfers"
    STOCK_OPNAME = "stock-opname"
    INVENTORY_ADJUSTMENTS = "inventory-adjustments"
    # Achats
    PURCHASE_ORDERS = "purchase-orders"
    GOODS_RECEIPTS = "goods-receipts"
    PURCHASE_INVOICES = "purchase-invoices"
    SUPPLIER_PAYMENTS = "supplier-payments"
    # Ventes
    SALES_ORDERS = "sales-orders"
    DELIVERIES = "deliveries"
    SALES_INVOICES = "sales-invoices"
    CUSTOMER_PAYMENTS = "customer-payments"
    # Finance
    JOURNAL_ENTRIES = "journal-entries"
    CASH_BANK = "cash-bank"
    EXPENSES = "expenses"
    FINANCIAL_REPORTS = "financial-reports"
    # Société
    COMPANY_SETTINGS = "company-settings"
    BANK_ACCOUNTS = "bank-accounts"
    USERS = "users"
    ROLES = "roles"
    TEAM = "team"
    # Paramètres
    SYSTEM_CONFIG = "system-config"
    PREFERENCES = "preferences"
    # Tenant
    COMPANIES = "companies"


class Action(Enum):
    """Actions sur une ressource."""

    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    EXPORT = "export"
    IMPORT = "import"
    INVITE = "invite"


@dataclass(frozen=True)
class Permission:
    """
    Tag de capacité typé: une action sur une ressource.

    Forme texte: "resource.action" (ex: "team.invite").
    """

    resource: Resource
    action: Action

    def __str__(self) -> str:
        return f"{self.resource.value}.{self.action.value}"

    @classmethod
    def parse(cls, tag: str) -> "Permission":
        """
        Parse un tag "resource.action" et le valide contre le catalogue.

        Raises:
            ValueError: Tag mal formé ou absent du catalogue
        """
        from .role_table import CAPABILITY_CATALOGUE

        if not tag or "." not in tag:
            raise ValueError(f"Invalid permission tag: {tag!r}")

        resource_part, action_part = tag.strip().rsplit(".", 1)
        try:
            permission = cls(Resource(resource_part), Action(action_part))
        except ValueError:
            raise ValueError(f"Unknown permission tag: {tag!r}") from None

        if permission not in CAPABILITY_CATALOGUE:
            raise ValueError(f"Permission not in capability catalogue: {tag!r}")
        return permission


PermissionLike = Union[Permission, str]


@dataclass(frozen=True)
class TenantAssignment:
    """Affectation tier 1: identité → tenant."""

    tenant_id: str
    role: Role

    def __post_init__(self) -> None:
        if self.role.tier != 1:
            raise ValueError(f"{self.role.value} is not a tenant-level role")


@dataclass(frozen=True)
class CompanyAssignment:
    """Affectation tier 2: identité → société."""

    company_id: str
    role: Role

    def __post_init__(self) -> None:
        if self.role.tier != 2:
            raise ValueError(f"{self.role.value} is not a company-level role")


class IPermissionEngine(ABC):
    """Interface moteur de permissions (pur, sans effet de bord)."""

    @property
    @abstractmethod
    def role(self) -> Role:
        """Rôle effectif évalué."""
        pass

    @abstractmethod
    def can(self, permission: PermissionLike) -> bool:
        """True si le rôle accorde la permission."""
        pass

    @abstractmethod
    def can_any(self, permissions: Iterable[PermissionLike]) -> bool:
        """True si au moins une permission est accordée."""
        pass

    @abstractmethod
    def can_all(self, permissions: Iterable[PermissionLike]) -> bool:
        """True si toutes les permissions sont accordées."""
        pass

    @abstractmethod
    def allowed_actions(self, resource: Resource) -> FrozenSet[Action]:
        """Actions accordées sur une ressource."""
        pass
