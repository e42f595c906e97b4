"""
AUTHCORE - Role Table

Table statique rôle → ressource → actions. Source unique des droits:
toute vérification passe par cette table.

Les rôles tier 1 (OWNER, TENANT_ADMIN) reçoivent le catalogue complet.
"""

from typing import Dict, FrozenSet, Mapping

from .interfaces import Action, Permission, Resource, Role

V = Action.VIEW
C = Action.CREATE
E = Action.EDIT
D = Action.DELETE
A = Action.APPROVE
X = Action.EXPORT
I = Action.IMPORT  # noqa: E741
INV = Action.INVITE

R = Resource


def _build(entries: Mapping[Resource, tuple]) -> Dict[Resource, FrozenSet[Action]]:
    return {resource: frozenset(actions) for resource, actions in entries.items()}


_FULL_ROW = _build({
    R.CUSTOMERS: (V, C, E, D, X, I),
    R.SUPPLIERS: (V, C, E, D, X, I),
    R.PRODUCTS: (V, C, E, D, X, I),
    R.WAREHOUSES: (V, C, E, D),
    R.STOCK: (V, X),
    R.STOCK_TRANSFERS: (V, C, E, D, A),
    R.STOCK_OPNAME: (V, C, E, D, A),
    R.INVENTORY_ADJUSTMENTS: (V, C, E, D, A),
    R.PURCHASE_ORDERS: (V, C, E, D, A),
    R.GOODS_RECEIPTS: (V, C, E, D),
    R.PURCHASE_INVOICES: (V, C, E, D, A),
    R.SUPPLIER_PAYMENTS: (V, C, E, D, A),
    R.SALES_ORDERS: (V, C, E, D, A),
    R.DELIVERIES: (V, C, E, D),
    R.SALES_INVOICES: (V, C, E, D, A),
    R.CUSTOMER_PAYMENTS: (V, C, E, D, A),
    R.JOURNAL_ENTRIES: (V, C, E, D, A),
    R.CASH_BANK: (V, C, E, D, A),
    R.EXPENSES: (V, C, E, D, A),
    R.FINANCIAL_REPORTS: (V, X),
    R.COMPANY_SETTINGS: (V, E),
    R.BANK_ACCOUNTS: (V, C, E, D),
    R.USERS: (V, C, E, D),
    R.ROLES: (V, C, E, D),
    R.TEAM: (V, INV, E, D),
    R.SYSTEM_CONFIG: (V, E),
    R.PREFERENCES: (V, E),
    R.COMPANIES: (V, C),
})

ROLE_TABLE: Dict[Role, Dict[Resource, FrozenSet[Action]]] = {
    Role.OWNER: _FULL_ROW,
    Role.TENANT_ADMIN: _FULL_ROW,
    Role.ADMIN: _build({
        R.CUSTOMERS: (V, C, E, D, X, I),
        R.SUPPLIERS: (V, C, E, D, X, I),
        R.PRODUCTS: (V, C, E, D, X, I),
        R.WAREHOUSES: (V, C, E, D),
        R.STOCK: (V, X),
        R.STOCK_TRANSFERS: (V, C, E, D, A),
        R.STOCK_OPNAME: (V, C, E, D, A),
        R.INVENTORY_ADJUSTMENTS: (V, C, E, D, A),
        R.PURCHASE_ORDERS: (V, C, E, D, A),
        R.GOODS_RECEIPTS: (V, C, E, D),
        R.PURCHASE_INVOICES: (V, C, E, D, A),
        R.SUPPLIER_PAYMENTS: (V, C, E, D, A),
        R.SALES_ORDERS: (V, C, E, D, A),
        R.DELIVERIES: (V, C, E, D),
        R.SALES_INVOICES: (V, C, E, D, A),
        R.CUSTOMER_PAYMENTS: (V, C, E, D, A),
        R.JOURNAL_ENTRIES: (V, C, E, D, A),
        R.CASH_BANK: (V, C, E, D, A),
        R.EXPENSES: (V, C, E, D, A),
        R.FINANCIAL_REPORTS: (V, X),
        R.COMPANY_SETTINGS: (V, E),
        R.BANK_ACCOUNTS: (V, C, E, D),
        R.USERS: (V, C, E, D),
        R.ROLES: (V,),
        R.TEAM: (V, INV, E, D),
        R.SYSTEM_CONFIG: (V,),
        R.PREFERENCES: (V, E),
        R.COMPANIES: (V,),
    }),
    Role.FINANCE: _build({
        R.CUSTOMERS: (V, X),
        R.SUPPLIERS: (V, X),
        R.PRODUCTS: (V, X),
        R.WAREHOUSES: (V,),
        R.STOCK: (V, X),
        R.STOCK_TRANSFERS: (V,),
        R.STOCK_OPNAME: (V,),
        R.INVENTORY_ADJUSTMENTS: (V,),
        R.PURCHASE_ORDERS: (V,),
        R.GOODS_RECEIPTS: (V,),
        R.PURCHASE_INVOICES: (V, C, E, A),
        R.SUPPLIER_PAYMENTS: (V, C, E, A),
        R.SALES_ORDERS: (V,),
        R.DELIVERIES: (V,),
        R.SALES_INVOICES: (V, C, E, A),
        R.CUSTOMER_PAYMENTS: (V, C, E, A),
        R.JOURNAL_ENTRIES: (V, C, E, A),
        R.CASH_BANK: (V, C, E, A),
        R.EXPENSES: (V, C, E, A),
        R.FINANCIAL_REPORTS: (V, X),
        R.COMPANY_SETTINGS: (V,),
        R.BANK_ACCOUNTS: (V,),
        R.USERS: (V,),
        R.ROLES: (V,),
        R.TEAM: (V,),
        R.SYSTEM_CONFIG: (V,),
        R.PREFERENCES: (V, E),
        R.COMPANIES: (V,),
    }),
    Role.SALES: _build({
        R.CUSTOMERS: (V, C, E, X),
        R.SUPPLIERS: (V,),
        R.PRODUCTS: (V, X),
        R.WAREHOUSES: (V,),
        R.STOCK: (V,),
        R.STOCK_TRANSFERS: (V,),
        R.STOCK_OPNAME: (V,),
        R.INVENTORY_ADJUSTMENTS: (V,),
        R.PURCHASE_ORDERS: (V,),
        R.GOODS_RECEIPTS: (V,),
        R.PURCHASE_INVOICES: (V,),
        R.SUPPLIER_PAYMENTS: (V,),
        R.SALES_ORDERS: (V, C, E),
        R.DELIVERIES: (V, C, E),
        R.SALES_INVOICES: (V, C, E),
        R.CUSTOMER_PAYMENTS: (V, C),
        R.JOURNAL_ENTRIES: (V,),
        R.CASH_BANK: (V,),
        R.EXPENSES: (V,),
        R.FINANCIAL_REPORTS: (V,),
        R.COMPANY_SETTINGS: (V,),
        R.BANK_ACCOUNTS: (V,),
        R.USERS: (V,),
        R.ROLES: (V,),
        R.TEAM: (V,),
        R.SYSTEM_CONFIG: (V,),
        R.PREFERENCES: (V, E),
        R.COMPANIES: (V,),
    }),
    Role.WAREHOUSE: _build({
        R.CUSTOMERS: (V,),
        R.SUPPLIERS: (V,),
        R.PRODUCTS: (V, C, E, X),
        R.WAREHOUSES: (V,),
        R.STOCK: (V, X),
        R.STOCK_TRANSFERS: (V, C, E),
        R.STOCK_OPNAME: (V, C, E),
        R.INVENTORY_ADJUSTMENTS: (V, C, E),
        R.PURCHASE_ORDERS: (V,),
        R.GOODS_RECEIPTS: (V, C, E),
        R.PURCHASE_INVOICES: (V,),
        R.SUPPLIER_PAYMENTS: (V,),
        R.SALES_ORDERS: (V,),
        R.DELIVERIES: (V, C, E),
        R.SALES_INVOICES: (V,),
        R.CUSTOMER_PAYMENTS: (V,),
        R.JOURNAL_ENTRIES: (V,),
        R.CASH_BANK: (V,),
        R.EXPENSES: (V,),
        R.FINANCIAL_REPORTS: (V,),
        R.COMPANY_SETTINGS: (V,),
        R.BANK_ACCOUNTS: (V,),
        R.USERS: (V,),
        R.ROLES: (V,),
        R.TEAM: (V,),
        R.SYSTEM_CONFIG: (V,),
        R.PREFERENCES: (V, E),
        R.COMPANIES: (V,),
    }),
    # Lecture seule partout, sauf ses propres préférences
    Role.STAFF: _build({
        **{resource: (V,) for resource in Resource},
        R.PREFERENCES: (V, E),
    }),
    Role.NO_ACCESS: {},
}

# Ensemble complet des capacités (toute permission valide)
CAPABILITY_CATALOGUE: FrozenSet[Permission] = frozenset(
    Permission(resource, action)
    for resource, actions in _FULL_ROW.items()
    for action in actions
)

TIER_ONE_ROLES: FrozenSet[Role] = frozenset(role for role in Role if role.tier == 1)
TIER_TWO_ROLES: FrozenSet[Role] = frozenset(role for role in Role if role.tier == 2)


def permissions_for(role: Role) -> FrozenSet[Permission]:
    """
    Ensemble des permissions accordées à un rôle.

    Example:
        Permission.parse("team.invite") in permissions_for(Role.ADMIN)  # True
    """
    if role in TIER_ONE_ROLES:
        return CAPABILITY_CATALOGUE
    row = ROLE_TABLE.get(role, {})
    return frozenset(
        Permission(resource, action)
        for resource, actions in row.items()
        for action in actions
    )
