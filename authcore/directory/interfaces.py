"""
AUTHCORE - Directory Interfaces

Annuaire des sociétés accessibles à l'utilisateur sous son tenant.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# Formes juridiques connues (toute autre valeur du service est acceptée)
KNOWN_ENTITY_TYPES = ("PT", "CV", "UD", "Firma")


class AccessibleCompany(BaseModel):
    """
    Société accessible, telle que renvoyée par l'annuaire.

    Attributes:
        company_id: Identifiant société
        name: Nom d'usage
        legal_name: Raison sociale
        entity_type: Forme juridique (PT, CV, UD, Firma...)
        logo_ref: Référence du logo
        role: Rôle de l'utilisateur dans la société (tier 2)
        active: Société active
        tenant_id: Tenant propriétaire
        access_tier: 1 = accès niveau tenant, 2 = accès niveau société
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    company_id: str = Field(validation_alias=AliasChoices("company_id", "companyId", "id"))
    name: str = ""
    legal_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("legal_name", "legalName"))
    entity_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("entity_type", "entityType"))
    logo_ref: Optional[str] = Field(default=None, validation_alias=AliasChoices("logo_ref", "logoRef", "logoUrl"))
    role: Optional[str] = Field(default=None, validation_alias=AliasChoices("role", "userRole"))
    active: bool = Field(default=True, validation_alias=AliasChoices("active", "isActive"))
    tenant_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("tenant_id", "tenantId"))
    access_tier: Optional[int] = Field(default=None, validation_alias=AliasChoices("access_tier", "accessTier"))

    @field_validator("company_id", "tenant_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() or None
        return value

    @property
    def tenant_level(self) -> bool:
        """True si l'accès vient d'une affectation niveau tenant."""
        return self.access_tier == 1


class IDirectoryClient(ABC):
    """Interface lecture de l'annuaire."""

    @abstractmethod
    async def list_accessible_companies(self) -> List[AccessibleCompany]:
        """
        Sociétés accessibles, dans l'ordre renvoyé par le service.

        Raises:
            DirectoryError: Réponse en échec ou malformée
            TransportError: Échec réseau
            RenewalFailed: Session fermée
        """
        pass
