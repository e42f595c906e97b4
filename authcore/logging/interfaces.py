"""
AUTHCORE - Logging Interfaces

Contrats du logging structuré JSON.

Champs obligatoires: timestamp (ISO 8601 UTC), level, correlation_id,
tenant_id, message. La société active (company_id) accompagne l'entrée
dès qu'un contexte est établi. Les credentials ne sont JAMAIS
journalisés en clair.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LogLevel(Enum):
    """Niveaux de log, du moins au plus sévère."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def parse(cls, value: str) -> "LogLevel":
        """
        Accepte aussi WARNING (nom du module logging standard).

        Raises:
            ValueError: Niveau inconnu
        """
        normalized = value.strip().upper()
        if normalized == "WARNING":
            normalized = "WARN"
        return cls(normalized)


_SEVERITY = {level: rank for rank, level in enumerate(LogLevel)}


@dataclass
class LogEntry:
    """Entrée de log avec champs obligatoires."""

    timestamp: str
    level: LogLevel
    correlation_id: str
    tenant_id: str
    message: str
    company_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    logger_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "correlation_id": self.correlation_id,
            "tenant_id": self.tenant_id,
            "message": self.message,
        }
        if self.company_id:
            result["company_id"] = self.company_id
        if self.logger_name:
            result["logger"] = self.logger_name
        if self.extra:
            result["extra"] = self.extra
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass
class LogConfig:
    """Configuration du logger structuré."""

    min_level: LogLevel = LogLevel.INFO
    include_extra: bool = True
    mask_sensitive: bool = True
    default_tenant_id: Optional[str] = None
    default_correlation_id: Optional[str] = None
    # Tampon mémoire borné des dernières entrées
    max_entries: int = 1000


class LevelMethods:
    """Raccourcis par niveau, au-dessus d'une méthode log()."""

    def log(self, level: LogLevel, message: str, **extra: Any) -> Optional[LogEntry]:
        raise NotImplementedError

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)


class IStructuredLogger(LevelMethods, ABC):
    """
    Interface logger structuré.

    Le tenant et la société par défaut suivent la session: le
    SessionManager fixe le tenant, le ContextManager la société active.
    """

    @abstractmethod
    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        company_id: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        Log structuré JSON.

        Args:
            level: Niveau de log
            message: Message à logger
            correlation_id: ID de corrélation (généré si absent)
            tenant_id: ID tenant (default du logger si absent)
            company_id: Société concernée (société active si absent)
            **extra: Données supplémentaires (masquées si sensibles)

        Returns:
            LogEntry créé ou None si filtré par niveau
        """
        pass

    @abstractmethod
    def set_default_tenant(self, tenant_id: Optional[str]) -> None:
        """Définit le tenant par défaut (None = anonyme)."""
        pass

    @abstractmethod
    def set_default_company(self, company_id: Optional[str]) -> None:
        """Définit la société par défaut (None = aucune)."""
        pass

    @abstractmethod
    def get_entries(self) -> List[LogEntry]:
        """Retourne les entrées de log capturées."""
        pass


class ISensitiveMasker(ABC):
    """
    Interface masquage données sensibles.

    Bearer credentials, secrets de login, cookies et jetons anti-forgery
    ne doivent jamais apparaître en clair dans un log.
    """

    SENSITIVE_PATTERNS: List[str] = [
        "password",
        "passwd",
        "secret",
        "token",
        "credential",
        "authorization",
        "bearer",
        "jwt",
        "cookie",
        "csrf",
        "api_key",
        "apikey",
        "private_key",
    ]

    MASK_VALUE: str = "***MASKED***"

    @abstractmethod
    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Masque données sensibles dans un dictionnaire.

        Returns:
            Copie avec données sensibles masquées
        """
        pass

    @abstractmethod
    def is_sensitive_key(self, key: str) -> bool:
        """True si la clé contient un pattern sensible."""
        pass

    @abstractmethod
    def add_pattern(self, pattern: str) -> None:
        """Ajoute un pattern sensible personnalisé."""
        pass
