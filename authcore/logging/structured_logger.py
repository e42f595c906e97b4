"""
AUTHCORE - Structured Logger

Logger JSON structuré avec champs obligatoires et masquage des credentials.
"""

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from .interfaces import (
    IStructuredLogger,
    ISensitiveMasker,
    LevelMethods,
    LogConfig,
    LogEntry,
    LogLevel,
)
from .sensitive_masker import SensitiveMasker


class MissingRequiredFieldError(Exception):
    """Champ obligatoire manquant."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Required field missing: {field_name}")


class StructuredLogger(IStructuredLogger):
    """
    Logger JSON structuré.

    Avant login aucun tenant n'est connu: les entrées portent le tenant
    ANONYMOUS_TENANT jusqu'à ce que le SessionManager fixe le tenant
    issu des claims. Le ContextManager tient à jour la société active,
    reportée dans le champ company_id.

    Example:
        logger = StructuredLogger("authcore.session")
        logger.set_default_tenant("tenant-123")
        logger.set_default_company("company-42")
        logger.info("Credential renewed", identity_id="u-789")
    """

    ANONYMOUS_TENANT: str = "anonymous"

    def __init__(
        self,
        name: str,
        config: Optional[LogConfig] = None,
        masker: Optional[ISensitiveMasker] = None,
        output_handler: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Args:
            name: Nom du logger (identifiant module)
            config: Configuration optionnelle
            masker: Masker pour données sensibles
            output_handler: Destination des lignes JSON (stderr, fichier, tests)

        Raises:
            ValueError: Si name vide
        """
        if not name or not name.strip():
            raise ValueError("Logger name cannot be empty")

        self._name = name.strip()
        self._config = config or LogConfig()
        self._masker = masker or SensitiveMasker()
        self._output_handler = output_handler
        self._entries: Deque[LogEntry] = deque(maxlen=max(1, self._config.max_entries))
        self._default_tenant_id: Optional[str] = self._config.default_tenant_id
        self._default_correlation_id: Optional[str] = self._config.default_correlation_id
        self._default_company_id: Optional[str] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> LogConfig:
        return self._config

    def set_default_tenant(self, tenant_id: Optional[str]) -> None:
        self._default_tenant_id = tenant_id

    def set_default_company(self, company_id: Optional[str]) -> None:
        self._default_company_id = company_id

    def set_default_correlation(self, correlation_id: Optional[str]) -> None:
        self._default_correlation_id = correlation_id

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
        Crée un log structuré JSON.

        Processus:
            1. Filtre sous min_level
            2. Résout correlation_id, tenant_id et company_id
            3. Masque les données sensibles de extra
            4. Capture puis écrit la ligne JSON

        Raises:
            MissingRequiredFieldError: Si message vide
        """
        if level.severity < self._config.min_level.severity:
            return None

        if not message:
            raise MissingRequiredFieldError("message")

        entry = LogEntry(
            timestamp=_utc_timestamp(),
            level=level,
            correlation_id=correlation_id or self._default_correlation_id or str(uuid.uuid4()),
            tenant_id=tenant_id or self._default_tenant_id or self.ANONYMOUS_TENANT,
            message=message,
            company_id=company_id or self._default_company_id,
            extra=self._prepare_extra(extra),
            logger_name=self._name,
        )

        self._entries.append(entry)
        if self._output_handler:
            self._output_handler(entry.to_json())
        return entry

    def _prepare_extra(self, extra: Dict[str, Any]) -> Dict[str, Any]:
        if not extra or not self._config.include_extra:
            return {}
        if self._config.mask_sensitive:
            return self._masker.mask(dict(extra))
        return dict(extra)

    # ──────────────────────────────────────────────────────────────────────────
    # Inspection
    # ──────────────────────────────────────────────────────────────────────────

    def get_entries(self) -> List[LogEntry]:
        return list(self._entries)

    def clear_entries(self) -> None:
        self._entries.clear()

    def get_entries_by_level(self, level: LogLevel) -> List[LogEntry]:
        return [e for e in self._entries if e.level == level]

    def get_entries_by_correlation(self, correlation_id: str) -> List[LogEntry]:
        return [e for e in self._entries if e.correlation_id == correlation_id]

    def get_entries_by_company(self, company_id: str) -> List[LogEntry]:
        return [e for e in self._entries if e.company_id == company_id]

    def with_context(
        self,
        correlation_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        company_id: Optional[str] = None,
    ) -> "ContextualLogger":
        """
        Logger à contexte fixé.

        Le gateway l'utilise pour qu'un appel et son retry partagent
        le même correlation_id.
        """
        return ContextualLogger(
            self,
            correlation_id=correlation_id or self._default_correlation_id,
            tenant_id=tenant_id,
            company_id=company_id,
        )


class ContextualLogger(LevelMethods):
    """
    Logger avec contexte pré-défini.

    Un champ passé explicitement à l'appel remplace celui du contexte.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        correlation_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        company_id: Optional[str] = None,
    ) -> None:
        self._logger = logger
        self._context = {
            "correlation_id": correlation_id,
            "tenant_id": tenant_id,
            "company_id": company_id,
        }

    @property
    def correlation_id(self) -> Optional[str]:
        return self._context["correlation_id"]

    def log(self, level: LogLevel, message: str, **extra: Any) -> Optional[LogEntry]:
        for key, value in self._context.items():
            extra.setdefault(key, value)
        return self._logger.log(level, message, **extra)


def _utc_timestamp() -> str:
    """ISO 8601 UTC avec millisecondes (2024-12-04T14:30:00.123Z)."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
