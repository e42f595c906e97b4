"""
AUTHCORE - Logging

Module de logging structuré avec:
- Format JSON structuré
- Champs obligatoires (timestamp, level, correlation_id, tenant_id, message)
- Société active reportée dans chaque entrée
- Timestamp ISO 8601 UTC
- Niveaux standard
- Masquage des credentials et secrets
"""

from .interfaces import (
    # Enums
    LogLevel,
    # Dataclasses
    LogEntry,
    LogConfig,
    # Interfaces
    LevelMethods,
    IStructuredLogger,
    ISensitiveMasker,
)
from .sensitive_masker import (
    SensitiveMasker,
)
from .structured_logger import (
    StructuredLogger,
    ContextualLogger,
    # Exceptions
    MissingRequiredFieldError,
)

__all__ = [
    # Enums
    "LogLevel",
    # Dataclasses
    "LogEntry",
    "LogConfig",
    # Interfaces
    "LevelMethods",
    "IStructuredLogger",
    "ISensitiveMasker",
    # Implementations
    "SensitiveMasker",
    "StructuredLogger",
    "ContextualLogger",
    # Exceptions
    "MissingRequiredFieldError",
]
