"""
AUTHCORE - Erreurs de base

Toutes les exceptions du core dérivent de AuthCoreError.
"""

from typing import Optional


class AuthCoreError(Exception):
    """Erreur du core d'identité."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class ConfigIntegrityError(AuthCoreError):
    """Configuration client illisible ou invalide."""

    pass
