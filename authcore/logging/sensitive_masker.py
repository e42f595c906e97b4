"""
AUTHCORE - Sensitive Masker

Masquage des credentials et secrets avant écriture des logs.
"""

import re
from typing import Any, Dict, List, Optional

from .interfaces import ISensitiveMasker

# JWT compact: en-tête JSON encodé base64url ("eyJ..."), trois segments
_JWT_SHAPE = re.compile(r"^eyJ[\w-]*\.[\w-]+\.[\w-]*$")


class SensitiveMasker(ISensitiveMasker):
    """
    Masquage récursif des données sensibles.

    Example:
        masker = SensitiveMasker()
        safe_data = masker.mask({"password": "secret123", "email": "a@b.c"})
        # {"password": "***MASKED***", "email": "a@b.c"}
    """

    def __init__(self, additional_patterns: Optional[List[str]] = None) -> None:
        """
        Args:
            additional_patterns: Patterns supplémentaires à masquer
        """
        self._patterns: List[str] = [p.lower() for p in self.SENSITIVE_PATTERNS]
        for pattern in additional_patterns or []:
            if pattern and pattern.strip():
                self.add_pattern(pattern)

    @property
    def patterns(self) -> List[str]:
        """Retourne les patterns sensibles configurés."""
        return list(self._patterns)

    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Masque récursivement toutes les données sensibles.

        Comportement:
            - Clés contenant patterns sensibles → valeur masquée
            - Valeurs dict → récursion
            - Valeurs list → masque chaque élément
            - Chaînes "Bearer ..." ou JWT → masquées même sous une clé neutre
        """
        if not isinstance(data, dict):
            return data

        result: Dict[str, Any] = {}

        for key, value in data.items():
            if self.is_sensitive_key(str(key)):
                result[key] = self.MASK_VALUE
            elif isinstance(value, dict):
                result[key] = self.mask(value)
            elif isinstance(value, list):
                result[key] = self._mask_list(value)
            elif isinstance(value, str) and self._looks_like_credential(value):
                result[key] = self.MASK_VALUE
            else:
                result[key] = value

        return result

    def _mask_list(self, items: List[Any]) -> List[Any]:
        """Masque les éléments sensibles d'une liste."""
        result = []
        for item in items:
            if isinstance(item, dict):
                result.append(self.mask(item))
            elif isinstance(item, list):
                result.append(self._mask_list(item))
            elif isinstance(item, str) and self._looks_like_credential(item):
                result.append(self.MASK_VALUE)
            else:
                result.append(item)
        return result

    @staticmethod
    def _looks_like_credential(value: str) -> bool:
        return value[:7].lower() == "bearer " or _JWT_SHAPE.match(value) is not None

    def is_sensitive_key(self, key: str) -> bool:
        """
        Vérifie si clé contient un pattern sensible (case-insensitive).
        """
        if not key:
            return False

        key_lower = key.lower()
        return any(pattern in key_lower for pattern in self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """
        Ajoute pattern sensible personnalisé.

        Raises:
            ValueError: Si pattern vide
        """
        if not pattern or not pattern.strip():
            raise ValueError("Pattern cannot be empty")

        pattern_lower = pattern.lower().strip()
        if pattern_lower not in self._patterns:
            self._patterns.append(pattern_lower)
