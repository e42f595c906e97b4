"""
AUTHCORE - Credential Store

Détient le credential d'accès courant (JWT) et sait dire s'il est expiré.
La signature n'est pas vérifiée ici: c'est le rôle du service distant.
"""

import time
from typing import Callable, Optional

import jwt

from ..storage.interfaces import IClientStorage
from ..storage.memory_storage import InMemoryStorage
from .interfaces import ICredentialStore, TokenClaims


class CredentialStore(ICredentialStore):
    """
    Stockage du credential d'accès dans un slot de stockage client.

    Par défaut le slot est volatile (InMemoryStorage). L'hôte peut
    injecter un stockage durable limité à la session pour survivre à un
    rechargement.

    Example:
        store = CredentialStore(skew_seconds=30)
        store.save(access_token)
        if store.is_expired():
            ...
    """

    def __init__(
        self,
        storage: Optional[IClientStorage] = None,
        storage_key: str = "authcore.credential",
        skew_seconds: int = 30,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Args:
            storage: Slot de stockage (volatile par défaut)
            storage_key: Clé du credential dans le slot
            skew_seconds: Avance d'expiration par défaut
            clock: Horloge epoch en secondes (tests)
        """
        if skew_seconds < 0:
            raise ValueError("skew_seconds must be >= 0")

        self._storage = storage if storage is not None else InMemoryStorage()
        self._key = storage_key
        self._skew_seconds = skew_seconds
        self._clock = clock or time.time

    def save(self, credential: str) -> None:
        """
        Raises:
            ValueError: Si credential vide
        """
        if not credential or not credential.strip():
            raise ValueError("credential cannot be empty")
        self._storage.set(self._key, credential)

    def read(self) -> Optional[str]:
        return self._storage.get(self._key)

    def clear(self) -> None:
        self._storage.remove(self._key)

    def has_credential(self) -> bool:
        return bool(self.read())

    def _decode(self) -> Optional[dict]:
        credential = self.read()
        if not credential:
            return None
        try:
            return jwt.decode(credential, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None

    def claims(self) -> Optional[TokenClaims]:
        payload = self._decode()
        if payload is None:
            return None
        return TokenClaims.from_payload(payload)

    def is_expired(self, skew_seconds: Optional[int] = None) -> bool:
        """
        Vérifie l'expiration sans valider la signature.

        Le credential est considéré expiré skew secondes avant son exp
        pour absorber le décalage d'horloge avec le serveur.
        """
        payload = self._decode()
        if payload is None:
            return True

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            return True

        skew = self._skew_seconds if skew_seconds is None else skew_seconds
        return self._clock() >= exp - skew
