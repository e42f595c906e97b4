"""
AUTHCORE - Shared Storage

Espace de stockage partagé entre plusieurs vues ("onglets") d'une même
session. Une écriture faite par une vue est notifiée aux autres vues au
tick suivant de la boucle asyncio, jamais à la vue qui écrit.
"""

import asyncio
from typing import Callable, Dict, List, Optional

from ..logging.interfaces import IStructuredLogger
from .interfaces import IClientStorage, StorageEvent, StorageListener


class SharedStorageArea:
    """
    Zone de stockage commune.

    Example:
        area = SharedStorageArea()
        tab_a = area.open_view()
        tab_b = area.open_view()
        tab_a.set("k", "v")   # tab_b est notifié au tick suivant
    """

    def __init__(self, logger: Optional[IStructuredLogger] = None) -> None:
        self._data: Dict[str, str] = {}
        self._views: List["StorageView"] = []
        self._logger = logger

    def open_view(self) -> "StorageView":
        """Crée une nouvelle vue (un onglet)."""
        view = StorageView(self)
        self._views.append(view)
        return view

    def close_view(self, view: "StorageView") -> None:
        """Détache une vue: elle ne reçoit plus d'événements."""
        if view in self._views:
            self._views.remove(view)

    @property
    def view_count(self) -> int:
        return len(self._views)

    def _read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write(self, origin: "StorageView", key: str, value: Optional[str]) -> None:
        old_value = self._data.get(key)
        if value is None:
            if key not in self._data:
                return
            del self._data[key]
        else:
            if old_value == value:
                return
            self._data[key] = value

        event = StorageEvent(key=key, old_value=old_value, new_value=value)
        for view in list(self._views):
            if view is not origin:
                self._schedule(view, event)

    def _schedule(self, view: "StorageView", event: StorageEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Hors boucle: livraison immédiate
            view._deliver(event)
            return
        loop.call_soon(view._deliver, event)

    def _report_listener_error(self, error: Exception) -> None:
        if self._logger is not None:
            self._logger.error(
                "Storage listener failed",
                error=str(error),
                error_type=type(error).__name__,
            )


class StorageView(IClientStorage):
    """Vue d'un onglet sur la zone partagée."""

    def __init__(self, area: SharedStorageArea) -> None:
        self._area = area
        self._listeners: List[StorageListener] = []

    def get(self, key: str) -> Optional[str]:
        return self._area._read(key)

    def set(self, key: str, value: str) -> None:
        self._area._write(self, key, value)

    def remove(self, key: str) -> None:
        self._area._write(self, key, None)

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Ferme l'onglet."""
        self._listeners.clear()
        self._area.close_view(self)

    def _deliver(self, event: StorageEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                self._area._report_listener_error(e)
