"""
AUTHCORE - Signal Bus

Publication synchrone des changements d'état (sign-out, changement de
société, invalidation de caches) vers les consommateurs hors core.
"""

from typing import Any, Callable, Dict, List, Optional

from ..logging.interfaces import IStructuredLogger
from .interfaces import Signal

SignalHandler = Callable[..., None]


class SignalBus:
    """
    Bus publish/subscribe synchrone.

    Les handlers sont appelés dans l'ordre d'abonnement. Un handler en
    erreur est journalisé et n'empêche pas les suivants.

    Example:
        bus = SignalBus(logger)
        unsubscribe = bus.subscribe(Signal.CACHE_INVALIDATED, on_invalidate)
        bus.emit(Signal.CACHE_INVALIDATED, company_id="c-1")
    """

    def __init__(self, logger: Optional[IStructuredLogger] = None) -> None:
        self._logger = logger
        self._handlers: Dict[Signal, List[SignalHandler]] = {}

    def subscribe(self, signal: Signal, handler: SignalHandler) -> Callable[[], None]:
        """
        Abonne un handler à un signal.

        Returns:
            Fonction de désabonnement
        """
        self._handlers.setdefault(signal, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(signal, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, signal: Signal, **payload: Any) -> int:
        """
        Émet un signal vers tous les abonnés.

        Returns:
            Nombre de handlers exécutés sans erreur
        """
        delivered = 0
        # Copie: un handler peut se désabonner pendant l'émission
        for handler in list(self._handlers.get(signal, [])):
            try:
                handler(**payload)
                delivered += 1
            except Exception as e:
                if self._logger is not None:
                    self._logger.error(
                        "Signal handler failed",
                        signal=signal.value,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
        return delivered

    def handler_count(self, signal: Signal) -> int:
        """Nombre d'abonnés à un signal."""
        return len(self._handlers.get(signal, []))

    def clear(self) -> None:
        """Retire tous les abonnements."""
        self._handlers.clear()
