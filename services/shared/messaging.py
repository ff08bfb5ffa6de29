"""In-process publish/subscribe primitives.

``ChangeBus`` is a typed observer: listeners subscribe and get back a
callable that removes exactly that listener. Publication is synchronous and a
failing listener never prevents the remaining ones from being notified.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class ChangeBus(Generic[T]):
    """Synchronous fan-out of change notifications to subscribers."""

    def __init__(self, name: str = "changes") -> None:
        self._name = name
        self._listeners: List[Callable[[T], None]] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Register ``callback`` and return a function that removes it.

        Subscribing the same callable twice yields two registrations; each
        returned unsubscribe removes only its own one.
        """
        token = _Registration(callback)
        with self._lock:
            self._listeners.append(token)

        def unsubscribe() -> None:
            with self._lock:
                if token in self._listeners:
                    self._listeners.remove(token)

        return unsubscribe

    def publish(self, value: T) -> int:
        """Invoke every current subscriber with ``value``.

        Returns the number of listeners that completed without raising.
        """
        with self._lock:
            snapshot = list(self._listeners)

        delivered = 0
        for listener in snapshot:
            try:
                listener(value)
                delivered += 1
            except Exception:
                logger.exception("Listener %r failed on bus '%s'", listener, self._name)
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()


class _Registration:
    """Identity wrapper so the same callable can be registered twice."""

    __slots__ = ("callback",)

    def __init__(self, callback: Callable) -> None:
        self.callback = callback

    def __call__(self, value) -> None:
        self.callback(value)

    def __repr__(self) -> str:
        return repr(self.callback)


class ChangeBusRegistry:
    """Hands out one bus per (topic, namespace).

    Repositories are built per request, so listeners registered by one
    request (cache invalidation, storage sync) must live on a bus that
    outlives it. The namespace is normally the tenant id, ``None`` meaning
    legacy single-tenant mode.
    """

    def __init__(self) -> None:
        self._buses: Dict[Tuple[str, Optional[str]], ChangeBus] = {}
        self._lock = threading.Lock()

    def get(self, topic: str, namespace: Optional[str] = None) -> ChangeBus:
        key = (topic, namespace)
        with self._lock:
            bus = self._buses.get(key)
            if bus is None:
                label = f"{topic}:{namespace}" if namespace else topic
                bus = ChangeBus(label)
                self._buses[key] = bus
            return bus

    def drop_namespace(self, namespace: str) -> int:
        """Forget every bus of a namespace; returns how many were removed."""
        with self._lock:
            keys = [key for key in self._buses if key[1] == namespace]
            for key in keys:
                self._buses.pop(key).clear()
        return len(keys)
