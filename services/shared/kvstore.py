"""Persistent string key-value stores.

Every store honours the same small contract: ``get``, ``set``, ``remove``,
``keys`` and a ``changes`` bus that carries :class:`StorageEvent` objects for
writes performed by *another* process or instance sharing the same backend.
Values are opaque strings (JSON text in practice).
"""

from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Protocol
from uuid import uuid4

import redis
from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.sql import func

from .messaging import ChangeBus

logger = logging.getLogger(__name__)

Base = declarative_base()


class StorageError(RuntimeError):
    """Raised when the backing store cannot be read or written."""


@dataclass(frozen=True)
class StorageEvent:
    key: str
    new_value: Optional[str]


class KeyValueStore(Protocol):
    changes: ChangeBus[StorageEvent]

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> List[str]: ...


class KeyValueEntry(Base):
    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class SqlKeyValueStore:
    """Key-value store kept in a single SQL table.

    Writes from other processes are not observable here; deployments that
    need cross-process notifications use :class:`RedisKeyValueStore`.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self.changes: ChangeBus[StorageEvent] = ChangeBus("storage")

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db: Session = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError(str(exc)) from exc
        finally:
            db.close()

    def get(self, key: str) -> Optional[str]:
        with self._session() as db:
            entry = db.get(KeyValueEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with self._session() as db:
            entry = db.get(KeyValueEntry, key)
            if entry is None:
                db.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value

    def remove(self, key: str) -> None:
        with self._session() as db:
            db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()

    def keys(self, prefix: str = "") -> List[str]:
        with self._session() as db:
            query = db.query(KeyValueEntry.key)
            if prefix:
                query = query.filter(KeyValueEntry.key.startswith(prefix, autoescape=True))
            return [row[0] for row in query.order_by(KeyValueEntry.key).all()]


def _escape_glob(value: str) -> str:
    return "".join(f"\\{char}" if char in "*?[]\\" else char for char in value)


class RedisKeyValueStore:
    """Key-value store backed by Redis strings.

    Each write is announced on a pub/sub channel tagged with this instance's
    origin id. :meth:`listen` consumes the channel and re-publishes foreign
    writes on :attr:`changes`, which is how separate processes converge.
    """

    def __init__(
        self,
        client: redis.Redis,
        channel: str,
        *,
        namespace: str = "kv:",
    ) -> None:
        self._client = client
        self._channel = channel
        self._namespace = namespace
        self._origin = uuid4().hex
        self.changes: ChangeBus[StorageEvent] = ChangeBus("storage")

    @classmethod
    def from_url(cls, redis_url: str, channel: str, **kwargs) -> "RedisKeyValueStore":
        return cls(redis.Redis.from_url(redis_url, decode_responses=True), channel, **kwargs)

    @property
    def origin(self) -> str:
        return self._origin

    @staticmethod
    def _decode(value) -> Optional[str]:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def get(self, key: str) -> Optional[str]:
        try:
            return self._decode(self._client.get(self._namespace + key))
        except redis.RedisError as exc:
            raise StorageError(str(exc)) from exc

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(self._namespace + key, value)
        except redis.RedisError as exc:
            raise StorageError(str(exc)) from exc
        self._announce(key, value)

    def remove(self, key: str) -> None:
        try:
            self._client.delete(self._namespace + key)
        except redis.RedisError as exc:
            raise StorageError(str(exc)) from exc
        self._announce(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        pattern = f"{_escape_glob(self._namespace + prefix)}*"
        try:
            found = [self._decode(key) for key in self._client.scan_iter(match=pattern)]
        except redis.RedisError as exc:
            raise StorageError(str(exc)) from exc
        return sorted(key[len(self._namespace):] for key in found)

    def _announce(self, key: str, value: Optional[str]) -> None:
        message = json.dumps({"origin": self._origin, "key": key, "new_value": value})
        try:
            self._client.publish(self._channel, message)
        except redis.RedisError:
            # The write itself succeeded; other instances converge on next read.
            logger.exception("Failed to announce change of '%s' on '%s'", key, self._channel)

    def handle_message(self, message: dict) -> bool:
        """Re-publish a pub/sub message from another instance on ``changes``.

        Returns True when the message produced a :class:`StorageEvent`.
        """
        if message.get("type") != "message":
            return False
        try:
            data = json.loads(self._decode(message.get("data")) or "{}")
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed storage event on '%s'", self._channel)
            return False
        if data.get("origin") == self._origin or "key" not in data:
            return False
        self.changes.publish(StorageEvent(key=data["key"], new_value=data.get("new_value")))
        return True

    def listen(self, stop_event: Optional[threading.Event] = None, *, poll_timeout: float = 1.0) -> None:
        """Consume the change channel until ``stop_event`` is set (blocking)."""
        stop_event = stop_event or threading.Event()
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(self._channel)
        logger.info("Listening for storage events on '%s'", self._channel)
        try:
            while not stop_event.is_set():
                try:
                    message = pubsub.get_message(timeout=poll_timeout)
                except redis.RedisError:
                    logger.exception("Error reading storage events from '%s'", self._channel)
                    stop_event.wait(poll_timeout)
                    continue
                if message:
                    self.handle_message(message)
        finally:
            pubsub.close()
            logger.info("Stopped listening on '%s'", self._channel)
