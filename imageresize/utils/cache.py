import threading
import time
from datetime import datetime, timedelta
from typing import Dict, Optional, Protocol, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from imageresize.config import CACHE_PREFIX, logger
from imageresize.database import session_scope
from imageresize.errors import ConfigNotFound
from imageresize.models import Transient
from imageresize.schemas import Descriptor
from imageresize.utils.variants import VariantResolver


class TransientStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryTransientStore:
    """Process-local store; entries expire ``ttl`` seconds after being set."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= time.monotonic():
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class SqlTransientStore:
    """Transients kept in the ``transients`` table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with session_scope(self.session_factory) as db:
            row = db.get(Transient, key)
            if row is None:
                return None
            if row.expires_at is not None and row.expires_at <= datetime.utcnow():
                db.delete(row)
                return None
            return row.value

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = datetime.utcnow() + timedelta(seconds=ttl) if ttl else None
        try:
            with session_scope(self.session_factory) as db:
                db.merge(Transient(key=key, value=value, expires_at=expires_at))
        except IntegrityError:
            # Another worker inserted the same key between our read and write
            with session_scope(self.session_factory) as db:
                db.query(Transient).filter(Transient.key == key).update(
                    {"value": value, "expires_at": expires_at}
                )

    def delete(self, key: str) -> None:
        with session_scope(self.session_factory) as db:
            db.query(Transient).filter(Transient.key == key).delete()


class ConfigCache:
    """Single-use storage of descriptors, keyed by their signed identifier."""

    def __init__(
        self,
        store: TransientStore,
        resolver: VariantResolver,
        ttl: Optional[int] = None,
        prefix: str = CACHE_PREFIX,
    ):
        self.store_backend = store
        self.resolver      = resolver
        self.ttl           = ttl
        self.prefix        = prefix

    def key(self, identifier: str) -> str:
        return f"{self.prefix}{identifier}"

    def store(self, descriptor: Descriptor) -> Optional[str]:
        """Store the config unless its variant already exists.

        Returns the identifier it was stored under, or None when skipped.
        """
        if self.resolver.is_materialized(descriptor):
            return None
        identifier = self.resolver.identifier(descriptor)
        self.store_backend.set(self.key(identifier), descriptor.serialize(), self.ttl)
        logger.debug("Stored resize config %s", identifier)
        return identifier

    def load(self, identifier: str) -> Descriptor:
        raw = self.store_backend.get(self.key(identifier))
        if raw is None:
            raise ConfigNotFound(identifier)
        try:
            return Descriptor.deserialize(raw)
        except ValidationError:
            logger.warning("Discarding unreadable resize config %s", identifier)
            raise ConfigNotFound(identifier)

    def consume(self, identifier: str) -> None:
        self.store_backend.delete(self.key(identifier))
        logger.debug("Consumed resize config %s", identifier)

    def _failures_key(self, identifier: str) -> str:
        return f"{self.prefix}failures.{identifier}"

    def record_failure(self, identifier: str) -> int:
        key   = self._failures_key(identifier)
        count = int(self.store_backend.get(key) or 0) + 1
        self.store_backend.set(key, str(count), self.ttl)
        return count

    def clear_failures(self, identifier: str) -> None:
        self.store_backend.delete(self._failures_key(identifier))
