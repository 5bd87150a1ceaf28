from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from polledconfig.core.contracts import EntityIdentity, LookupResult, RawProperty, RemoteEntity


class EntityStore(Protocol):
    def lookup(self, identity: EntityIdentity) -> LookupResult:
        ...

    def upsert(self, identity: EntityIdentity, properties: Mapping[str, Mapping[str, Any]]) -> None:
        ...

    def close(self) -> None:
        ...


class InMemoryEntityStore:
    """Dict-backed store keeping raw Datastore values per (kind, key)."""

    def __init__(self, initial: Optional[Dict[Tuple[str, str], List[RawProperty]]] = None):
        self._lock = threading.Lock()
        self._entities: Dict[Tuple[str, str], List[RawProperty]] = {
            k: list(v) for k, v in (initial or {}).items()
        }

    def lookup(self, identity: EntityIdentity) -> LookupResult:
        with self._lock:
            props = self._entities.get((identity.kind, identity.key))
            if props is None:
                return LookupResult.not_found()
            return LookupResult(
                found=True,
                entity=RemoteEntity(identity=identity, properties=copy.deepcopy(props)),
            )

    def upsert(self, identity: EntityIdentity, properties: Mapping[str, Mapping[str, Any]]) -> None:
        with self._lock:
            current = dict(self._entities.get((identity.kind, identity.key), []))
            for name, raw in properties.items():
                current[name] = copy.deepcopy(dict(raw))
            self._entities[(identity.kind, identity.key)] = list(current.items())

    def put_raw(self, identity: EntityIdentity, properties: List[RawProperty]) -> None:
        """Replace an entity wholesale, keeping duplicates and order as given."""
        with self._lock:
            self._entities[(identity.kind, identity.key)] = list(properties)

    def delete(self, identity: EntityIdentity) -> None:
        with self._lock:
            self._entities.pop((identity.kind, identity.key), None)

    def close(self) -> None:
        return
