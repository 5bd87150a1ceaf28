from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from polledconfig.core.contracts import EntityIdentity, LookupResult, RemoteEntity
from polledconfig.core.entity_store import EntityStore
from polledconfig.core.exceptions import DatastoreTransportError
from polledconfig.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DatastoreConnection:
    project_id: str
    base_url: str = "https://datastore.googleapis.com"
    namespace: Optional[str] = None
    database_id: Optional[str] = None
    timeout_seconds: float = 30.0
    headers: Dict[str, str] = field(default_factory=dict)


class DatastoreEntityStore(EntityStore):
    """Entity store backed by the Cloud Datastore v1 REST API."""

    def __init__(
        self,
        connection: DatastoreConnection,
        *,
        client: Optional[httpx.Client] = None,
    ):
        self.connection = connection
        self._client = client or httpx.Client(
            base_url=connection.base_url,
            timeout=connection.timeout_seconds,
            headers=dict(connection.headers),
        )

    def _path(self, method: str) -> str:
        return f"/v1/projects/{self.connection.project_id}:{method}"

    def _key(self, identity: EntityIdentity) -> Dict[str, Any]:
        partition: Dict[str, Any] = {"projectId": self.connection.project_id}
        if self.connection.namespace:
            partition["namespaceId"] = self.connection.namespace
        if self.connection.database_id:
            partition["databaseId"] = self.connection.database_id
        return {
            "partitionId": partition,
            "path": [{"kind": identity.kind, "name": identity.key}],
        }

    def _body(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.connection.database_id:
            payload["databaseId"] = self.connection.database_id
        return payload

    def _post(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self._client.post(self._path(method), json=self._body(payload))
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DatastoreTransportError(
                str(e), operation=method, status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise DatastoreTransportError(str(e), operation=method) from e

        try:
            data = resp.json()
        except ValueError as e:
            preview = resp.text[:500] if hasattr(resp, "text") else ""
            raise DatastoreTransportError(
                f"Failed to parse Datastore response as JSON. Response preview: {preview}",
                operation=method,
            ) from e
        if not isinstance(data, dict):
            raise DatastoreTransportError(
                f"Unexpected Datastore response type: {type(data).__name__}", operation=method
            )
        return data

    def lookup(self, identity: EntityIdentity) -> LookupResult:
        logger.debug(f"Datastore lookup kind={identity.kind!r} key={identity.key!r}")
        data = self._post("lookup", {"keys": [self._key(identity)]})

        found = data.get("found") or []
        if not found:
            if data.get("deferred"):
                # Deferred keys were not read; existence is unknown.
                raise DatastoreTransportError(
                    f"Lookup of {identity} was deferred by the service", operation="lookup"
                )
            return LookupResult.not_found()

        entity = found[0].get("entity") if isinstance(found[0], dict) else None
        if not entity:
            return LookupResult(found=True, entity=None)

        props = entity.get("properties") or {}
        if not isinstance(props, dict):
            raise DatastoreTransportError(
                f"Entity properties must be an object, got {type(props).__name__}", operation="lookup"
            )
        return LookupResult(
            found=True,
            entity=RemoteEntity(identity=identity, properties=list(props.items())),
        )

    def upsert(self, identity: EntityIdentity, properties: Mapping[str, Mapping[str, Any]]) -> None:
        """Merge ``properties`` into the entity and commit it non-transactionally.

        Existing properties that are not overwritten are preserved.
        """
        current = self.lookup(identity)
        merged: Dict[str, Any] = {}
        if current.entity is not None:
            merged.update(dict(current.entity.properties))
        merged.update({name: dict(raw) for name, raw in properties.items()})

        entity = {"key": self._key(identity), "properties": merged}
        self._post("commit", {"mode": "NON_TRANSACTIONAL", "mutations": [{"upsert": entity}]})
        logger.info(f"Committed {len(properties)} configuration propert(ies) to {identity}")

    def close(self) -> None:
        self._client.close()
