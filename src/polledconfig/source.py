from __future__ import annotations

from typing import Any, List, Mapping, Optional

from polledconfig.core.contracts import EntityIdentity, PollResult, Property, ValueSet
from polledconfig.core.entity_store import EntityStore
from polledconfig.core.logger import get_logger
from polledconfig.core.values import coerce, to_raw
from polledconfig.registry import ConfigurationRegistry

logger = get_logger(__name__)

# Property names
CONFIG_ENTITY_KIND_PROPERTY = "polledconfig.datastore.configEntityKind"
CONFIG_ENTITY_KEY_PROPERTY = "polledconfig.datastore.configEntityKey"

# Property defaults
DEFAULT_CONFIG_ENTITY_KIND = "PolledConfigProperties"
DEFAULT_CONFIG_ENTITY_KEY = "latest"


class DatastoreConfigurationSource:
    """Loads configuration from a single remote entity.

    Each property of the entity is treated as one configuration name/value
    pair. The entity's (kind, key) are themselves dynamic properties read from
    ``registry`` on every poll, so a published override applies from the next
    poll onward.
    """

    def __init__(self, store: EntityStore, registry: ConfigurationRegistry):
        self.store = store
        self.registry = registry
        self._entity_kind = registry.get_string_property(CONFIG_ENTITY_KIND_PROPERTY, DEFAULT_CONFIG_ENTITY_KIND)
        self._entity_key = registry.get_string_property(CONFIG_ENTITY_KEY_PROPERTY, DEFAULT_CONFIG_ENTITY_KEY)

    @property
    def config_entity_kind(self) -> str:
        return self._entity_kind.get() or ""

    @property
    def config_entity_key(self) -> str:
        return self._entity_key.get() or ""

    def entity_identity(self) -> EntityIdentity:
        return EntityIdentity(kind=self.config_entity_kind, key=self.config_entity_key)

    def poll(self, initial: bool = False, checkpoint: Optional[Any] = None) -> PollResult:
        identity = self.entity_identity()
        result = self.fetch_all(identity)
        if result.ok:
            logger.info(
                f"Loaded {len(result.value_set)} configuration propert(ies) from {identity}"
                + (" (initial poll)" if initial else "")
            )
        return result

    def fetch_all(self, identity: EntityIdentity) -> PollResult:
        """Fetch the entity named by ``identity`` and coerce its properties.

        A missing entity, or a found entity without a value, is an empty
        success. Any error raised by the store is returned as a failure.
        """
        if not identity.is_valid:
            logger.warning(
                f"Configuration entity identity kind={identity.kind!r} key={identity.key!r} is malformed; "
                "treating as not found"
            )
            return PollResult.success(ValueSet.empty())

        logger.debug(
            f"Attempting configuration lookup using entity with kind '{identity.kind}' and key '{identity.key}'"
        )
        try:
            result = self.store.lookup(identity)
            if not result.found:
                logger.warning(
                    f"Could not find configuration entity of kind '{identity.kind}' with key '{identity.key}'."
                )
                return PollResult.success(ValueSet.empty())

            if result.entity is None:
                logger.warning(
                    f"Configuration entity lookup of kind '{identity.kind}' with key '{identity.key}' "
                    "succeeded, but no entity returned."
                )
                return PollResult.success(ValueSet.empty())

            properties: List[Property] = []
            for name, raw in result.entity.properties:
                if not name:
                    continue
                typed = coerce(raw)
                if typed is None:
                    logger.debug(f"Skipping property {name!r}: unsupported or empty value")
                properties.append(Property(name=name, value=typed))
            return PollResult.success(ValueSet.from_properties(properties))
        except Exception as e:
            logger.error(f"Configuration lookup for {identity} failed: {type(e).__name__}: {e}")
            return PollResult.failure(e)

    def write_back(self, values: Mapping[str, Any]) -> EntityIdentity:
        """Persist operator-entered overrides to the current configuration entity.

        Values go through the reverse of the poll-side coercion so a later
        poll reads them back with the same type. Store errors propagate.
        """
        identity = self.entity_identity()
        if not identity.is_valid:
            raise ValueError(f"Cannot write configuration to malformed entity identity {identity}")
        raw = {name: to_raw(value) for name, value in values.items()}
        self.store.upsert(identity, raw)
        return identity
