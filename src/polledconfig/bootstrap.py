from __future__ import annotations

from typing import Optional

from polledconfig.core.entity_store import EntityStore
from polledconfig.core.logger import configure_root_logger, get_logger
from polledconfig.models.settings import DatastoreConnectionConfig, PolledConfigSettings, SchedulerConfig
from polledconfig.providers.datastore_client import DatastoreConnection, DatastoreEntityStore
from polledconfig.registry import ConfigurationRegistry
from polledconfig.scheduler import FixedDelayPollingScheduler
from polledconfig.source import DatastoreConfigurationSource

logger = get_logger(__name__)


def build_datastore_connection(cfg: DatastoreConnectionConfig) -> DatastoreConnection:
    # Only this layer reads the pydantic model; the transport takes plain values.
    headers = {}
    if cfg.access_token:
        headers["Authorization"] = f"Bearer {cfg.access_token}"
    return DatastoreConnection(
        project_id=cfg.project_id,
        base_url=cfg.base_url,
        namespace=cfg.namespace,
        database_id=cfg.database_id,
        timeout_seconds=float(cfg.timeout_seconds),
        headers=headers,
    )


def build_entity_store(settings: PolledConfigSettings) -> EntityStore:
    if settings.datastore is None:
        raise ValueError("Datastore settings are required (set POLLEDCONFIG_PROJECT_ID)")
    return DatastoreEntityStore(build_datastore_connection(settings.datastore))


class DynamicConfiguration:
    """A registry kept fresh by a fixed-delay scheduler polling one entity store.

    Example:
        >>> with DynamicConfiguration(store, scheduler_config=SchedulerConfig(delay_seconds=5)) as config:
        ...     timeout = config.registry.get_int_property("client.timeout", 30)
        ...     timeout.get()
    """

    def __init__(
        self,
        store: EntityStore,
        *,
        registry: Optional[ConfigurationRegistry] = None,
        scheduler_config: Optional[SchedulerConfig] = None,
        owns_store: bool = True,
    ):
        self.store = store
        self.registry = registry if registry is not None else ConfigurationRegistry()
        self.source = DatastoreConfigurationSource(store, self.registry)
        self.scheduler = FixedDelayPollingScheduler(self.source, self.registry, scheduler_config)
        self._owns_store = owns_store

    @classmethod
    def from_settings(
        cls,
        settings: Optional[PolledConfigSettings] = None,
        *,
        registry: Optional[ConfigurationRegistry] = None,
    ) -> "DynamicConfiguration":
        settings = settings or PolledConfigSettings.from_env()
        configure_root_logger(settings.log_level)
        return cls(build_entity_store(settings), registry=registry, scheduler_config=settings.scheduler)

    def start(self) -> "DynamicConfiguration":
        self.scheduler.start()
        return self

    def close(self) -> None:
        # The scheduler must stop before the store goes away so no poll hits a closed client.
        self.scheduler.stop()
        if self._owns_store:
            self.store.close()
        logger.info("Dynamic configuration closed")

    def __enter__(self) -> "DynamicConfiguration":
        try:
            return self.start()
        except Exception:
            self.close()
            raise

    def __exit__(self, exc_type, exc_val, exc_tb):  # type: ignore
        self.close()
        return False
