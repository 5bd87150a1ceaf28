import threading

from polledconfig import DynamicConfiguration
from polledconfig.core.contracts import EntityIdentity
from polledconfig.core.entity_store import InMemoryEntityStore
from polledconfig.models.settings import SchedulerConfig
from polledconfig.registry import ConfigurationRegistry
from polledconfig.source import CONFIG_ENTITY_KIND_PROPERTY, DatastoreConfigurationSource


def test_single_poll_serves_typed_reads():
    store = InMemoryEntityStore()
    store.upsert(
        EntityIdentity("Cfg", "latest"),
        {
            "foo": {"stringValue": "bar"},
            "foo.bar": {"integerValue": "7"},
            "baz": {"booleanValue": True},
        },
    )
    registry = ConfigurationRegistry()
    registry.set_default(CONFIG_ENTITY_KIND_PROPERTY, "Cfg")

    foo = registry.get_string_property("foo", None)
    bar = registry.get_int_property("foo.bar", 0)
    baz = registry.get_boolean_property("baz", False)
    qux = registry.get_string_property("qux", "none")

    config = DynamicConfiguration(
        store,
        registry=registry,
        scheduler_config=SchedulerConfig(synchronous_first_poll=True, delay_seconds=60),
    )
    with config:
        assert foo.get() == "bar"
        assert bar.get() == 7 and type(bar.get()) is int
        assert baz.get() is True
        assert qux.get() == "none"


def test_background_polls_pick_up_remote_changes():
    ident = EntityIdentity("Cfg", "latest")
    store = InMemoryEntityStore()
    store.upsert(ident, {"level": {"integerValue": "1"}})
    registry = ConfigurationRegistry()
    registry.set_default(CONFIG_ENTITY_KIND_PROPERTY, "Cfg")
    level = registry.get_int_property("level", 0)

    changed = threading.Event()
    registry.add_listener(lambda old, new: changed.set() if new.get("level") and new["level"].value == 2 else None)

    config = DynamicConfiguration(
        store,
        registry=registry,
        scheduler_config=SchedulerConfig(synchronous_first_poll=True, delay_seconds=0.01),
    )
    with config:
        assert level.get() == 1
        DatastoreConfigurationSource(store, registry).write_back({"level": 2})
        assert changed.wait(timeout=5.0)
        assert level.get() == 2


def test_identity_override_applies_on_next_poll():
    store = InMemoryEntityStore()
    store.upsert(EntityIdentity("Cfg", "latest"), {"polledconfig.datastore.configEntityKey": {"stringValue": "v2"}, "x": {"stringValue": "old"}})
    store.upsert(EntityIdentity("Cfg", "v2"), {"x": {"stringValue": "new"}})
    registry = ConfigurationRegistry()
    registry.set_default(CONFIG_ENTITY_KIND_PROPERTY, "Cfg")

    config = DynamicConfiguration(store, registry=registry, scheduler_config=SchedulerConfig(delay_seconds=60))
    try:
        config.scheduler.poll_once()
        assert registry.read("x", str, None) == "old"

        config.scheduler.poll_once()
        assert registry.read("x", str, None) == "new"
    finally:
        config.close()
