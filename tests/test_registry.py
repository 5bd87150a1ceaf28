import threading
from datetime import datetime

import pytest

from polledconfig import registry as registry_module
from polledconfig.core.contracts import ValueSet
from polledconfig.core.values import TypedValue, ValueKind
from polledconfig.registry import ConfigurationRegistry, get_instance, reset_instance


def test_registry_starts_empty_and_returns_defaults():
    reg = ConfigurationRegistry()
    assert len(reg.snapshot()) == 0
    assert reg.read("missing", str, "dflt") == "dflt"
    assert reg.version == 0


def test_publish_replaces_value_set_wholesale():
    reg = ConfigurationRegistry()
    reg.publish(ValueSet.from_python({"a": 1, "b": "x"}))
    reg.publish(ValueSet.from_python({"a": 2}))

    assert reg.read("a", int, 0) == 2
    assert reg.read("b", str, "gone") == "gone"
    assert reg.version == 2


def test_read_wrong_type_returns_default():
    reg = ConfigurationRegistry()
    reg.publish(ValueSet.from_python({"flag": True, "n": 1, "s": "1"}))

    # bool is not an int and int is not a bool
    assert reg.read("flag", int, -1) == -1
    assert reg.read("n", bool, False) is False
    assert reg.read("s", ValueKind.INTEGER, 0) == 0
    assert reg.read("n", ValueKind.DOUBLE, 0.5) == 0.5


def test_read_with_unknown_expected_type_returns_default():
    reg = ConfigurationRegistry()
    reg.publish(ValueSet.from_python({"x": "abc"}))

    assert reg.read("x", list, None) is None
    assert reg.read("x", list, ["fallback"]) == ["fallback"]


def test_get_raw_and_names_expose_the_published_set():
    reg = ConfigurationRegistry()
    assert reg.names() == []
    assert reg.get_raw("foo") is None

    reg.publish(ValueSet.from_python({"foo": "bar", "n": 7}))

    assert sorted(reg.names()) == ["foo", "n"]
    assert reg.get_raw("n") == TypedValue.integer(7)
    assert reg.get_raw("foo").kind is ValueKind.STRING
    assert reg.get_raw("missing") is None

    # Named defaults are not part of the published set
    reg.set_default("only.default", 1)
    assert "only.default" not in reg.names()
    assert reg.get_raw("only.default") is None


def test_swap_defers_listeners_until_notified():
    reg = ConfigurationRegistry()
    seen = []
    reg.add_listener(lambda old, new: seen.append((dict(old), dict(new))))

    previous = reg.swap(ValueSet.from_python({"a": 1}))
    assert seen == []
    assert reg.read("a", int, 0) == 1
    assert reg.version == 1

    reg.notify_listeners(previous, reg.snapshot())
    assert seen == [({}, {"a": TypedValue.integer(1)})]


def test_timestamp_reads_by_datetime_type():
    reg = ConfigurationRegistry()
    reg.publish(ValueSet({"t": TypedValue.timestamp(5)}))
    assert reg.read("t", datetime, None) == 5


def test_publish_requires_value_set():
    with pytest.raises(TypeError):
        ConfigurationRegistry().publish({"a": 1})  # type: ignore[arg-type]


def test_named_dynamic_defaults_sit_under_published_values():
    reg = ConfigurationRegistry()
    reg.set_default("timeout", 30)
    assert reg.read("timeout", int, 5) == 30

    reg.publish(ValueSet.from_python({"timeout": 10}))
    assert reg.read("timeout", int, 5) == 10

    reg.publish(ValueSet.empty())
    reg.clear_default("timeout")
    assert reg.read("timeout", int, 5) == 5


def test_listeners_receive_old_and_new_sets_and_failures_are_isolated():
    reg = ConfigurationRegistry()
    seen = []

    def broken(old, new):
        raise RuntimeError("listener bug")

    reg.add_listener(broken)
    reg.add_listener(lambda old, new: seen.append((old.to_python(), new.to_python())))

    reg.publish(ValueSet.from_python({"a": 1}))

    assert seen == [({}, {"a": 1})]
    assert reg.read("a", int, 0) == 1

    reg.remove_listener(broken)
    reg.publish(ValueSet.empty())
    assert len(seen) == 2


def test_concurrent_readers_see_whole_value_sets():
    reg = ConfigurationRegistry()
    v1 = ValueSet.from_python({"a": 1, "b": 1, "c": 1})
    v2 = ValueSet.from_python({"a": 2, "b": 2, "c": 2})
    reg.publish(v1)

    stop = threading.Event()
    mixed = []

    def reader():
        while not stop.is_set():
            snap = reg.snapshot()
            values = {snap["a"].value, snap["b"].value, snap["c"].value}
            if len(values) != 1:
                mixed.append(values)
            if reg.read("a", int, None) not in (1, 2):
                mixed.append("bad read")

    def publisher():
        for i in range(2000):
            reg.publish(v2 if i % 2 else v1)

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for t in readers:
        t.start()
    pubs = [threading.Thread(target=publisher) for _ in range(2)]
    for t in pubs:
        t.start()
    for t in pubs:
        t.join()
    stop.set()
    for t in readers:
        t.join()

    assert mixed == []
    assert reg.version == 4001


def test_default_instance_is_process_wide_and_resettable():
    reset_instance()
    try:
        first = get_instance()
        assert get_instance() is first

        replacement = ConfigurationRegistry()
        reset_instance(replacement)
        assert registry_module.get_instance() is replacement
    finally:
        reset_instance()
