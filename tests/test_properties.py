from datetime import datetime, timezone

import pytest

from polledconfig.core.contracts import ValueSet
from polledconfig.core.values import TypedValue, timestamp_to_micros
from polledconfig.properties import DynamicStringProperty
from polledconfig.registry import ConfigurationRegistry


def test_handles_reflect_latest_published_values():
    reg = ConfigurationRegistry()
    name = reg.get_string_property("name", "anon")
    count = reg.get_int_property("count", 0)

    assert name.get() == "anon"
    assert count.value == 0

    reg.publish(ValueSet.from_python({"name": "svc", "count": 3}))
    assert name.get() == "svc"
    assert count.get() == 3

    reg.publish(ValueSet.from_python({"name": "svc2"}))
    assert name.get() == "svc2"
    assert count.get() == 0


def test_typed_handles_fall_back_on_kind_mismatch():
    reg = ConfigurationRegistry()
    reg.publish(ValueSet.from_python({"x": "not a number"}))

    assert reg.get_float_property("x", 1.5).get() == 1.5
    assert reg.get_boolean_property("x", True).get() is True
    assert reg.get_string_property("x").get() == "not a number"


def test_timestamp_handle_exposes_datetime():
    reg = ConfigurationRegistry()
    when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    reg.publish(ValueSet({"deploy.at": TypedValue.timestamp(timestamp_to_micros(when))}))

    prop = reg.get_timestamp_property("deploy.at")
    assert prop.get() == timestamp_to_micros(when)
    assert prop.get_datetime() == when
    assert reg.get_timestamp_property("unset").get_datetime() is None


def test_handle_requires_name_and_has_readable_repr():
    reg = ConfigurationRegistry()
    with pytest.raises(ValueError):
        DynamicStringProperty(reg, "", None)

    assert repr(reg.get_string_property("a", "d")) == "DynamicStringProperty(name='a', value='d', default='d')"
