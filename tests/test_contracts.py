import pytest

from polledconfig.core.contracts import EntityIdentity, PollResult, Property, ValueSet
from polledconfig.core.values import TypedValue


def test_value_set_last_write_wins_and_skips_absent():
    vs = ValueSet.from_properties(
        [
            Property("a", TypedValue.integer(1)),
            Property("b", None),
            Property("a", TypedValue.integer(2)),
        ]
    )
    assert dict(vs) == {"a": TypedValue.integer(2)}
    assert "b" not in vs


def test_value_set_is_read_only():
    vs = ValueSet.from_python({"a": 1})
    with pytest.raises(TypeError):
        vs["a"] = TypedValue.integer(2)  # type: ignore[index]
    with pytest.raises(TypeError):
        vs._values["b"] = TypedValue.integer(3)  # type: ignore[index]


def test_value_set_equality_and_python_view():
    assert ValueSet.from_python({"x": "y"}) == ValueSet.from_python({"x": "y"})
    assert ValueSet.from_python({"x": True, "n": 7}).to_python() == {"x": True, "n": 7}
    assert len(ValueSet.empty()) == 0


def test_property_requires_name():
    with pytest.raises(ValueError):
        Property("", TypedValue.string("x"))


def test_poll_result_is_either_success_or_failure():
    ok = PollResult.success(ValueSet.empty())
    assert ok.ok and ok.cause is None

    err = RuntimeError("boom")
    failed = PollResult.failure(err)
    assert not failed.ok and failed.cause is err and failed.value_set is None

    with pytest.raises(ValueError):
        PollResult()


@pytest.mark.parametrize("kind, key", [("", "latest"), ("Cfg", ""), ("  ", "latest")])
def test_entity_identity_validity(kind, key):
    assert not EntityIdentity(kind, key).is_valid
    assert EntityIdentity("Cfg", "latest").is_valid
