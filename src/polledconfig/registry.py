"""In-memory configuration registry.

The registry holds exactly one published ``ValueSet``. Publishing swaps the
reference under a lock; readers never take the lock and simply dereference
whatever set is current, so a read observes either the previous or the new
set in its entirety.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type, Union

from polledconfig.core.contracts import ValueSet
from polledconfig.core.logger import get_logger
from polledconfig.core.values import TypedValue, ValueKind
from polledconfig.properties import (
    DynamicBooleanProperty,
    DynamicFloatProperty,
    DynamicIntProperty,
    DynamicStringProperty,
    DynamicTimestampProperty,
)

logger = get_logger(__name__)

Listener = Callable[[ValueSet, ValueSet], None]
ExpectedType = Union[ValueKind, Type[Any]]

_KIND_FOR_TYPE: Dict[type, ValueKind] = {
    bool: ValueKind.BOOLEAN,
    int: ValueKind.INTEGER,
    float: ValueKind.DOUBLE,
    str: ValueKind.STRING,
    datetime: ValueKind.TIMESTAMP,
}


def _resolve_kind(expected: ExpectedType) -> ValueKind:
    if isinstance(expected, ValueKind):
        return expected
    try:
        return _KIND_FOR_TYPE[expected]
    except (KeyError, TypeError) as exc:
        raise TypeError(f"Unsupported configuration type: {expected!r}") from exc


class ConfigurationRegistry:
    """Holds the current value set, named dynamic defaults and change listeners."""

    def __init__(self, initial: Optional[ValueSet] = None):
        self._publish_lock = threading.Lock()
        self._current: ValueSet = initial if initial is not None else ValueSet.empty()
        # Copy-on-write like the value set: replaced wholesale, never mutated.
        self._defaults: Dict[str, TypedValue] = {}
        self._listeners: List[Listener] = []
        self._version = 0

    @property
    def version(self) -> int:
        """Number of publishes so far."""
        return self._version

    def snapshot(self) -> ValueSet:
        return self._current

    def publish(self, value_set: ValueSet) -> None:
        previous = self.swap(value_set)
        self.notify_listeners(previous, value_set)

    def swap(self, value_set: ValueSet) -> ValueSet:
        """Install ``value_set`` without notifying listeners; returns the replaced set.

        Callers that hold their own locks swap under them and call
        ``notify_listeners`` after releasing, so listeners never run under a lock.
        """
        if not isinstance(value_set, ValueSet):
            raise TypeError(f"publish expects a ValueSet, got {type(value_set).__name__}")
        with self._publish_lock:
            previous = self._current
            self._current = value_set
            self._version += 1
            version = self._version
        logger.debug(f"Published value set with {len(value_set)} propert(ies) (version={version})")
        return previous

    def notify_listeners(self, previous: ValueSet, current: ValueSet) -> None:
        with self._publish_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(previous, current)
            except Exception:
                logger.exception(f"Configuration listener {listener!r} failed")

    def read(self, name: str, expected: ExpectedType, default: Any = None) -> Any:
        """Return the value for ``name`` if it has the expected kind, else a default.

        Lookup order: the published value set, then the named dynamic default,
        then ``default``. Never raises; an unsupported ``expected`` type matches
        nothing and yields ``default``.
        """
        try:
            kind = _resolve_kind(expected)
        except TypeError as exc:
            logger.warning(f"Reading {name!r}: {exc}; returning the default")
            return default
        typed = self._current.get(name)
        if typed is not None and typed.kind is kind:
            return typed.value
        fallback = self._defaults.get(name)
        if fallback is not None and fallback.kind is kind:
            return fallback.value
        return default

    def get_raw(self, name: str) -> Optional[TypedValue]:
        return self._current.get(name)

    def names(self) -> List[str]:
        return list(self._current.keys())

    def set_default(self, name: str, value: Any) -> None:
        typed = TypedValue.from_python(value)
        with self._publish_lock:
            defaults = dict(self._defaults)
            defaults[name] = typed
            self._defaults = defaults

    def clear_default(self, name: str) -> None:
        with self._publish_lock:
            defaults = dict(self._defaults)
            defaults.pop(name, None)
            self._defaults = defaults

    def add_listener(self, listener: Listener) -> None:
        with self._publish_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._publish_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # Dynamic property factory

    def get_string_property(self, name: str, default: Optional[str] = None) -> DynamicStringProperty:
        return DynamicStringProperty(self, name, default)

    def get_int_property(self, name: str, default: Optional[int] = None) -> DynamicIntProperty:
        return DynamicIntProperty(self, name, default)

    def get_float_property(self, name: str, default: Optional[float] = None) -> DynamicFloatProperty:
        return DynamicFloatProperty(self, name, default)

    def get_boolean_property(self, name: str, default: Optional[bool] = None) -> DynamicBooleanProperty:
        return DynamicBooleanProperty(self, name, default)

    def get_timestamp_property(self, name: str, default: Optional[int] = None) -> DynamicTimestampProperty:
        return DynamicTimestampProperty(self, name, default)


# Optional process-wide registry for callers that do not pass one explicitly
_DEFAULT_REGISTRY: Optional[ConfigurationRegistry] = None
_DEFAULT_LOCK = threading.Lock()


def get_instance() -> ConfigurationRegistry:
    global _DEFAULT_REGISTRY
    with _DEFAULT_LOCK:
        if _DEFAULT_REGISTRY is None:
            _DEFAULT_REGISTRY = ConfigurationRegistry()
        return _DEFAULT_REGISTRY


def reset_instance(registry: Optional[ConfigurationRegistry] = None) -> None:
    global _DEFAULT_REGISTRY
    with _DEFAULT_LOCK:
        _DEFAULT_REGISTRY = registry
