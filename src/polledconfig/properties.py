from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar

from polledconfig.core.values import ValueKind, micros_to_datetime

if TYPE_CHECKING:
    from polledconfig.registry import ConfigurationRegistry

T = TypeVar("T")


class DynamicProperty(Generic[T]):
    """Typed read handle bound to one configuration name.

    Holds no value of its own; every ``get()`` consults the registry's
    currently published value set.
    """

    kind: ValueKind = ValueKind.UNSUPPORTED

    def __init__(self, registry: "ConfigurationRegistry", name: str, default: Optional[T] = None):
        if not name:
            raise ValueError("Property name must be non-empty")
        self._registry = registry
        self.name = name
        self.default = default

    def get(self) -> Optional[T]:
        return self._registry.read(self.name, self.kind, self.default)

    @property
    def value(self) -> Optional[T]:
        return self.get()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, value={self.get()!r}, default={self.default!r})"


class DynamicStringProperty(DynamicProperty[str]):
    kind = ValueKind.STRING


class DynamicIntProperty(DynamicProperty[int]):
    kind = ValueKind.INTEGER


class DynamicFloatProperty(DynamicProperty[float]):
    kind = ValueKind.DOUBLE


class DynamicBooleanProperty(DynamicProperty[bool]):
    kind = ValueKind.BOOLEAN


class DynamicTimestampProperty(DynamicProperty[int]):
    """Timestamp handle; ``get()`` returns epoch microseconds."""

    kind = ValueKind.TIMESTAMP

    def get_datetime(self) -> Optional[datetime]:
        micros: Any = self.get()
        return None if micros is None else micros_to_datetime(micros)
