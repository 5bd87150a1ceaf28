from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from polledconfig.core.values import TypedValue

RawProperty = Tuple[str, Optional[Mapping[str, Any]]]


@dataclass(frozen=True)
class EntityIdentity:
    """(kind, key) pair naming the remote entity that holds configuration."""

    kind: str
    key: str

    @property
    def is_valid(self) -> bool:
        return bool(self.kind and self.kind.strip()) and bool(self.key and self.key.strip())

    def __str__(self) -> str:
        return f"{self.kind}/{self.key}"


@dataclass(frozen=True)
class Property:
    name: str
    value: Optional[TypedValue]

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Property name must be non-empty")


class ValueSet(Mapping[str, TypedValue]):
    """Immutable name -> TypedValue mapping produced by one successful poll.

    Absent values are excluded; for duplicate names the last property wins.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[str, TypedValue]] = None):
        self._values: Mapping[str, TypedValue] = MappingProxyType(dict(values or {}))

    @classmethod
    def empty(cls) -> "ValueSet":
        return cls()

    @classmethod
    def from_properties(cls, properties: Iterable[Property]) -> "ValueSet":
        values: Dict[str, TypedValue] = {}
        for prop in properties:
            if prop.value is None:
                continue
            values[prop.name] = prop.value
        return cls(values)

    @classmethod
    def from_python(cls, values: Mapping[str, Any]) -> "ValueSet":
        return cls({name: TypedValue.from_python(v) for name, v in values.items()})

    def __getitem__(self, name: str) -> TypedValue:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def to_python(self) -> Dict[str, Any]:
        return {name: typed.value for name, typed in self._values.items()}

    def __repr__(self) -> str:
        if len(self._values) <= 3:
            return f"ValueSet({self.to_python()!r})"
        preview = list(self._values.keys())[:2]
        return f"ValueSet({preview[0]!r}, {preview[1]!r}, ... +{len(self._values) - 2} more)"


@dataclass(frozen=True)
class PollResult:
    """Outcome of one poll: a full value set or the failure cause, never both."""

    value_set: Optional[ValueSet] = None
    cause: Optional[BaseException] = None

    def __post_init__(self) -> None:
        if (self.value_set is None) == (self.cause is None):
            raise ValueError("PollResult needs exactly one of value_set or cause")

    @classmethod
    def success(cls, value_set: ValueSet) -> "PollResult":
        return cls(value_set=value_set)

    @classmethod
    def failure(cls, cause: BaseException) -> "PollResult":
        return cls(cause=cause)

    @property
    def ok(self) -> bool:
        return self.cause is None


@dataclass
class RemoteEntity:
    """An entity as returned by a store lookup; properties keep service order."""

    identity: EntityIdentity
    properties: List[RawProperty] = field(default_factory=list)


@dataclass(frozen=True)
class LookupResult:
    """``found`` with ``entity=None`` means the lookup matched but carried no entity."""

    found: bool
    entity: Optional[RemoteEntity] = None

    @classmethod
    def not_found(cls) -> "LookupResult":
        return cls(found=False)
