"""Variable store for one document evaluation."""

from dataclasses import dataclass, fields
from enum import Enum

from .units import Value


class AggregateSlot(str, Enum):
    """Document-level values that builtins read. Not addressable by name."""

    SUM = "sum"
    AVG = "avg"
    PREV = "prev"
    SUBTOTAL = "subtotal"


@dataclass
class AggregateSlots:
    sum: Value | None = None
    avg: Value | None = None
    prev: Value | None = None
    subtotal: Value | None = None


class Environment:
    """User variables (by exact, space-preserving name) plus aggregate slots."""

    def __init__(self):
        self._variables: dict[str, Value] = {}
        self.aggregates = AggregateSlots()
        self._invalid: set[AggregateSlot] = set()

    def get(self, name: str) -> Value | None:
        return self._variables.get(name)

    def set(self, name: str, value: Value) -> None:
        self._variables[name] = value

    def remove(self, name: str) -> None:
        self._variables.pop(name, None)

    def __contains__(self, name: str) -> bool:
        return name in self._variables

    @property
    def variables(self) -> dict[str, Value]:
        return dict(self._variables)

    def get_aggregate(self, slot: AggregateSlot) -> Value | None:
        return getattr(self.aggregates, slot.value)

    def set_aggregate(self, slot: AggregateSlot, value: Value | None) -> None:
        setattr(self.aggregates, slot.value, value)
        self._invalid.discard(slot)

    def clear_aggregate(self, slot: AggregateSlot) -> None:
        self.set_aggregate(slot, None)

    def invalidate_aggregate(self, slot: AggregateSlot) -> None:
        """Mark a slot whose value could not be computed (e.g. overflow)."""
        self.set_aggregate(slot, None)
        self._invalid.add(slot)

    def is_invalid_aggregate(self, slot: AggregateSlot) -> bool:
        return slot in self._invalid

    def clear(self) -> None:
        self._variables.clear()
        for f in fields(self.aggregates):
            setattr(self.aggregates, f.name, None)
        self._invalid.clear()
