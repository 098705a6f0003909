"""Device-side data models."""

from dataclasses import dataclass, field
from enum import Enum


class Slot(str, Enum):
    """A/B boot slot identifiers as reported by the device."""

    A = "a"
    B = "b"

    @property
    def other(self) -> "Slot":
        """The complementary slot."""
        return Slot.B if self is Slot.A else Slot.A

    @classmethod
    def parse(cls, value) -> "Slot":
        """Parse a raw slot value, accepting only 'a' or 'b'.

        Raises:
            ValueError: If value is anything else
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value in ("a", "b"):
            return cls(value)
        raise ValueError(f"Unknown current slot {value!r}")


@dataclass(frozen=True)
class DeviceInfo:
    """Partition layout reported by a connected device."""

    slot_count: int
    partitions: list[str] = field(default_factory=list)
