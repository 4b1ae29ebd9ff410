"""Vowel labels and labelled coefficient snapshots."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Optional, Sequence


class Vowel(enum.IntEnum):
    A = 0
    I = 1  # noqa: E741
    U = 2
    E = 3
    O = 4  # noqa: E741
    UNKNOWN = 5

    @property
    def identifier(self) -> str:
        return self.name.lower()

    @property
    def display_name(self) -> str:
        return self.identifier

    @classmethod
    def from_identifier(cls, identifier: str) -> Optional["Vowel"]:
        """Look up a vowel by identifier ("a", "i", ..., "unknown"); None if unknown."""
        for vowel in cls:
            if vowel.identifier == identifier:
                return vowel
        return None


def _short_id() -> str:
    return uuid.uuid4().hex[:8].upper()


@dataclass(frozen=True)
class Snapshot:
    """Coefficient vector captured from one frame, labelled with a vowel."""

    vowel: Vowel
    coefficients: tuple[float, ...]
    id: str = field(default_factory=_short_id)

    @classmethod
    def create(cls, vowel: Vowel, coefficients: Sequence[float]) -> "Snapshot":
        return cls(vowel=vowel, coefficients=tuple(float(c) for c in coefficients))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vowel": int(self.vowel),
            "coefficients": list(self.coefficients),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        return cls(
            vowel=Vowel(int(data["vowel"])),
            coefficients=tuple(float(c) for c in data["coefficients"]),
            id=str(data["id"]),
        )
