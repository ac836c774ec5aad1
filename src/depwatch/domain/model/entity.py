"""Base building block: stable identity assigned in the domain."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class Entity:
    """Internal identity exists immediately in the domain.

    Aggregates reference each other only through these ids; nothing holds a live
    object reference to a parent or child aggregate.
    """

    id: UUID = field(default_factory=new_id)
