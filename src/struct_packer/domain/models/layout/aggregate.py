#!/usr/bin/env python3

"""Aggregate (struct/union) model."""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from .member import Member


class AggregateKind(Enum):
    """Struct members follow each other; union members share offset 0."""

    STRUCT = "struct"
    UNION = "union"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Aggregate:
    """An ordered sequence of members.

    Member order is significant. Reordering always produces a new
    Aggregate through with_members().
    """

    name: str
    kind: AggregateKind = AggregateKind.STRUCT
    members: tuple[Member, ...] = ()
    pack_override: bool = False
    # Pairs of member paths ("variant.field") asserted to never be live at
    # the same time. Only consulted by the opt-in union overlap check.
    disjoint: tuple[tuple[str, str], ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.members, tuple):
            object.__setattr__(self, "members", tuple(self.members))
        if not isinstance(self.kind, AggregateKind):
            object.__setattr__(self, "kind", AggregateKind(self.kind))
        object.__setattr__(self, "disjoint", tuple(tuple(pair) for pair in self.disjoint))

    @property
    def is_union(self) -> bool:
        return self.kind is AggregateKind.UNION

    @property
    def member_names(self) -> list[str]:
        return [m.name for m in self.members]

    def get_member(self, name: str) -> Member | None:
        for member in self.members:
            if member.name == name:
                return member
        return None

    def with_members(self, members: Iterable[Member]) -> "Aggregate":
        """Return a copy of this aggregate with a new member order."""
        return replace(self, members=tuple(members))
