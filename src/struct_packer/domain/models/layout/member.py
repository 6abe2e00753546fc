#!/usr/bin/env python3

"""Member model for aggregate layout."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from .type_descriptor import TypeDescriptor

if TYPE_CHECKING:
    from .aggregate import Aggregate

# A member's type is a catalog name ("int", "node*", "Header"), an already
# resolved descriptor, or an inline (usually anonymous) aggregate.
TypeRef = Union[str, TypeDescriptor, "Aggregate"]


@dataclass(frozen=True)
class Member:
    """One field of an aggregate."""

    name: str
    type: TypeRef
    array_dims: tuple[int, ...] = ()
    bit_width: int | None = None
    group: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.array_dims, tuple):
            object.__setattr__(self, "array_dims", tuple(self.array_dims))

    @property
    def is_bitfield(self) -> bool:
        return self.bit_width is not None

    @property
    def is_array(self) -> bool:
        return bool(self.array_dims)

    @property
    def type_name(self) -> str:
        """Printable type name including array dimensions."""
        base = self.type if isinstance(self.type, str) else self.type.name
        if not base:
            base = "<anonymous>"
        dims = "".join(f"[{d}]" for d in self.array_dims)
        return f"{base}{dims}"

    @property
    def has_group(self) -> bool:
        return bool(self.group)
