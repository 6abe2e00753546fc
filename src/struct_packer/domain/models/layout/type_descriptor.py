#!/usr/bin/env python3

"""Type descriptor model: the size and alignment of one type."""

from dataclasses import dataclass
from enum import Enum

from .machine_profile import is_power_of_two


class TypeKind(Enum):
    """Categories of types the layout rules distinguish."""

    SCALAR = "scalar"
    POINTER = "pointer"
    ARRAY = "array"
    AGGREGATE = "aggregate"


@dataclass(frozen=True)
class TypeDescriptor:
    """Size and alignment of a type on one machine profile.

    Aggregate descriptors carry the aggregate's computed stride size and
    the maximum alignment of its members. Array descriptors keep their
    element so that nested dimensions can be reported.
    """

    name: str
    size: int
    alignment: int
    kind: TypeKind = TypeKind.SCALAR
    is_integer: bool = False
    element: "TypeDescriptor | None" = None
    count: int | None = None

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"Type '{self.name}' has negative size {self.size}")
        if not is_power_of_two(self.alignment):
            raise ValueError(
                f"Type '{self.name}' alignment must be a positive power of two, "
                f"got {self.alignment}"
            )

    @property
    def bit_size(self) -> int:
        return self.size * 8

    @property
    def is_aggregate(self) -> bool:
        return self.kind is TypeKind.AGGREGATE

    @property
    def is_array(self) -> bool:
        return self.kind is TypeKind.ARRAY

    @classmethod
    def scalar(cls, name: str, size: int, alignment: int | None = None, is_integer: bool = True) -> "TypeDescriptor":
        """Self-aligned scalar unless an explicit alignment is given."""
        return cls(
            name=name,
            size=size,
            alignment=alignment if alignment is not None else max(size, 1),
            kind=TypeKind.SCALAR,
            is_integer=is_integer,
        )

    @classmethod
    def pointer(cls, target: str, size: int) -> "TypeDescriptor":
        return cls(name=f"{target}*", size=size, alignment=size, kind=TypeKind.POINTER)

    @classmethod
    def array(cls, element: "TypeDescriptor", count: int) -> "TypeDescriptor":
        """n x element; a zero-length array has size 0 but keeps the element alignment."""
        if count < 0:
            raise ValueError(f"Array of '{element.name}' has negative length {count}")
        return cls(
            name=f"{element.name}[{count}]",
            size=element.size * count,
            alignment=element.alignment,
            kind=TypeKind.ARRAY,
            element=element,
            count=count,
        )

    @classmethod
    def aggregate(cls, name: str, size: int, alignment: int) -> "TypeDescriptor":
        return cls(name=name, size=size, alignment=alignment, kind=TypeKind.AGGREGATE)
