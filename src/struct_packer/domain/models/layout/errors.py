#!/usr/bin/env python3

"""Layout error kinds.

Every error is a local validation failure attached to the aggregate and,
where known, the member being processed. A failed computation never yields
a partial result.
"""


def _restore_error(cls: type, state: dict) -> "LayoutError":
    error = Exception.__new__(cls)
    Exception.__init__(error, state["message"])
    error.__dict__.update(state)
    return error


class LayoutError(Exception):
    """Base class for failures while computing a layout."""

    def __init__(self, message: str, aggregate: str | None = None, member: str | None = None):
        super().__init__(message)
        self.message = message
        self.aggregate = aggregate
        self.member = member

    def __reduce__(self) -> tuple:
        # subclasses take different constructor arguments; pickle by state
        return (_restore_error, (type(self), self.__dict__.copy()))

    @property
    def kind(self) -> str:
        return type(self).__name__

    def located(self, aggregate: str | None = None, member: str | None = None) -> "LayoutError":
        """Fill in location fields that are still unknown and return self."""
        if self.aggregate is None:
            self.aggregate = aggregate
        if self.member is None:
            self.member = member
        return self

    def __str__(self) -> str:
        where = ".".join(part for part in (self.aggregate, self.member) if part)
        return f"{self.message} [{where}]" if where else self.message


class UnknownType(LayoutError):
    """A type name is not registered in the catalog."""

    def __init__(self, type_name: str, aggregate: str | None = None, member: str | None = None):
        super().__init__(f"Unknown type '{type_name}'", aggregate, member)
        self.type_name = type_name


class InvalidMember(LayoutError):
    """A member description is malformed (duplicate name, bad combination)."""


class InvalidBitfieldWidth(InvalidMember):
    """Bitfield width is zero or exceeds its underlying type's bit size."""

    def __init__(
        self,
        width: int,
        max_width: int,
        aggregate: str | None = None,
        member: str | None = None,
    ):
        super().__init__(
            f"Bitfield width {width} is outside 1..{max_width}", aggregate, member
        )
        self.width = width
        self.max_width = max_width


class CyclicDefinition(LayoutError):
    """An aggregate contains itself by value, directly or transitively."""

    def __init__(self, path: list[str], aggregate: str | None = None, member: str | None = None):
        super().__init__(
            f"Aggregate contains itself by value: {' -> '.join(path)}", aggregate, member
        )
        self.path = list(path)


class IncompatibleUnionLayout(LayoutError):
    """Two union members asserted disjoint occupy overlapping bytes."""

    def __init__(
        self,
        first: str,
        second: str,
        overlap: tuple[int, int],
        aggregate: str | None = None,
    ):
        super().__init__(
            f"Members '{first}' and '{second}' are asserted disjoint but overlap "
            f"at bytes [{overlap[0]}, {overlap[1]})",
            aggregate,
            first,
        )
        self.first = first
        self.second = second
        self.overlap = overlap
