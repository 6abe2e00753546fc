#!/usr/bin/env python3

"""Opt-in overlap check for members asserted to be disjoint.

Overlaying members that are never live at the same time (usually through a
union of variant structs) saves space, but only if the bytes each variant
actually uses do not collide. Callers state which member paths must not
share storage, e.g. ("tcp.port", "udp.checksum"), and this check verifies
the computed byte ranges.

This is a best-effort check: it only looks at the pairs it was given, and
it knows nothing about which members are live when.
"""

from ....infrastructure.logging import get_logger
from ...models.layout import (
    Aggregate,
    IncompatibleUnionLayout,
    InvalidMember,
    LayoutResult,
    MachineProfile,
)
from .layout_engine import LayoutEngine

logger = get_logger(__name__)


class _Span:
    """Absolute location of one member: byte range plus optional bit range."""

    def __init__(self, start: int, end: int, bits: tuple[int, int] | None = None, unit: tuple[int, int] | None = None):
        self.start = start
        self.end = end
        self.bits = bits
        self.unit = unit

    def overlap(self, other: "_Span") -> tuple[int, int] | None:
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start >= end:
            return None
        # Two bitfields in the same storage unit overlap only if their bits do
        if self.bits and other.bits and self.unit == other.unit:
            if max(self.bits[0], other.bits[0]) >= min(self.bits[1], other.bits[1]):
                return None
        return start, end


def _resolve_path(
    engine: LayoutEngine,
    aggregate: Aggregate,
    layout: LayoutResult,
    path: str,
    profile: MachineProfile,
) -> _Span:
    parts = path.split(".")
    current_aggregate = aggregate
    current_layout = layout
    base = 0

    for depth, part in enumerate(parts):
        member = current_aggregate.get_member(part)
        placement = current_layout.get_member(part)
        if member is None or placement is None:
            raise InvalidMember(
                f"Disjoint assertion names unknown member path '{path}'",
                aggregate=aggregate.name,
                member=path,
            )

        start = base + placement.offset
        if depth == len(parts) - 1:
            if placement.is_bitfield:
                bits = (placement.bit_offset, placement.bit_offset + placement.bit_width)
                return _Span(start, start + placement.size, bits, (start, placement.size))
            return _Span(start, start + placement.size)

        nested = member.type if isinstance(member.type, Aggregate) else None
        if nested is None and isinstance(member.type, str) and engine.catalog is not None:
            nested = engine.catalog.lookup_aggregate(member.type)
        if nested is None or member.array_dims:
            raise InvalidMember(
                f"Cannot descend into '{part}' of '{path}': not a nested aggregate",
                aggregate=aggregate.name,
                member=path,
            )

        current_aggregate = nested
        current_layout = engine.compute_layout(nested, profile)
        base = start

    raise InvalidMember(f"Empty member path '{path}'", aggregate=aggregate.name)


def check_union_overlap(
    aggregate: Aggregate,
    layout: LayoutResult,
    engine: LayoutEngine,
    profile: MachineProfile,
) -> None:
    """Verify every asserted-disjoint member pair of an aggregate.

    Raises:
        IncompatibleUnionLayout: If an asserted pair shares any byte
        InvalidMember: If an assertion names a path that does not exist
    """
    for first, second in aggregate.disjoint:
        first_span = _resolve_path(engine, aggregate, layout, first, profile)
        second_span = _resolve_path(engine, aggregate, layout, second, profile)
        overlap = first_span.overlap(second_span)
        if overlap is not None:
            raise IncompatibleUnionLayout(first, second, overlap, aggregate=aggregate.name)
        logger.debug(f"{aggregate.name}: '{first}' and '{second}' are disjoint")
