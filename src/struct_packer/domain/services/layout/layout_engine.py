#!/usr/bin/env python3

"""Compiler-faithful layout of structs and unions.

Struct members are placed in declaration order. Each member's start is
rounded up to its alignment, the gap becoming a padding region. After the
last member the size is rounded up to the stride address: the smallest
multiple of the aggregate's alignment, which is the maximum alignment of
its direct members. Nested aggregates take part with their own stride size
and alignment, so alignment propagates outward through every level.

Union members all start at offset 0; the union's size is its largest
member rounded up to the stride address.

With pack_override set no alignment padding is inserted anywhere and the
aggregate's alignment is 1.
"""

from dataclasses import dataclass, field

from ....infrastructure.logging import get_logger, log_timing
from ...models.layout import (
    Aggregate,
    CyclicDefinition,
    InvalidMember,
    LayoutError,
    LayoutResult,
    MachineProfile,
    Member,
    MemberLayout,
    PaddingRegion,
    TypeDescriptor,
)
from ..catalog import TypeCatalog
from .bitfield_allocator import BitfieldAllocator, bit_position, round_up, validate_bitfield

logger = get_logger(__name__)

ANONYMOUS = "<anonymous>"
DEFAULT_MAX_DEPTH = 64


@dataclass
class _LayoutContext:
    """Per-call state: the resolution stack and nested-layout memo."""

    catalog: TypeCatalog
    profile: MachineProfile
    stack: list[str] = field(default_factory=list)
    nested: dict[Aggregate, TypeDescriptor] = field(default_factory=dict)


class LayoutEngine:
    """Computes LayoutResults for aggregates.

    The engine holds no state between calls. The catalog it is given is
    only read, so one engine can serve many computations at once.
    """

    def __init__(self, catalog: TypeCatalog | None = None, max_depth: int = DEFAULT_MAX_DEPTH):
        """Initialize the layout engine.

        Args:
            catalog: Catalog used to resolve type names. When omitted a
                primitive-only catalog is built per computation.
            max_depth: Maximum nesting depth of by-value aggregates
        """
        self.catalog = catalog
        self.max_depth = max_depth

    def catalog_for(self, profile: MachineProfile) -> TypeCatalog:
        """Return the catalog matching the profile.

        Raises:
            ValueError: If the engine's catalog was built for another profile
        """
        if self.catalog is None:
            return TypeCatalog.for_profile(profile)
        if self.catalog.profile != profile:
            raise ValueError(
                f"Catalog was built for profile '{self.catalog.profile.name}', "
                f"not '{profile.name}'"
            )
        return self.catalog

    @log_timing
    def compute_layout(self, aggregate: Aggregate, profile: MachineProfile) -> LayoutResult:
        """Compute the layout of an aggregate for a machine profile.

        Raises:
            UnknownType: A member type is not in the catalog
            InvalidMember: A member is malformed (including bad bitfield widths)
            CyclicDefinition: The aggregate contains itself by value
        """
        context = _LayoutContext(catalog=self.catalog_for(profile), profile=profile)
        result = self._layout(aggregate, context)
        logger.debug(
            f"Layout of {aggregate.kind} {aggregate.name or ANONYMOUS}: "
            f"size={result.total_size}, align={result.total_alignment}, "
            f"padding={result.padding_bits} bits"
        )
        return result

    def describe_aggregate(self, aggregate: Aggregate, profile: MachineProfile) -> TypeDescriptor:
        """Size and alignment of an aggregate, for use as a member type."""
        result = self.compute_layout(aggregate, profile)
        return TypeDescriptor.aggregate(
            aggregate.name or ANONYMOUS, result.total_size, result.total_alignment
        )

    def resolve_member_type(self, member: Member, profile: MachineProfile) -> TypeDescriptor:
        """Resolve a member's full type (including array dimensions)."""
        context = _LayoutContext(catalog=self.catalog_for(profile), profile=profile)
        return self._resolve(member, context)

    def _layout(self, aggregate: Aggregate, context: _LayoutContext) -> LayoutResult:
        name = aggregate.name or ANONYMOUS

        if aggregate.name and aggregate.name in context.stack:
            raise CyclicDefinition(context.stack + [aggregate.name], aggregate=context.stack[-1])
        if len(context.stack) >= self.max_depth:
            raise InvalidMember(
                f"Aggregates nested deeper than {self.max_depth} levels", aggregate=name
            )
        self._check_member_names(aggregate)

        context.stack.append(name)
        try:
            if aggregate.is_union:
                return self._layout_union(aggregate, context)
            return self._layout_struct(aggregate, context)
        finally:
            context.stack.pop()

    def _check_member_names(self, aggregate: Aggregate) -> None:
        seen: set[str] = set()
        for member in aggregate.members:
            if not member.name:
                raise InvalidMember("Member has no name", aggregate=aggregate.name)
            if member.name in seen:
                raise InvalidMember(
                    f"Duplicate member name '{member.name}'",
                    aggregate=aggregate.name,
                    member=member.name,
                )
            seen.add(member.name)

    def _layout_struct(self, aggregate: Aggregate, context: _LayoutContext) -> LayoutResult:
        packed = aggregate.pack_override
        padding: list[PaddingRegion] = []
        placements: list[MemberLayout] = []
        allocator = BitfieldAllocator(context.profile, padding, pack_override=packed)
        cursor = 0
        max_alignment = 1

        for member in aggregate.members:
            try:
                descriptor = self._resolve(member, context)
                if member.is_bitfield:
                    placement, cursor = allocator.place(member, descriptor, cursor)
                else:
                    cursor = allocator.close(cursor)
                    alignment = 1 if packed else descriptor.alignment
                    offset = round_up(cursor, alignment)
                    if offset > cursor:
                        padding.append(PaddingRegion(offset=cursor, length=offset - cursor))
                    placement = MemberLayout(
                        name=member.name,
                        type_name=member.type_name,
                        offset=offset,
                        size=descriptor.size,
                        alignment=descriptor.alignment,
                    )
                    cursor = offset + descriptor.size
            except LayoutError as e:
                raise e.located(aggregate.name, member.name)

            max_alignment = max(max_alignment, descriptor.alignment)
            placements.append(placement)
            logger.debug(
                f"  {member.name}: offset={placement.offset} size={placement.size}"
                + (f" bits=[{placement.bit_offset}+{placement.bit_width}]" if member.is_bitfield else "")
            )

        cursor = allocator.close(cursor)
        return self._finish(aggregate, placements, padding, cursor, max_alignment)

    def _layout_union(self, aggregate: Aggregate, context: _LayoutContext) -> LayoutResult:
        placements: list[MemberLayout] = []
        largest = 0
        max_alignment = 1

        for member in aggregate.members:
            try:
                descriptor = self._resolve(member, context)
                bit_offset = None
                if member.is_bitfield:
                    width = validate_bitfield(member, descriptor)
                    bit_offset = bit_position(
                        0, width, descriptor.bit_size, context.profile.bitfield_direction
                    )
            except LayoutError as e:
                raise e.located(aggregate.name, member.name)

            placements.append(
                MemberLayout(
                    name=member.name,
                    type_name=member.type_name,
                    offset=0,
                    size=descriptor.size,
                    alignment=descriptor.alignment,
                    bit_offset=bit_offset,
                    bit_width=member.bit_width,
                )
            )
            largest = max(largest, descriptor.size)
            max_alignment = max(max_alignment, descriptor.alignment)

        return self._finish(aggregate, placements, [], largest, max_alignment)

    def _finish(
        self,
        aggregate: Aggregate,
        placements: list[MemberLayout],
        padding: list[PaddingRegion],
        cursor: int,
        max_alignment: int,
    ) -> LayoutResult:
        total_alignment = 1 if aggregate.pack_override else max_alignment
        stride = round_up(cursor, total_alignment)
        if stride > cursor:
            padding.append(PaddingRegion(offset=cursor, length=stride - cursor))

        return LayoutResult(
            aggregate_name=aggregate.name,
            kind=aggregate.kind,
            members=tuple(placements),
            padding=tuple(padding),
            total_size=stride,
            total_alignment=total_alignment,
            packed=aggregate.pack_override,
        )

    def _resolve(self, member: Member, context: _LayoutContext) -> TypeDescriptor:
        type_ref = member.type
        if isinstance(type_ref, TypeDescriptor):
            descriptor = type_ref
        elif isinstance(type_ref, Aggregate):
            descriptor = self._describe_nested(type_ref, context)
        else:
            catalog = context.catalog
            nested = None if catalog.is_pointer(type_ref) else catalog.lookup_aggregate(type_ref)
            if nested is not None:
                descriptor = self._describe_nested(nested, context)
            else:
                descriptor = catalog.describe(type_ref)

        # int x[2][3] is an array of 2 arrays of 3 ints: wrap innermost first
        for count in reversed(member.array_dims):
            try:
                descriptor = TypeDescriptor.array(descriptor, count)
            except ValueError as e:
                raise InvalidMember(str(e), member=member.name) from e
        return descriptor

    def _describe_nested(self, aggregate: Aggregate, context: _LayoutContext) -> TypeDescriptor:
        if aggregate in context.nested:
            return context.nested[aggregate]

        result = self._layout(aggregate, context)
        descriptor = TypeDescriptor.aggregate(
            aggregate.name or ANONYMOUS, result.total_size, result.total_alignment
        )
        context.nested[aggregate] = descriptor
        return descriptor


def compute_layout(
    aggregate: Aggregate,
    profile: MachineProfile,
    catalog: TypeCatalog | None = None,
) -> LayoutResult:
    """Convenience wrapper around LayoutEngine.compute_layout()."""
    return LayoutEngine(catalog).compute_layout(aggregate, profile)
