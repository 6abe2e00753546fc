#!/usr/bin/env python3

"""Unit tests for the layout engine.

Covers struct and union layout, nested alignment propagation, arrays,
packing overrides, and the error kinds.
"""

import pytest

from struct_packer.domain.models.layout import (
    Aggregate,
    AggregateKind,
    CyclicDefinition,
    InvalidMember,
    LayoutResult,
    MachineProfile,
    Member,
    TypeDescriptor,
    UnknownType,
)
from struct_packer.domain.services.catalog import TypeCatalog
from struct_packer.domain.services.layout import LayoutEngine, compute_layout, round_up


def assert_round_trip(layout: LayoutResult) -> None:
    """Member bits plus padding bits account for the whole size."""
    assert layout.member_bits + layout.padding_bits == layout.total_size * 8


class TestStructLayout:
    """Member placement in declaration order."""

    @pytest.mark.unit
    def test_pointer_char_long(self, engine: LayoutEngine, lp64: MachineProfile, make_struct) -> None:
        layout = engine.compute_layout(
            make_struct("s", ("p", "char*"), ("c", "char"), ("x", "long")), lp64
        )

        assert layout.offsets() == {"p": 0, "c": 8, "x": 16}
        assert layout.get_member("p").size == 8
        assert layout.get_member("c").size == 1
        assert [(r.offset, r.length) for r in layout.padding] == [(9, 7)]
        assert layout.total_size == 24
        assert_round_trip(layout)

    @pytest.mark.unit
    def test_char_pointer_long(self, engine: LayoutEngine, lp64: MachineProfile, make_struct) -> None:
        layout = engine.compute_layout(
            make_struct("s", ("c", "char"), ("p", "char*"), ("x", "long")), lp64
        )

        assert layout.offsets() == {"c": 0, "p": 8, "x": 16}
        assert [(r.offset, r.length) for r in layout.padding] == [(1, 7)]
        assert layout.total_size == 24

    @pytest.mark.unit
    def test_trailing_padding(self, engine: LayoutEngine, lp64: MachineProfile, make_struct) -> None:
        layout = engine.compute_layout(make_struct("s", ("s", "short"), ("c", "char")), lp64)

        assert layout.offsets() == {"s": 0, "c": 2}
        assert [(r.offset, r.length) for r in layout.padding] == [(3, 1)]
        assert layout.trailing_padding() == 1
        assert layout.total_size == 4
        assert layout.total_alignment == 2

    @pytest.mark.unit
    def test_no_padding_needed(self, engine: LayoutEngine, lp64: MachineProfile, make_struct) -> None:
        layout = engine.compute_layout(
            make_struct("s", ("a", "int"), ("b", "short"), ("c", "char"), ("d", "char")), lp64
        )
        assert layout.padding == ()
        assert layout.total_size == 8
        assert layout.waste_percent == 0.0

    @pytest.mark.unit
    def test_empty_struct(self, engine: LayoutEngine, lp64: MachineProfile) -> None:
        layout = engine.compute_layout(Aggregate(name="empty"), lp64)
        assert layout.total_size == 0
        assert layout.total_alignment == 1
        assert layout.waste_percent == 0.0

    @pytest.mark.unit
    def test_i386_double_is_4_aligned(self, i386: MachineProfile, make_struct) -> None:
        layout = compute_layout(make_struct("s", ("c", "char"), ("d", "double")), i386)
        assert layout.get_member("d").offset == 4
        assert layout.total_size == 12
        assert layout.total_alignment == 4

    @pytest.mark.unit
    def test_ilp32_double_is_8_aligned(self, ilp32: MachineProfile, make_struct) -> None:
        layout = compute_layout(make_struct("s", ("c", "char"), ("d", "double")), ilp32)
        assert layout.get_member("d").offset == 8
        assert layout.total_size == 16

    @pytest.mark.unit
    def test_explicit_descriptor_member(self, engine: LayoutEngine, lp64: MachineProfile) -> None:
        vec = TypeDescriptor.scalar("vec4", 16, 16, is_integer=False)
        aggregate = Aggregate(name="s", members=(Member("c", "char"), Member("v", vec)))
        layout = engine.compute_layout(aggregate, lp64)
        assert layout.get_member("v").offset == 16
        assert layout.total_size == 32
        assert layout.total_alignment == 16


class TestNestedAggregates:
    """Alignment propagation through nesting."""

    @pytest.mark.unit
    def test_nested_by_name(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        inner = make_struct("inner", ("x", "long"), ("c", "char"))
        catalog.define(inner)
        outer = make_struct("outer", ("c", "char"), ("in", "inner"), ("d", "char"))

        layout = LayoutEngine(catalog).compute_layout(outer, lp64)

        inner_layout = layout.get_member("in")
        assert (inner_layout.offset, inner_layout.size, inner_layout.alignment) == (8, 16, 8)
        assert layout.get_member("d").offset == 24
        assert layout.total_size == 32
        assert layout.total_alignment == 8
        assert_round_trip(layout)

    @pytest.mark.unit
    def test_alignment_propagates_through_levels(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        catalog.define(make_struct("a", ("d", "double")))
        catalog.define(make_struct("b", ("x", "a")))
        catalog.define(make_struct("c", ("y", "b")))

        layout = LayoutEngine(catalog).compute_layout(make_struct("top", ("flag", "char"), ("z", "c")), lp64)
        assert layout.total_alignment == 8
        assert layout.get_member("z").offset == 8

    @pytest.mark.unit
    def test_inline_anonymous_union(self, engine: LayoutEngine, lp64: MachineProfile) -> None:
        variant = Aggregate(
            name="",
            kind=AggregateKind.UNION,
            members=(Member("i", "int"), Member("d", "double")),
        )
        outer = Aggregate(name="value", members=(Member("tag", "char"), Member("u", variant)))

        layout = engine.compute_layout(outer, lp64)
        assert layout.get_member("u").offset == 8
        assert layout.get_member("u").type_name == "<anonymous>"
        assert layout.total_size == 16

    @pytest.mark.unit
    def test_typedef_to_aggregate(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        catalog.define(make_struct("point", ("x", "int"), ("y", "int")))
        catalog.register_alias("point_t", "struct point")
        layout = LayoutEngine(catalog).compute_layout(make_struct("line", ("a", "point_t"), ("b", "point_t")), lp64)
        assert layout.offsets() == {"a": 0, "b": 8}
        assert layout.total_size == 16

    @pytest.mark.unit
    def test_self_pointer_is_not_a_cycle(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        node = make_struct("node", ("value", "int"), ("next", "node*"))
        catalog.define(node)
        layout = LayoutEngine(catalog).compute_layout(node, lp64)
        assert layout.total_size == 16

    @pytest.mark.unit
    def test_direct_cycle(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        loop = make_struct("loop", ("value", "int"), ("again", "loop"))
        catalog.define(loop)
        with pytest.raises(CyclicDefinition) as exc_info:
            LayoutEngine(catalog).compute_layout(loop, lp64)
        assert exc_info.value.path == ["loop", "loop"]
        assert exc_info.value.member == "again"

    @pytest.mark.unit
    def test_indirect_cycle(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        catalog.define(make_struct("a", ("b", "b")))
        catalog.define(make_struct("b", ("c", "c")))
        catalog.define(make_struct("c", ("a", "a")))
        with pytest.raises(CyclicDefinition, match="a -> b -> c -> a"):
            LayoutEngine(catalog).compute_layout(catalog.lookup_aggregate("a"), lp64)

    @pytest.mark.unit
    def test_max_depth(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        catalog.define(make_struct("l0", ("x", "int")))
        for level in range(1, 5):
            catalog.define(make_struct(f"l{level}", ("inner", f"l{level - 1}")))

        with pytest.raises(InvalidMember, match="deeper than 3"):
            LayoutEngine(catalog, max_depth=3).compute_layout(catalog.lookup_aggregate("l4"), lp64)
        assert LayoutEngine(catalog).compute_layout(catalog.lookup_aggregate("l4"), lp64).total_size == 4


class TestArrays:
    """Array members."""

    @pytest.mark.unit
    def test_array_member(self, engine: LayoutEngine, lp64: MachineProfile) -> None:
        aggregate = Aggregate(name="s", members=(Member("c", "char"), Member("v", "int", array_dims=(3,))))
        layout = engine.compute_layout(aggregate, lp64)
        assert layout.get_member("v").offset == 4
        assert layout.get_member("v").size == 12
        assert layout.get_member("v").type_name == "int[3]"
        assert layout.total_size == 16

    @pytest.mark.unit
    def test_multi_dimensional_array(self, engine: LayoutEngine, lp64: MachineProfile) -> None:
        member = Member("m", "short", array_dims=(2, 3))
        descriptor = engine.resolve_member_type(member, lp64)
        assert descriptor.size == 12
        assert descriptor.count == 2
        assert descriptor.element.count == 3

    @pytest.mark.unit
    def test_zero_length_array_still_aligns(self, engine: LayoutEngine, lp64: MachineProfile) -> None:
        aggregate = Aggregate(
            name="s", members=(Member("c", "char"), Member("tail", "long", array_dims=(0,)))
        )
        layout = engine.compute_layout(aggregate, lp64)
        assert layout.get_member("tail").offset == 8
        assert layout.get_member("tail").size == 0
        assert layout.total_size == 8
        assert layout.total_alignment == 8
        assert_round_trip(layout)

    @pytest.mark.unit
    def test_array_of_structs_uses_stride(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        catalog.define(make_struct("pair", ("i", "int"), ("c", "char")))
        aggregate = Aggregate(name="s", members=(Member("items", "pair", array_dims=(3,)),))
        layout = LayoutEngine(catalog).compute_layout(aggregate, lp64)
        assert layout.total_size == 24

    @pytest.mark.unit
    def test_negative_dimension(self, engine: LayoutEngine, lp64: MachineProfile) -> None:
        aggregate = Aggregate(name="s", members=(Member("bad", "int", array_dims=(-2,)),))
        with pytest.raises(InvalidMember) as exc_info:
            engine.compute_layout(aggregate, lp64)
        assert exc_info.value.aggregate == "s"
        assert exc_info.value.member == "bad"


class TestUnionLayout:
    """Union members share offset 0."""

    @pytest.mark.unit
    def test_union(self, engine: LayoutEngine, lp64: MachineProfile, make_struct) -> None:
        union = make_struct("u", ("c", "char"), ("i", "int"), ("s", "short"), kind=AggregateKind.UNION)
        layout = engine.compute_layout(union, lp64)

        assert set(layout.offsets().values()) == {0}
        assert layout.total_size == 4
        assert layout.total_alignment == 4
        assert layout.padding == ()
        assert_round_trip(layout)

    @pytest.mark.unit
    def test_union_rounds_to_stride(self, engine: LayoutEngine, lp64: MachineProfile) -> None:
        union = Aggregate(
            name="u",
            kind=AggregateKind.UNION,
            members=(Member("buf", "char", array_dims=(9,)), Member("l", "long")),
        )
        layout = engine.compute_layout(union, lp64)
        assert layout.total_size == 16
        assert [(r.offset, r.length) for r in layout.padding] == [(9, 7)]
        assert_round_trip(layout)

    @pytest.mark.unit
    def test_union_bitfield(self, engine: LayoutEngine, lp64: MachineProfile) -> None:
        union = Aggregate(
            name="u",
            kind=AggregateKind.UNION,
            members=(Member("bits", "unsigned int", bit_width=3), Member("c", "char")),
        )
        layout = engine.compute_layout(union, lp64)
        bits = layout.get_member("bits")
        assert (bits.offset, bits.bit_offset, bits.bit_width) == (0, 0, 3)
        assert layout.total_size == 4


class TestPackOverride:
    """Packed aggregates insert no padding."""

    @pytest.mark.unit
    def test_packed_struct(self, engine: LayoutEngine, lp64: MachineProfile, make_struct) -> None:
        packed = make_struct("s", ("c", "char"), ("p", "char*"), ("x", "short"), pack_override=True)
        layout = engine.compute_layout(packed, lp64)

        assert layout.offsets() == {"c": 0, "p": 1, "x": 9}
        assert layout.padding == ()
        assert layout.total_size == 11
        assert layout.total_alignment == 1
        assert layout.packed

    @pytest.mark.unit
    def test_packed_struct_nested_in_aligned_struct(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        catalog.define(make_struct("wire", ("c", "char"), ("i", "int"), pack_override=True))
        layout = LayoutEngine(catalog).compute_layout(make_struct("s", ("a", "char"), ("w", "wire")), lp64)
        assert layout.get_member("w").offset == 1
        assert layout.total_size == 6


class TestErrors:
    """Errors carry their aggregate and member."""

    @pytest.mark.unit
    def test_unknown_type(self, engine: LayoutEngine, lp64: MachineProfile, make_struct) -> None:
        with pytest.raises(UnknownType) as exc_info:
            engine.compute_layout(make_struct("s", ("a", "int"), ("w", "widget")), lp64)
        error = exc_info.value
        assert (error.aggregate, error.member, error.type_name) == ("s", "w", "widget")
        assert str(error) == "Unknown type 'widget' [s.w]"

    @pytest.mark.unit
    def test_error_in_nested_keeps_inner_location(self, catalog: TypeCatalog, lp64: MachineProfile, make_struct) -> None:
        catalog.define(make_struct("inner", ("w", "widget")))
        with pytest.raises(UnknownType) as exc_info:
            LayoutEngine(catalog).compute_layout(make_struct("outer", ("i", "inner")), lp64)
        assert (exc_info.value.aggregate, exc_info.value.member) == ("inner", "w")

    @pytest.mark.unit
    def test_duplicate_member(self, engine: LayoutEngine, lp64: MachineProfile, make_struct) -> None:
        with pytest.raises(InvalidMember, match="Duplicate"):
            engine.compute_layout(make_struct("s", ("a", "int"), ("a", "char")), lp64)

    @pytest.mark.unit
    def test_catalog_profile_mismatch(self, engine: LayoutEngine, i386: MachineProfile, make_struct) -> None:
        with pytest.raises(ValueError, match="built for profile 'lp64'"):
            engine.compute_layout(make_struct("s", ("a", "int")), i386)

    @pytest.mark.unit
    def test_describe_aggregate(self, engine: LayoutEngine, lp64: MachineProfile, make_struct) -> None:
        descriptor = engine.describe_aggregate(make_struct("s", ("a", "long"), ("b", "char")), lp64)
        assert (descriptor.name, descriptor.size, descriptor.alignment) == ("s", 16, 8)


class TestProperties:
    """Rules that hold for every layout."""

    AGGREGATES = [
        [("a", "char")],
        [("a", "char"), ("b", "double"), ("c", "short")],
        [("a", "short"), ("b", "char*"), ("c", "char"), ("d", "int"), ("e", "long double")],
        [("a", "int"), ("b", "char"), ("c", "int"), ("d", "char")],
    ]

    @pytest.mark.unit
    @pytest.mark.parametrize("members", AGGREGATES)
    @pytest.mark.parametrize("kind", [AggregateKind.STRUCT, AggregateKind.UNION])
    @pytest.mark.parametrize("profile_name", ["lp64", "llp64", "ilp32", "i386"])
    def test_size_and_alignment_rules(self, make_struct, members, kind: AggregateKind, profile_name: str) -> None:
        profile = MachineProfile.named(profile_name)
        catalog = TypeCatalog.for_profile(profile)
        layout = compute_layout(make_struct("s", *members, kind=kind), profile, catalog)

        sizes = [m.size for m in layout.members]
        alignments = [catalog.describe(type_name).alignment for _, type_name in members]

        assert layout.total_size >= (max(sizes) if kind is AggregateKind.UNION else sum(sizes))
        assert layout.total_size % layout.total_alignment == 0
        assert layout.total_alignment == max(alignments)
        assert all(m.offset % m.alignment == 0 for m in layout.members)
        assert_round_trip(layout)


@pytest.mark.unit
@pytest.mark.parametrize("value,alignment,expected", [(0, 8, 0), (1, 8, 8), (8, 8, 8), (9, 4, 12), (5, 1, 5)])
def test_round_up(value: int, alignment: int, expected: int) -> None:
    assert round_up(value, alignment) == expected
