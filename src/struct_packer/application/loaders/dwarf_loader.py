#!/usr/bin/env python3

"""Aggregate extraction from DWARF debug information.

Reads struct/union/class definitions out of an ELF file's DWARF data and
turns them into Aggregates, so compiled structs can be re-laid out and
repacked. Only member order, types, array bounds and bit widths are taken
from DWARF; offsets are recomputed by the layout engine. The compiler's
DW_AT_byte_size is kept for comparison.

Type chains are followed the way a C declaration reads:
- const/volatile are transparent
- pointers and references become `<target>*`
- typedefs become catalog aliases
- arrays contribute dimensions from their DW_TAG_subrange_type children
- anonymous structs/unions become inline aggregates
"""

from pathlib import Path
from typing import Any

from elftools.dwarf.die import DIE
from elftools.elf.elffile import ELFFile

from ...domain.models.layout import Aggregate, AggregateKind, Member, TypeDescriptor
from ...infrastructure.logging import get_logger, log_timing
from .json_loader import Description

logger = get_logger(__name__)

AGGREGATE_TAGS = {
    "DW_TAG_structure_type": AggregateKind.STRUCT,
    "DW_TAG_class_type": AggregateKind.STRUCT,
    "DW_TAG_union_type": AggregateKind.UNION,
}
TRANSPARENT_TAGS = {"DW_TAG_const_type", "DW_TAG_volatile_type", "DW_TAG_restrict_type", "DW_TAG_atomic_type"}
POINTER_TAGS = {
    "DW_TAG_pointer_type",
    "DW_TAG_reference_type",
    "DW_TAG_rvalue_reference_type",
    "DW_TAG_ptr_to_member_type",
}
DW_ATE_FLOAT = 0x04
DW_ATE_COMPLEX_FLOAT = 0x03

# Maximum type-chain length before giving up on a member
MAX_CHAIN_DEPTH = 20


class DwarfLoadError(ValueError):
    """The ELF file has no usable DWARF information."""


def _attr(die: DIE, name: str) -> Any:
    attr = die.attributes.get(name)
    return attr.value if attr is not None else None


def die_name(die: DIE) -> str | None:
    value = _attr(die, "DW_AT_name")
    if value is None:
        return None
    return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else str(value)


def _type_die(die: DIE) -> DIE | None:
    if "DW_AT_type" not in die.attributes:
        return None
    return die.get_DIE_from_attribute("DW_AT_type")


def subrange_count(subrange: DIE) -> int:
    """Element count of one array dimension; 0 for unknown/flexible bounds."""
    count = _attr(subrange, "DW_AT_count")
    if isinstance(count, int):
        return count
    upper = _attr(subrange, "DW_AT_upper_bound")
    if isinstance(upper, int):
        lower = _attr(subrange, "DW_AT_lower_bound")
        return upper - (lower if isinstance(lower, int) else 0) + 1
    return 0


class DwarfAggregateLoader:
    """Builds a Description from the aggregates defined in an ELF file."""

    def __init__(self, elf_path: Path):
        """
        Args:
            elf_path: Path to the ELF file
        """
        self.elf_path = elf_path
        self._file: Any = None
        self.elf_file: ELFFile | None = None

        self._converted: dict[int, Aggregate] = {}  # DIE offset -> aggregate
        self._named: dict[str, Aggregate] = {}
        self._description = Description()

    def __enter__(self) -> "DwarfAggregateLoader":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        self._file = open(self.elf_path, "rb")
        self.elf_file = ELFFile(self._file)  # type: ignore[no-untyped-call]
        if not self.elf_file.has_dwarf_info():  # type: ignore[no-untyped-call]
            self.close()
            raise DwarfLoadError(f"{self.elf_path} has no DWARF debug information")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
        self._file = None
        self.elf_file = None

    @log_timing
    def load(self, names: set[str] | None = None) -> Description:
        """Convert aggregate definitions found in the DWARF data.

        Args:
            names: Only report these aggregates (their dependencies are
                still defined). None means every named aggregate.

        Returns:
            Description with the requested aggregates and their dependencies
        """
        if self.elf_file is None:
            raise RuntimeError("ELF file not open. Use the loader as a context manager.")

        dwarf_info = self.elf_file.get_dwarf_info()  # type: ignore[no-untyped-call]
        requested: list[str] = []
        requested_set: set[str] = set()

        for cu in dwarf_info.iter_CUs():
            for die in cu.iter_DIEs():
                if die.tag not in AGGREGATE_TAGS or not self._is_definition(die):
                    continue
                name = die_name(die)
                if not name or name in requested_set:
                    continue
                if names is not None and name not in names:
                    continue
                # may already be converted as another aggregate's dependency
                if name not in self._named:
                    self._convert(die)
                requested.append(name)
                requested_set.add(name)

        if names is not None:
            for missing in sorted(names - set(requested)):
                logger.warning(f"Aggregate {missing} not found in DWARF info")

        description = self._description
        description.aggregates = [self._named[n] for n in requested]
        description.definitions = [
            aggregate for name, aggregate in self._named.items() if name not in requested_set
        ]
        logger.info(
            f"Loaded {len(description.aggregates)} aggregates from {self.elf_path} "
            f"({len(description.definitions)} dependencies)"
        )
        return description

    @staticmethod
    def _is_definition(die: DIE) -> bool:
        return (
            "DW_AT_declaration" not in die.attributes
            and _attr(die, "DW_AT_byte_size") is not None
            and die.has_children
        )

    def _convert(self, die: DIE) -> Aggregate:
        if die.offset in self._converted:
            return self._converted[die.offset]

        name = die_name(die) or ""
        kind = AGGREGATE_TAGS[die.tag]
        logger.debug(f"Converting {kind} {name or '<anonymous>'} at DIE 0x{die.offset:x}")

        members: list[Member] = []
        for child in die.iter_children():
            if child.tag == "DW_TAG_inheritance":
                base = _type_die(child)
                base_name = die_name(base) if base is not None else None
                if base is not None and base.tag in AGGREGATE_TAGS and base_name:
                    self._ensure_named(base)
                    members.append(Member(name=f"__base_{base_name}", type=base_name))
                continue
            if child.tag != "DW_TAG_member" or self._is_static(child):
                continue

            member = self._convert_member(child, len(members), name)
            if member is not None:
                members.append(member)

        aggregate = Aggregate(name=name, kind=kind, members=tuple(members))
        self._converted[die.offset] = aggregate
        if name:
            self._named[name] = aggregate
            self._description.reported_sizes[name] = _attr(die, "DW_AT_byte_size")
        return aggregate

    @staticmethod
    def _is_static(member_die: DIE) -> bool:
        return "DW_AT_external" in member_die.attributes and "DW_AT_declaration" in member_die.attributes

    def _ensure_named(self, die: DIE) -> None:
        name = die_name(die)
        if name and name not in self._named and self._is_definition(die):
            self._convert(die)

    def _convert_member(self, member_die: DIE, index: int, owner: str) -> Member | None:
        name = die_name(member_die) or f"__anon{index}"
        type_die = _type_die(member_die)
        if type_die is None:
            logger.warning(f"Member {owner}.{name} has no type; skipped")
            return None

        resolved = self._type_ref(type_die, 0)
        if resolved is None:
            logger.warning(f"Could not resolve type of {owner}.{name}; skipped")
            return None
        type_ref, dims = resolved

        bit_width = _attr(member_die, "DW_AT_bit_size")
        return Member(
            name=name,
            type=type_ref,
            array_dims=dims,
            bit_width=bit_width if isinstance(bit_width, int) else None,
        )

    def _type_ref(self, die: DIE, depth: int) -> tuple[str | TypeDescriptor | Aggregate, tuple[int, ...]] | None:
        if depth > MAX_CHAIN_DEPTH:
            logger.warning(f"Type chain too deep at DIE 0x{die.offset:x}")
            return None

        tag = die.tag
        if tag in TRANSPARENT_TAGS:
            target = _type_die(die)
            return self._type_ref(target, depth + 1) if target is not None else None

        if tag in POINTER_TAGS:
            return f"{self._pointee_name(die)}*", ()

        if tag == "DW_TAG_typedef":
            alias = die_name(die)
            target = _type_die(die)
            if target is None or not alias:
                return None
            resolved = self._type_ref(target, depth + 1)
            if resolved is None:
                return None
            target_ref, dims = resolved
            # Only plain name-to-name typedefs become aliases
            if isinstance(target_ref, str) and not dims:
                self._description.aliases[alias] = target_ref
                return alias, ()
            return target_ref, dims

        if tag == "DW_TAG_array_type":
            element = _type_die(die)
            if element is None:
                return None
            resolved = self._type_ref(element, depth + 1)
            if resolved is None:
                return None
            element_ref, inner_dims = resolved
            dims = tuple(
                subrange_count(child)
                for child in die.iter_children()
                if child.tag == "DW_TAG_subrange_type"
            )
            return element_ref, dims + inner_dims

        if tag in AGGREGATE_TAGS:
            name = die_name(die)
            if name:
                self._ensure_named(die)
                return name, ()
            return self._convert(die), ()

        if tag == "DW_TAG_base_type":
            name = die_name(die)
            size = _attr(die, "DW_AT_byte_size")
            if not name or not isinstance(size, int):
                return None
            encoding = _attr(die, "DW_AT_encoding")
            if name not in {d.name for d in self._description.fallback_types}:
                self._description.fallback_types.append(
                    TypeDescriptor.scalar(
                        name,
                        size,
                        is_integer=encoding not in (DW_ATE_FLOAT, DW_ATE_COMPLEX_FLOAT),
                    )
                )
            return name, ()

        if tag == "DW_TAG_enumeration_type":
            size = _attr(die, "DW_AT_byte_size")
            if not isinstance(size, int):
                return "enum", ()
            return TypeDescriptor.scalar(die_name(die) or "enum", size), ()

        logger.debug(f"Unhandled type tag {tag} at DIE 0x{die.offset:x}")
        return None

    @staticmethod
    def _pointee_name(pointer_die: DIE) -> str:
        target = _type_die(pointer_die)
        depth = 0
        while target is not None and target.tag in TRANSPARENT_TAGS and depth < MAX_CHAIN_DEPTH:
            target = _type_die(target)
            depth += 1
        if target is None:
            return "void"
        return die_name(target) or "void"


def load_elf_description(elf_path: Path, names: set[str] | None = None) -> Description:
    """Load aggregates from an ELF file's DWARF data."""
    with DwarfAggregateLoader(elf_path) as loader:
        return loader.load(names)
