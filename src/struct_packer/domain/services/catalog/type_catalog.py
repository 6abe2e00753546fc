#!/usr/bin/env python3

"""Registry of type descriptors for one machine profile.

The catalog maps type names to TypeDescriptors. The same logical name can
resolve differently per profile (`long` is 8 bytes on lp64, 4 on llp64),
so a catalog is always built for a specific MachineProfile. Named aggregate
definitions are kept alongside so the layout engine can resolve members
that refer to other structs by name.
"""

import re

from ....infrastructure.logging import get_logger
from ...models.layout import (
    Aggregate,
    MachineProfile,
    TypeDescriptor,
    UnknownType,
)

logger = get_logger(__name__)

_QUALIFIERS = re.compile(r"\b(const|volatile|restrict|struct|union|enum)\b")
_WHITESPACE = re.compile(r"\s+")


def normalize_type_name(type_name: str) -> str:
    """Strip qualifiers and collapse whitespace.

    `const struct node *` becomes `node*`; `unsigned   int` becomes
    `unsigned int`. A bare `enum` keyword is kept since it names the
    profile's enum type.
    """
    name = type_name.strip()
    if name == "enum":
        return name
    name = _QUALIFIERS.sub(" ", name)
    name = _WHITESPACE.sub(" ", name).strip()
    return re.sub(r"\s*\*", "*", name)


class TypeCatalog:
    """Type-name registry bound to a machine profile."""

    def __init__(self, profile: MachineProfile):
        """Create an empty catalog; use for_profile() for the primitive set.

        Args:
            profile: Machine profile the registered sizes belong to
        """
        self.profile = profile
        self._types: dict[str, TypeDescriptor] = {}
        self._aliases: dict[str, str] = {}
        self._aggregates: dict[str, Aggregate] = {}

    @classmethod
    def for_profile(cls, profile: MachineProfile) -> "TypeCatalog":
        """Build a catalog with the C primitive types for a profile."""
        catalog = cls(profile)
        catalog._register_primitives()
        logger.debug(
            f"Built type catalog for profile {profile.name} "
            f"({len(catalog._types)} primitives)"
        )
        return catalog

    def _register_primitives(self) -> None:
        profile = self.profile
        long_size = profile.effective_long_size
        integers = {
            "char": 1,
            "signed char": 1,
            "unsigned char": 1,
            "bool": 1,
            "_Bool": 1,
            "short": 2,
            "unsigned short": 2,
            "int": 4,
            "unsigned int": 4,
            "long": long_size,
            "unsigned long": long_size,
            "long long": 8,
            "unsigned long long": 8,
            "size_t": profile.pointer_size,
            "ptrdiff_t": profile.pointer_size,
            "intptr_t": profile.pointer_size,
            "uintptr_t": profile.pointer_size,
            "enum": profile.enum_size,
        }
        for bits in (8, 16, 32, 64):
            integers[f"int{bits}_t"] = bits // 8
            integers[f"uint{bits}_t"] = bits // 8

        for name, size in integers.items():
            # long long is only 4-aligned on i386; it follows the double rule there
            alignment = size
            if size == 8 and profile.word_size < 8 and profile.double_alignment_override:
                alignment = profile.double_alignment_override
            self.register(TypeDescriptor.scalar(name, size, alignment))

        self.register(TypeDescriptor.scalar("float", 4, is_integer=False))
        self.register(
            TypeDescriptor.scalar("double", 8, profile.double_alignment, is_integer=False)
        )
        self.register(
            TypeDescriptor.scalar(
                "long double",
                profile.long_double_size,
                profile.long_double_alignment,
                is_integer=False,
            )
        )

        for alias, target in {
            "signed": "int",
            "unsigned": "unsigned int",
            "signed int": "int",
            "short int": "short",
            "signed short": "short",
            "unsigned short int": "unsigned short",
            "long int": "long",
            "signed long": "long",
            "unsigned long int": "unsigned long",
            "long long int": "long long",
            "signed long long": "long long",
            "unsigned long long int": "unsigned long long",
            # GCC's DWARF spellings
            "short unsigned int": "unsigned short",
            "long unsigned int": "unsigned long",
            "long long unsigned int": "unsigned long long",
        }.items():
            self.register_alias(alias, target)

    def register(self, descriptor: TypeDescriptor) -> None:
        """Register (or replace) a type descriptor under its own name."""
        self._types[normalize_type_name(descriptor.name)] = descriptor

    def register_alias(self, alias: str, target: str) -> None:
        """Register a typedef-style alias for another type name."""
        self._aliases[normalize_type_name(alias)] = normalize_type_name(target)

    def define(self, aggregate: Aggregate) -> None:
        """Register a named aggregate definition for by-name resolution."""
        if not aggregate.name:
            raise ValueError("Only named aggregates can be defined in the catalog")
        self._aggregates[normalize_type_name(aggregate.name)] = aggregate

    def resolve_alias(self, type_name: str) -> str:
        """Follow aliases to the canonical name; stops on alias loops."""
        name = normalize_type_name(type_name)
        seen: set[str] = set()
        while name in self._aliases and name not in seen:
            seen.add(name)
            name = self._aliases[name]
        return name

    def lookup_aggregate(self, type_name: str) -> Aggregate | None:
        """Return the named aggregate definition, if any."""
        return self._aggregates.get(self.resolve_alias(type_name))

    def aggregates(self) -> list[Aggregate]:
        """All named aggregate definitions, in definition order."""
        return list(self._aggregates.values())

    def is_pointer(self, type_name: str) -> bool:
        return self.resolve_alias(type_name).endswith("*")

    def contains(self, type_name: str) -> bool:
        name = self.resolve_alias(type_name)
        return name in self._types or name in self._aggregates or name.endswith("*")

    def describe(self, type_name: str) -> TypeDescriptor:
        """Resolve a scalar or pointer type name to its descriptor.

        Aggregate names are not resolved here: their size depends on a
        layout computation, which is the layout engine's job.

        Raises:
            UnknownType: If the name is not registered
        """
        name = self.resolve_alias(type_name)
        if name.endswith("*"):
            return TypeDescriptor.pointer(name[:-1], self.profile.pointer_size)

        descriptor = self._types.get(name)
        if descriptor is None:
            raise UnknownType(type_name)
        return descriptor

    def array_of(self, element: TypeDescriptor | str, count: int) -> TypeDescriptor:
        """Compose an array type: n x size, element alignment."""
        if isinstance(element, str):
            element = self.describe(element)
        return TypeDescriptor.array(element, count)

    def __contains__(self, type_name: str) -> bool:
        return self.contains(type_name)

    def __len__(self) -> int:
        return len(self._types)
