#!/usr/bin/env python3

"""Layout domain models."""

from .aggregate import Aggregate, AggregateKind
from .errors import (
    CyclicDefinition,
    IncompatibleUnionLayout,
    InvalidBitfieldWidth,
    InvalidMember,
    LayoutError,
    UnknownType,
)
from .layout_result import LayoutResult, MemberLayout, PaddingKind, PaddingRegion
from .machine_profile import (
    BUILTIN_PROFILES,
    BitfieldDirection,
    MachineProfile,
    UnknownProfile,
)
from .member import Member, TypeRef
from .type_descriptor import TypeDescriptor, TypeKind

__all__ = [
    "Aggregate",
    "AggregateKind",
    "BitfieldDirection",
    "BUILTIN_PROFILES",
    "CyclicDefinition",
    "IncompatibleUnionLayout",
    "InvalidBitfieldWidth",
    "InvalidMember",
    "LayoutError",
    "LayoutResult",
    "MachineProfile",
    "Member",
    "MemberLayout",
    "PaddingKind",
    "PaddingRegion",
    "TypeDescriptor",
    "TypeKind",
    "TypeRef",
    "UnknownProfile",
    "UnknownType",
]
