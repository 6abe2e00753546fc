"""struct-packer - C aggregate layout computation and padding-minimizing reordering."""

from .domain.models.layout import (
    Aggregate,
    AggregateKind,
    BitfieldDirection,
    LayoutError,
    LayoutResult,
    MachineProfile,
    Member,
    TypeDescriptor,
)
from .domain.services.catalog import TypeCatalog
from .domain.services.layout import LayoutEngine, compute_layout
from .domain.services.packing import PackingConstraints, PackingOptimizer, repack
from .domain.services.report import LayoutReport

__all__ = [
    "Aggregate",
    "AggregateKind",
    "BitfieldDirection",
    "LayoutEngine",
    "LayoutError",
    "LayoutReport",
    "LayoutResult",
    "MachineProfile",
    "Member",
    "PackingConstraints",
    "PackingOptimizer",
    "TypeCatalog",
    "TypeDescriptor",
    "compute_layout",
    "repack",
]
