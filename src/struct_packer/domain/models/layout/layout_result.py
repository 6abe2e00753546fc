#!/usr/bin/env python3

"""Layout result model produced by the layout engine."""

from dataclasses import dataclass
from enum import Enum

from .aggregate import AggregateKind


class PaddingKind(Enum):
    """Whether a padding region is measured in bytes or in bits."""

    BYTES = "bytes"
    BITS = "bits"


@dataclass(frozen=True)
class PaddingRegion:
    """Unused filler. Contents are unspecified, never assumed zero.

    For BITS regions `offset` is the byte offset of the storage unit and
    `bit_offset` the first padding bit inside it.
    """

    offset: int
    length: int
    kind: PaddingKind = PaddingKind.BYTES
    bit_offset: int = 0

    @property
    def is_bits(self) -> bool:
        return self.kind is PaddingKind.BITS

    @property
    def bits(self) -> int:
        return self.length if self.is_bits else self.length * 8

    @property
    def end(self) -> int:
        """End offset in bytes (BYTES regions only)."""
        return self.offset + self.length


@dataclass(frozen=True)
class MemberLayout:
    """Placement of one member.

    For bitfields `offset` and `size` describe the storage unit the field
    lives in, `bit_offset` its first bit inside that unit.
    """

    name: str
    type_name: str
    offset: int
    size: int
    alignment: int
    bit_offset: int | None = None
    bit_width: int | None = None

    @property
    def is_bitfield(self) -> bool:
        return self.bit_width is not None

    @property
    def size_bits(self) -> int:
        if self.bit_width is not None:
            return self.bit_width
        return self.size * 8

    @property
    def extent_bits(self) -> int:
        """Bits reserved for the member; a bitfield reserves its whole storage unit."""
        return self.size * 8

    @property
    def end(self) -> int:
        return self.offset + self.size


@dataclass(frozen=True)
class LayoutResult:
    """Complete layout of one aggregate for one profile."""

    aggregate_name: str
    kind: AggregateKind
    members: tuple[MemberLayout, ...]
    padding: tuple[PaddingRegion, ...]
    total_size: int
    total_alignment: int
    packed: bool = False

    @property
    def padding_bytes(self) -> int:
        return sum(p.length for p in self.padding if not p.is_bits)

    @property
    def padding_bits(self) -> int:
        return sum(p.bits for p in self.padding)

    @property
    def member_bits(self) -> int:
        if self.kind is AggregateKind.UNION:
            return max((m.extent_bits for m in self.members), default=0)
        return sum(m.size_bits for m in self.members)

    @property
    def data_size(self) -> int:
        """Bytes actually carrying member data (rounded up for bitfields)."""
        return (self.member_bits + 7) // 8

    @property
    def waste_percent(self) -> float:
        if self.total_size == 0:
            return 0.0
        return 100.0 * self.padding_bits / (self.total_size * 8)

    def get_member(self, name: str) -> MemberLayout | None:
        for member in self.members:
            if member.name == name:
                return member
        return None

    def offsets(self) -> dict[str, int]:
        return {m.name: m.offset for m in self.members}

    def trailing_padding(self) -> int:
        """Bytes of tail padding between the last data byte and the stride."""
        if self.padding and not self.padding[-1].is_bits and self.padding[-1].end == self.total_size:
            return self.padding[-1].length
        return 0
