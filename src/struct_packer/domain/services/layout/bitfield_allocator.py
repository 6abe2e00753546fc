#!/usr/bin/env python3

"""Bitfield allocation into storage units.

Consecutive bitfields share a storage unit sized by their underlying
integer type. A field never straddles the unit boundary: if it does not
fit in the bits left, the current unit is closed (the leftover bits become
padding) and a fresh, properly aligned unit is opened. Changing the
underlying type, a non-bitfield member, or the end of the aggregate also
closes the unit.

Where inside the unit a field lands depends on the profile's
BitfieldDirection. Padding bits are unspecified; nothing here assumes
they are zero.
"""

from ....infrastructure.logging import get_logger
from ...models.layout import (
    BitfieldDirection,
    InvalidBitfieldWidth,
    InvalidMember,
    MachineProfile,
    Member,
    MemberLayout,
    PaddingKind,
    PaddingRegion,
    TypeDescriptor,
    TypeKind,
)

logger = get_logger(__name__)


def round_up(value: int, alignment: int) -> int:
    """Smallest multiple of alignment that is >= value."""
    return (value + alignment - 1) // alignment * alignment


def validate_bitfield(member: Member, descriptor: TypeDescriptor) -> int:
    """Check that a bitfield member is well formed and return its width.

    Raises:
        InvalidMember: If the member is an array or its type is not an integer
        InvalidBitfieldWidth: If the width is 0 or wider than the type
    """
    width = member.bit_width
    assert width is not None

    if member.array_dims:
        raise InvalidMember("A bitfield cannot be an array", member=member.name)
    if descriptor.kind is not TypeKind.SCALAR or not descriptor.is_integer:
        raise InvalidMember(
            f"Bitfield type '{descriptor.name}' is not an integer type", member=member.name
        )
    if width <= 0 or width > descriptor.bit_size:
        raise InvalidBitfieldWidth(width, descriptor.bit_size, member=member.name)
    return width


def bit_position(bit_cursor: int, width: int, unit_bits: int, direction: BitfieldDirection) -> int:
    """First bit of a `width`-bit field allocated at `bit_cursor`."""
    if direction is BitfieldDirection.LOW_TO_HIGH:
        return bit_cursor
    return unit_bits - bit_cursor - width


class BitfieldAllocator:
    """Packs runs of adjacent bitfields for the layout engine.

    The allocator appends padding regions to the list it was given, so
    padding from bitfield units and from byte alignment comes out in
    offset order.
    """

    def __init__(
        self,
        profile: MachineProfile,
        padding: list[PaddingRegion],
        pack_override: bool = False,
    ):
        """
        Args:
            profile: Machine profile supplying direction and restart policy
            padding: Padding list of the layout being built
            pack_override: Open units at the cursor without aligning them
        """
        self.profile = profile
        self.padding = padding
        self.pack_override = pack_override

        self.unit_type: TypeDescriptor | None = None
        self.storage_unit_size = 0  # bits
        self.bit_cursor = 0
        self.unit_start_offset = 0

    @property
    def is_open(self) -> bool:
        return self.unit_type is not None

    def place(
        self, member: Member, descriptor: TypeDescriptor, cursor: int
    ) -> tuple[MemberLayout, int]:
        """Allocate one bitfield member.

        Args:
            member: The bitfield member
            descriptor: Resolved underlying integer type
            cursor: Byte cursor of the enclosing layout

        Returns:
            The member's placement and the updated byte cursor
        """
        width = validate_bitfield(member, descriptor)

        if self.is_open and descriptor != self.unit_type:
            logger.debug(
                f"Underlying type changed from {self.unit_type.name} to {descriptor.name}; "
                f"closing unit at {self.unit_start_offset}"
            )
            cursor = self.close(cursor)

        if self.is_open and self.profile.bitfield_byte_restart:
            self._restart_at_byte_if_straddling(width)

        if self.is_open and self.bit_cursor + width > self.storage_unit_size:
            logger.debug(
                f"Bitfield {member.name}:{width} does not fit in "
                f"{self.storage_unit_size - self.bit_cursor} remaining bits; opening new unit"
            )
            cursor = self.close(cursor)

        if not self.is_open:
            cursor = self._open(descriptor, cursor)

        bit_offset = bit_position(
            self.bit_cursor, width, self.storage_unit_size, self.profile.bitfield_direction
        )
        placement = MemberLayout(
            name=member.name,
            type_name=member.type_name,
            offset=self.unit_start_offset,
            size=descriptor.size,
            alignment=descriptor.alignment,
            bit_offset=bit_offset,
            bit_width=width,
        )
        self.bit_cursor += width
        return placement, cursor

    def close(self, cursor: int) -> int:
        """Close the open unit, recording its unused bits as padding.

        The byte cursor already points past the unit, so it is returned
        unchanged; closing with no open unit is a no-op.
        """
        if not self.is_open:
            return cursor

        remaining = self.storage_unit_size - self.bit_cursor
        if remaining > 0:
            self._pad_bits(self.bit_cursor, remaining)

        self.unit_type = None
        self.storage_unit_size = 0
        self.bit_cursor = 0
        return cursor

    def _open(self, descriptor: TypeDescriptor, cursor: int) -> int:
        alignment = 1 if self.pack_override else descriptor.alignment
        start = round_up(cursor, alignment)
        if start > cursor:
            self.padding.append(PaddingRegion(offset=cursor, length=start - cursor))

        self.unit_type = descriptor
        self.storage_unit_size = descriptor.bit_size
        self.bit_cursor = 0
        self.unit_start_offset = start
        return start + descriptor.size

    def _restart_at_byte_if_straddling(self, width: int) -> None:
        # Only fields that fit in a byte can be kept from straddling one.
        used_in_byte = self.bit_cursor % 8
        if width > 8 or used_in_byte == 0 or used_in_byte + width <= 8:
            return
        skip = 8 - used_in_byte
        if self.bit_cursor + skip + width > self.storage_unit_size:
            return  # the unit closes anyway
        self._pad_bits(self.bit_cursor, skip)
        self.bit_cursor += skip

    def _pad_bits(self, bit_cursor: int, length: int) -> None:
        self.padding.append(
            PaddingRegion(
                offset=self.unit_start_offset,
                length=length,
                kind=PaddingKind.BITS,
                bit_offset=bit_position(
                    bit_cursor, length, self.storage_unit_size, self.profile.bitfield_direction
                ),
            )
        )
