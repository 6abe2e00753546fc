#!/usr/bin/env python3

"""Target machine profiles.

A profile fixes everything about the target that the layout rules depend on:
primitive widths, pointer width, cache-line size and the compiler-defined
bitfield allocation policy. Profiles are immutable and passed explicitly into
every computation.
"""

from dataclasses import dataclass, field, replace
from enum import Enum


class BitfieldDirection(Enum):
    """Order in which bitfields are allocated inside a storage unit."""

    LOW_TO_HIGH = "low-to-high"  # GCC/Clang on little-endian targets
    HIGH_TO_LOW = "high-to-low"  # big-endian ABIs (PowerPC, SPARC, s390)

    def __str__(self) -> str:
        return self.value


class UnknownProfile(ValueError):
    """Raised when a profile name is not one of the built-in profiles."""


def is_power_of_two(value: int) -> bool:
    """Return True for 1, 2, 4, 8, ..."""
    return value > 0 and value & (value - 1) == 0


@dataclass(frozen=True)
class MachineProfile:
    """Target word/pointer sizes and packing policies."""

    name: str
    word_size: int
    pointer_size: int
    cache_line_size: int = 64
    bitfield_direction: BitfieldDirection = BitfieldDirection.LOW_TO_HIGH
    double_alignment_override: int | None = None
    long_size: int | None = None  # defaults to word_size
    long_double_size: int = 16
    long_double_alignment: int = 16
    enum_size: int = 4
    bitfield_byte_restart: bool = False
    description: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        for attr in ("word_size", "pointer_size", "cache_line_size", "enum_size"):
            value = getattr(self, attr)
            if not is_power_of_two(value):
                raise ValueError(f"{attr} must be a positive power of two, got {value}")
        if self.long_size is not None and not is_power_of_two(self.long_size):
            raise ValueError(f"long_size must be a positive power of two, got {self.long_size}")
        if self.long_double_size <= 0:
            raise ValueError(f"long_double_size must be positive, got {self.long_double_size}")
        if not is_power_of_two(self.long_double_alignment):
            raise ValueError(
                "long_double_alignment must be a positive power of two, "
                f"got {self.long_double_alignment}"
            )
        override = self.double_alignment_override
        if override is not None and not is_power_of_two(override):
            raise ValueError(
                f"double_alignment_override must be a positive power of two, got {override}"
            )
        if not isinstance(self.bitfield_direction, BitfieldDirection):
            object.__setattr__(
                self, "bitfield_direction", BitfieldDirection(self.bitfield_direction)
            )

    @property
    def effective_long_size(self) -> int:
        return self.long_size if self.long_size is not None else self.word_size

    @property
    def double_alignment(self) -> int:
        """Alignment of `double`, honoring the ABI override if present."""
        if self.double_alignment_override is not None:
            return self.double_alignment_override
        return 8

    @classmethod
    def named(cls, name: str) -> "MachineProfile":
        """Return a built-in profile by name.

        Raises:
            UnknownProfile: If no built-in profile has this name
        """
        key = name.strip().lower()
        try:
            return BUILTIN_PROFILES[key]
        except KeyError:
            known = ", ".join(sorted(BUILTIN_PROFILES))
            raise UnknownProfile(f"Unknown machine profile '{name}' (known: {known})") from None

    @classmethod
    def custom(
        cls,
        word_size: int,
        pointer_size: int,
        cache_line_size: int = 64,
        bitfield_direction: BitfieldDirection | str = BitfieldDirection.LOW_TO_HIGH,
        **overrides: object,
    ) -> "MachineProfile":
        """Build a fully custom profile."""
        name = str(overrides.pop("name", f"custom-w{word_size}-p{pointer_size}"))
        return cls(
            name=name,
            word_size=word_size,
            pointer_size=pointer_size,
            cache_line_size=cache_line_size,
            bitfield_direction=BitfieldDirection(bitfield_direction),
            **overrides,  # type: ignore[arg-type]
        )

    def with_overrides(self, **changes: object) -> "MachineProfile":
        """Return a copy of this profile with some fields replaced."""
        return replace(self, **changes)  # type: ignore[arg-type]


BUILTIN_PROFILES: dict[str, MachineProfile] = {
    "lp64": MachineProfile(
        name="lp64",
        word_size=8,
        pointer_size=8,
        description="64-bit Unix (x86-64 SysV, AArch64)",
    ),
    "lp64-be": MachineProfile(
        name="lp64-be",
        word_size=8,
        pointer_size=8,
        bitfield_direction=BitfieldDirection.HIGH_TO_LOW,
        description="64-bit big-endian (PowerPC64, s390x)",
    ),
    "llp64": MachineProfile(
        name="llp64",
        word_size=8,
        pointer_size=8,
        long_size=4,
        long_double_size=8,
        long_double_alignment=8,
        description="64-bit Windows",
    ),
    "ilp32": MachineProfile(
        name="ilp32",
        word_size=4,
        pointer_size=4,
        long_double_size=8,
        long_double_alignment=8,
        description="32-bit with naturally aligned double (ARM EABI)",
    ),
    "i386": MachineProfile(
        name="i386",
        word_size=4,
        pointer_size=4,
        double_alignment_override=4,
        long_double_size=12,
        long_double_alignment=4,
        description="32-bit x86 SysV, double and long double aligned to 4",
    ),
}
