#!/usr/bin/env python3

"""ELF target detection.

Picks the machine profile matching an ELF file based on:
- ELF class (32-bit vs 64-bit)
- Endianness (little-endian vs big-endian)
- Machine architecture (i386 needs its double-alignment exception)
"""

from pathlib import Path

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from ..domain.models.layout import BitfieldDirection, MachineProfile
from .logging import get_logger

logger = get_logger(__name__)

ELF_MAGIC = b"\x7fELF"


class PlatformDetector:
    """Detects the machine profile of an ELF file."""

    # Machine type strings (as returned by pyelftools)
    MACHINE_I386_STR = "EM_386"
    MACHINE_X86_64_STR = "EM_X86_64"

    @staticmethod
    def is_elf(path: str | Path) -> bool:
        """Check the ELF magic without parsing the file."""
        try:
            with open(path, "rb") as f:
                return f.read(4) == ELF_MAGIC
        except OSError:
            return False

    @staticmethod
    def detect(elf_path: str | Path) -> MachineProfile | None:
        """Detect the machine profile from an ELF file.

        Args:
            elf_path: Path to the ELF file

        Returns:
            Matching built-in profile, or None if the file cannot be read
        """
        try:
            with open(elf_path, "rb") as f:
                elf = ELFFile(f)  # type: ignore[no-untyped-call]
                return PlatformDetector.profile_for(
                    elf.elfclass, elf.little_endian, elf.header["e_machine"]
                )
        except (OSError, ELFError) as e:
            logger.error(f"Failed to detect platform from {elf_path}: {e}")
            return None

    @staticmethod
    def profile_for(elfclass: int, little_endian: bool, machine: str) -> MachineProfile:
        """Map ELF header characteristics to a machine profile."""
        logger.debug(
            f"ELF characteristics: class={elfclass}, little_endian={little_endian}, "
            f"machine={machine}"
        )

        if elfclass == 64:
            profile = MachineProfile.named("lp64" if little_endian else "lp64-be")
        elif machine == PlatformDetector.MACHINE_I386_STR:
            profile = MachineProfile.named("i386")
        else:
            profile = MachineProfile.named("ilp32")
            if not little_endian:
                profile = profile.with_overrides(
                    name="ilp32-be", bitfield_direction=BitfieldDirection.HIGH_TO_LOW
                )

        logger.info(f"Detected {machine} ELF{elfclass}, using profile {profile.name}")
        return profile
