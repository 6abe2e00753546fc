"""Pytest configuration and shared fixtures."""

import json
import sys
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from struct_packer.domain.models.layout import Aggregate, AggregateKind, MachineProfile, Member
from struct_packer.domain.services.catalog import TypeCatalog
from struct_packer.domain.services.layout import LayoutEngine
from struct_packer.infrastructure.logging import LoggerSetup


@pytest.fixture(scope="session")
def lp64() -> MachineProfile:
    """64-bit profile: pointer=8, char=1/short=2/int=4/long=8."""
    return MachineProfile.named("lp64")


@pytest.fixture(scope="session")
def ilp32() -> MachineProfile:
    return MachineProfile.named("ilp32")


@pytest.fixture(scope="session")
def i386() -> MachineProfile:
    return MachineProfile.named("i386")


@pytest.fixture
def catalog(lp64: MachineProfile) -> TypeCatalog:
    """Fresh lp64 catalog with the primitive types."""
    return TypeCatalog.for_profile(lp64)


@pytest.fixture
def engine(catalog: TypeCatalog) -> LayoutEngine:
    return LayoutEngine(catalog)


@pytest.fixture
def make_struct() -> Callable[..., Aggregate]:
    """
    Build a struct from (name, type) pairs.

    Example: make_struct("foo", ("c", "char"), ("p", "char*"))
    """

    def _make(name: str, *members: tuple[str, str], **kwargs: object) -> Aggregate:
        return Aggregate(
            name=name,
            kind=kwargs.pop("kind", AggregateKind.STRUCT),  # type: ignore[arg-type]
            members=tuple(Member(member_name, type_name) for member_name, type_name in members),
            **kwargs,  # type: ignore[arg-type]
        )

    return _make


@pytest.fixture
def description_file(tmp_path: Path) -> Callable[[dict], Path]:
    """Write a description document to a temporary JSON file."""

    def _write(document: dict, name: str = "structs.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def clean_logging() -> Generator[None, None, None]:
    """Let a test initialize logging and restore a clean state afterwards."""
    LoggerSetup.reset()
    yield
    LoggerSetup.reset()
