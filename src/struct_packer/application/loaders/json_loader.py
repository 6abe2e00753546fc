#!/usr/bin/env python3

"""Loader for JSON aggregate descriptions.

Document layout:

    {
      "profile": "lp64" | {"base": "ilp32", "bitfield_direction": "high-to-low", ...},
      "types": [
        {"name": "pid_t", "alias": "int"},
        {"name": "vec4", "size": 16, "alignment": 16, "integer": false}
      ],
      "aggregates": [
        {
          "name": "packet", "kind": "struct", "packed": false,
          "members": [
            {"name": "flags", "type": "unsigned int", "bits": 3},
            {"name": "payload", "type": "char", "array": [2, 16], "group": "data"},
            {"name": "hdr", "type": {"kind": "union", "members": [...]}}
          ],
          "disjoint": [["a.x", "b.y"]]
        }
      ]
    }

A malformed aggregate is rejected on its own; the others still load.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ...domain.models.layout import (
    Aggregate,
    AggregateKind,
    MachineProfile,
    Member,
    TypeDescriptor,
)
from ...domain.services.catalog import TypeCatalog
from ...infrastructure.logging import get_logger

logger = get_logger(__name__)

_PROFILE_FIELDS = {
    "word_size",
    "pointer_size",
    "cache_line_size",
    "bitfield_direction",
    "double_alignment_override",
    "long_size",
    "long_double_size",
    "long_double_alignment",
    "enum_size",
    "bitfield_byte_restart",
    "name",
}


class DescriptionError(ValueError):
    """The description document is malformed."""


@dataclass
class Description:
    """Everything a description document declares."""

    profile: MachineProfile | None = None
    types: list[TypeDescriptor] = field(default_factory=list)
    aliases: dict[str, str] = field(default_factory=dict)
    aggregates: list[Aggregate] = field(default_factory=list)
    rejected: list[tuple[str, DescriptionError]] = field(default_factory=list)
    # Types registered only when the profile has no type of that name
    fallback_types: list[TypeDescriptor] = field(default_factory=list)
    # Aggregates other aggregates refer to, defined but not reported on
    definitions: list[Aggregate] = field(default_factory=list)
    # Sizes reported by the compiler, when the input came from debug info
    reported_sizes: dict[str, int] = field(default_factory=dict)

    def build_catalog(self, profile: MachineProfile) -> TypeCatalog:
        """Catalog for a profile with this document's types and aggregates."""
        catalog = TypeCatalog.for_profile(profile)
        for descriptor in self.types:
            catalog.register(descriptor)
        for alias, target in self.aliases.items():
            catalog.register_alias(alias, target)
        for descriptor in self.fallback_types:
            if descriptor.name not in catalog:
                catalog.register(descriptor)
        for aggregate in self.definitions + self.aggregates:
            if aggregate.name:
                catalog.define(aggregate)
        return catalog


def parse_profile(data: Any) -> MachineProfile:
    """Parse a profile name or a custom profile object."""
    if isinstance(data, str):
        try:
            return MachineProfile.named(data)
        except ValueError as e:
            raise DescriptionError(str(e)) from None

    if not isinstance(data, dict):
        raise DescriptionError(f"Profile must be a name or an object, got {type(data).__name__}")

    options = dict(data)
    base = options.pop("base", None)
    unknown = set(options) - _PROFILE_FIELDS
    if unknown:
        raise DescriptionError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

    if base is None and ("word_size" not in options or "pointer_size" not in options):
        raise DescriptionError("Custom profile needs word_size and pointer_size")

    try:
        if base is not None:
            return MachineProfile.named(base).with_overrides(**options)
        return MachineProfile.custom(**options)
    except (TypeError, ValueError) as e:
        raise DescriptionError(f"Invalid profile: {e}") from None


def _parse_type(entry: Any) -> TypeDescriptor | tuple[str, str]:
    if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
        raise DescriptionError(f"Type entry needs a name: {entry!r}")
    name = entry["name"]
    if "alias" in entry:
        return name, str(entry["alias"])
    try:
        size = int(entry["size"])
        alignment = int(entry.get("alignment", size if size > 0 else 1))
        return TypeDescriptor.scalar(name, size, alignment, is_integer=bool(entry.get("integer", False)))
    except KeyError:
        raise DescriptionError(f"Type '{name}' needs a size or an alias") from None
    except (TypeError, ValueError) as e:
        raise DescriptionError(f"Invalid type '{name}': {e}") from None


def _parse_dims(value: Any, member_name: str) -> tuple[int, ...]:
    if value is None:
        return ()
    dims = value if isinstance(value, list) else [value]
    if not all(isinstance(d, int) and not isinstance(d, bool) for d in dims):
        raise DescriptionError(f"Array dimensions of '{member_name}' must be integers: {value!r}")
    return tuple(dims)


def _parse_member(data: Any, owner: str) -> Member:
    if not isinstance(data, dict):
        raise DescriptionError(f"Member of '{owner}' must be an object: {data!r}")
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise DescriptionError(f"Member of '{owner}' has no name: {data!r}")

    type_value = data.get("type")
    if isinstance(type_value, dict):
        type_ref: Any = parse_aggregate(type_value, default_name="")
    elif isinstance(type_value, str) and type_value.strip():
        type_ref = type_value
    else:
        raise DescriptionError(f"Member '{owner}.{name}' has no type")

    bits = data.get("bits")
    if bits is not None and (not isinstance(bits, int) or isinstance(bits, bool)):
        raise DescriptionError(f"Bit width of '{owner}.{name}' must be an integer: {bits!r}")

    group = data.get("group")
    return Member(
        name=name,
        type=type_ref,
        array_dims=_parse_dims(data.get("array"), name),
        bit_width=bits,
        group=str(group) if group else None,
    )


def parse_aggregate(data: Any, default_name: str | None = None) -> Aggregate:
    """Parse one aggregate object (top-level or inline)."""
    if not isinstance(data, dict):
        raise DescriptionError(f"Aggregate must be an object: {data!r}")

    name = data.get("name", default_name)
    if not isinstance(name, str) or (default_name is None and not name):
        raise DescriptionError(f"Aggregate has no name: {data!r}")

    kind_value = data.get("kind", "struct")
    try:
        kind = AggregateKind(str(kind_value).lower())
    except ValueError:
        raise DescriptionError(f"Aggregate '{name}' has unknown kind '{kind_value}'") from None

    members_data = data.get("members", [])
    if not isinstance(members_data, list):
        raise DescriptionError(f"Members of '{name}' must be a list")

    disjoint = data.get("disjoint", [])
    if not isinstance(disjoint, list) or not all(
        isinstance(pair, list) and len(pair) == 2 and all(isinstance(p, str) for p in pair)
        for pair in disjoint
    ):
        raise DescriptionError(f"'disjoint' of '{name}' must be a list of member path pairs")

    return Aggregate(
        name=name,
        kind=kind,
        members=tuple(_parse_member(m, name or "<anonymous>") for m in members_data),
        pack_override=bool(data.get("packed", False)),
        disjoint=tuple((a, b) for a, b in disjoint),
    )


def parse_description(document: Any) -> Description:
    """Parse a decoded description document.

    Raises:
        DescriptionError: If the document structure itself is malformed
    """
    if not isinstance(document, dict):
        raise DescriptionError("Description must be a JSON object")

    description = Description()
    if "profile" in document:
        description.profile = parse_profile(document["profile"])

    types = document.get("types", [])
    if not isinstance(types, list):
        raise DescriptionError("'types' must be a list")
    for entry in types:
        parsed = _parse_type(entry)
        if isinstance(parsed, tuple):
            description.aliases[parsed[0]] = parsed[1]
        else:
            description.types.append(parsed)

    aggregates = document.get("aggregates")
    if not isinstance(aggregates, list):
        raise DescriptionError("'aggregates' must be a list")

    for index, entry in enumerate(aggregates):
        label = entry.get("name") if isinstance(entry, dict) else None
        label = label if isinstance(label, str) and label else f"#{index}"
        try:
            description.aggregates.append(parse_aggregate(entry))
        except DescriptionError as e:
            logger.error(f"[REJECTED] {label}: {e}")
            description.rejected.append((label, e))

    logger.debug(
        f"Parsed description: {len(description.aggregates)} aggregates, "
        f"{len(description.rejected)} rejected, {len(description.types)} types"
    )
    return description


def load_description(path: Path) -> Description:
    """Read and parse a JSON description file.

    Raises:
        DescriptionError: If the file is not valid JSON or not a description
    """
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise DescriptionError(f"{path} is not valid JSON: {e}") from e

    logger.info(f"Loaded description from {path}")
    return parse_description(document)
