#!/usr/bin/env python3

"""Structured layout reports.

A LayoutReport flattens a LayoutResult (and optionally a RepackResult)
into rows that are easy to render or serialize: members and padding
interleaved in offset order, totals, and waste figures.
"""

from dataclasses import dataclass, field
from typing import Any

from ...models.layout import LayoutResult, PaddingKind
from ..packing import RepackResult


@dataclass(frozen=True)
class ReportRow:
    """One member or padding line of a report."""

    name: str | None  # None for padding
    type_name: str
    offset: int
    size: int
    unit: str  # "bytes" or "bits"
    bit_offset: int | None = None

    @property
    def is_padding(self) -> bool:
        return self.name is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "offset": self.offset,
            "size": self.size,
            "unit": self.unit,
        }
        if self.name is not None:
            data["name"] = self.name
            data["type"] = self.type_name
        if self.bit_offset is not None:
            data["bit_offset"] = self.bit_offset
        return data


@dataclass(frozen=True)
class RepackSummary:
    """Repacking part of a report."""

    order: list[str]
    original_size: int
    repacked_size: int
    savings: int
    waste_before: float
    waste_after: float
    kept_original: bool = False
    layout: "LayoutReport | None" = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "order": list(self.order),
            "original_size": self.original_size,
            "repacked_size": self.repacked_size,
            "savings": self.savings,
            "waste_before_percent": round(self.waste_before, 2),
            "waste_after_percent": round(self.waste_after, 2),
            "kept_original_order": self.kept_original,
        }
        if self.layout is not None:
            data["layout"] = self.layout.to_dict()
        return data


@dataclass(frozen=True)
class LayoutReport:
    """Report for one aggregate."""

    name: str
    kind: str
    rows: list[ReportRow]
    total_size: int
    total_alignment: int
    padding_bytes: int
    padding_bits: int
    waste_percent: float
    packed: bool = False
    data_size: int = 0
    repack: RepackSummary | None = field(default=None)

    @property
    def members(self) -> list[ReportRow]:
        return [row for row in self.rows if not row.is_padding]

    @property
    def padding(self) -> list[ReportRow]:
        return [row for row in self.rows if row.is_padding]

    @classmethod
    def from_result(cls, result: LayoutResult, repack: RepackResult | None = None) -> "LayoutReport":
        """Build a report from a layout (and optional repack) result."""
        rows: list[ReportRow] = []
        for member in result.members:
            if member.is_bitfield:
                rows.append(
                    ReportRow(member.name, member.type_name, member.offset, member.bit_width, "bits", member.bit_offset)
                )
            else:
                rows.append(ReportRow(member.name, member.type_name, member.offset, member.size, "bytes"))

        for region in result.padding:
            if region.kind is PaddingKind.BITS:
                rows.append(ReportRow(None, "", region.offset, region.length, "bits", region.bit_offset))
            else:
                rows.append(ReportRow(None, "", region.offset, region.length, "bytes"))

        # Stable: a unit's members come before the bit padding that closes it
        rows.sort(key=lambda row: (row.offset, row.is_padding and row.unit == "bytes"))

        summary = None
        if repack is not None:
            summary = RepackSummary(
                order=repack.aggregate.member_names,
                original_size=repack.original_layout.total_size,
                repacked_size=repack.repacked_layout.total_size,
                savings=repack.savings,
                waste_before=repack.waste_before,
                waste_after=repack.waste_after,
                kept_original=repack.kept_original,
                layout=cls.from_result(repack.repacked_layout) if repack.changed else None,
            )

        return cls(
            name=result.aggregate_name,
            kind=result.kind.value,
            rows=rows,
            total_size=result.total_size,
            total_alignment=result.total_alignment,
            padding_bytes=result.padding_bytes,
            padding_bits=result.padding_bits,
            waste_percent=result.waste_percent,
            packed=result.packed,
            data_size=result.data_size,
            repack=summary,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable form."""
        data: dict[str, Any] = {
            "name": self.name,
            "kind": self.kind,
            "members": [row.to_dict() for row in self.members],
            "padding": [row.to_dict() for row in self.padding],
            "total_size": self.total_size,
            "total_alignment": self.total_alignment,
            "padding_bytes": self.padding_bytes,
            "padding_bits": self.padding_bits,
            "waste_percent": round(self.waste_percent, 2),
            "packed": self.packed,
            "data_size": self.data_size,
        }
        if self.repack is not None:
            data["repack"] = self.repack.to_dict()
        return data

    def render_text(self) -> str:
        """Render a pahole-style listing."""
        lines = [f"{self.kind} {self.name or '<anonymous>'} {{"]
        for row in self.rows:
            where = f"{row.offset:>6}"
            if row.bit_offset is not None:
                where += f":{row.bit_offset:<2}"
            else:
                where += "   "
            if row.is_padding:
                lines.append(f"  {where}  /* padding: {row.size} {row.unit} */")
            else:
                lines.append(f"  {where}  {row.type_name} {row.name}; /* {row.size} {row.unit} */")
        flags = " packed" if self.packed else ""
        lines.append(
            f"}}; /* size: {self.total_size}, align: {self.total_alignment}, "
            f"padding: {self.padding_bits} bits, waste: {self.waste_percent:.1f}%, "
            f"data: {self.data_size} bytes{flags} */"
        )

        if self.repack is not None:
            lines.append(
                f"/* repacked: {self.repack.original_size} -> {self.repack.repacked_size} bytes, "
                f"saved {self.repack.savings}, waste {self.repack.waste_before:.1f}% -> "
                f"{self.repack.waste_after:.1f}% */"
            )
            lines.append(f"/* order: {', '.join(self.repack.order)} */")
        return "\n".join(lines)
