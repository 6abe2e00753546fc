#!/usr/bin/env python3

"""Member reordering to minimize padding.

Sorting members by descending alignment removes all interior alignment
padding: every size is a multiple of its own alignment, so the cursor
after a run of stricter-aligned members is always validly aligned for the
next, looser one. Only the tail padding up to the stride address remains.

Groups (members sharing a non-empty group tag) can be kept together; a
group then moves as one unit with the maximum alignment of its members,
and its internal order never changes.
"""

from dataclasses import dataclass, field

from ....infrastructure.logging import get_logger, log_timing
from ...models.layout import Aggregate, LayoutResult, MachineProfile, Member
from ..catalog import TypeCatalog
from ..layout import LayoutEngine

logger = get_logger(__name__)


@dataclass(frozen=True)
class PackingConstraints:
    """Constraints on the reordering."""

    preserve_groups: bool = False
    cache_line_hint: bool = False


@dataclass(frozen=True)
class RepackResult:
    """Outcome of a repack: the new aggregate and the layouts compared."""

    original: Aggregate
    aggregate: Aggregate
    original_layout: LayoutResult
    repacked_layout: LayoutResult
    savings: int
    # Set when the sorted order came out larger and the input order was kept
    kept_original: bool = False

    @property
    def changed(self) -> bool:
        return self.original.member_names != self.aggregate.member_names

    @property
    def waste_before(self) -> float:
        return self.original_layout.waste_percent

    @property
    def waste_after(self) -> float:
        return self.repacked_layout.waste_percent


@dataclass
class _Unit:
    """Members that move together (one member, or a whole group)."""

    members: list[Member]
    alignment: int
    position: int
    cluster: int = field(default=0)

    @property
    def group(self) -> str | None:
        return self.members[0].group


class PackingOptimizer:
    """Reorders aggregate members for minimal size."""

    def __init__(self, engine: LayoutEngine | None = None):
        """
        Args:
            engine: Layout engine used to evaluate orderings
        """
        self.engine = engine or LayoutEngine()

    @log_timing
    def repack(
        self,
        aggregate: Aggregate,
        profile: MachineProfile,
        constraints: PackingConstraints | None = None,
    ) -> RepackResult:
        """Compute a minimal-padding ordering of an aggregate's members.

        The input aggregate is never modified. Savings are never negative:
        if a candidate ordering came out larger, the original order is kept.

        Raises:
            LayoutError: If the aggregate cannot be laid out at all
        """
        constraints = constraints or PackingConstraints()
        original_layout = self.engine.compute_layout(aggregate, profile)

        if aggregate.is_union or aggregate.pack_override:
            # Member order cannot change the size of either
            logger.debug(f"{aggregate.name}: order-independent layout, not reordering")
            return RepackResult(aggregate, aggregate, original_layout, original_layout, 0)

        kept_original = False
        units = self._build_units(aggregate, profile, constraints)
        units.sort(key=lambda unit: (-unit.alignment, unit.cluster, unit.position))
        candidate = aggregate.with_members(m for unit in units for m in unit.members)
        candidate_layout = self.engine.compute_layout(candidate, profile)

        if constraints.cache_line_hint and constraints.preserve_groups:
            candidate, candidate_layout = self._reduce_straddling(
                units, candidate, candidate_layout, profile
            )

        if candidate_layout.total_size > original_layout.total_size:
            message = (
                f"{aggregate.name}: reordering would grow size "
                f"{original_layout.total_size} -> {candidate_layout.total_size}; keeping original order"
            )
            if constraints.preserve_groups and any(m.has_group for m in aggregate.members):
                logger.warning(f"{message}, groups are left as declared")
            else:
                logger.debug(message)
            candidate, candidate_layout = aggregate, original_layout
            kept_original = True

        savings = original_layout.total_size - candidate_layout.total_size
        logger.debug(
            f"Repacked {aggregate.name}: {original_layout.total_size} -> "
            f"{candidate_layout.total_size} bytes (saved {savings})"
        )
        return RepackResult(
            aggregate, candidate, original_layout, candidate_layout, savings, kept_original
        )

    def _build_units(
        self,
        aggregate: Aggregate,
        profile: MachineProfile,
        constraints: PackingConstraints,
    ) -> list[_Unit]:
        units: list[_Unit] = []
        group_units: dict[str, _Unit] = {}

        for position, member in enumerate(aggregate.members):
            alignment = self.engine.resolve_member_type(member, profile).alignment

            if constraints.preserve_groups and member.has_group:
                unit = group_units.get(member.group)
                if unit is None:
                    unit = _Unit(members=[], alignment=alignment, position=position)
                    group_units[member.group] = unit
                    units.append(unit)
                unit.members.append(member)
                unit.alignment = max(unit.alignment, alignment)
                continue

            units.append(_Unit(members=[member], alignment=alignment, position=position))

        # With the cache-line hint, equal-alignment members of one group sort
        # next to each other, at the spot of the group's first member of that
        # alignment. Keyed per alignment so a sorted order sorts to itself.
        group_leaders: dict[tuple[str, int], int] = {}
        for unit in units:
            if constraints.cache_line_hint and unit.group:
                unit.cluster = group_leaders.setdefault((unit.group, unit.alignment), unit.position)
            else:
                unit.cluster = unit.position
        return units

    def _reduce_straddling(
        self,
        units: list[_Unit],
        candidate: Aggregate,
        layout: LayoutResult,
        profile: MachineProfile,
    ) -> tuple[Aggregate, LayoutResult]:
        """Swap equal-alignment neighbors while that reduces cache-line straddling."""
        line = profile.cache_line_size
        best = count_straddling_groups(candidate, layout, line)

        for _ in range(len(units)):
            if best == 0:
                break
            improved = False
            for i in range(len(units) - 1):
                if units[i].alignment != units[i + 1].alignment:
                    continue
                if not (units[i].group or units[i + 1].group):
                    continue
                units[i], units[i + 1] = units[i + 1], units[i]
                trial = candidate.with_members(m for unit in units for m in unit.members)
                trial_layout = self.engine.compute_layout(trial, profile)
                straddling = count_straddling_groups(trial, trial_layout, line)
                if trial_layout.total_size <= layout.total_size and straddling < best:
                    candidate, layout, best = trial, trial_layout, straddling
                    improved = True
                else:
                    units[i], units[i + 1] = units[i + 1], units[i]
            if not improved:
                break
        return candidate, layout


def count_straddling_groups(aggregate: Aggregate, layout: LayoutResult, cache_line_size: int) -> int:
    """Number of groups whose members span more than one cache line."""
    spans: dict[str, tuple[int, int]] = {}
    for member in aggregate.members:
        placement = layout.get_member(member.name)
        if not member.has_group or placement is None or placement.size == 0:
            continue
        start, end = spans.get(member.group, (placement.offset, placement.end))
        spans[member.group] = (min(start, placement.offset), max(end, placement.end))

    return sum(
        1
        for start, end in spans.values()
        if start // cache_line_size != (end - 1) // cache_line_size
    )


def repack(
    aggregate: Aggregate,
    profile: MachineProfile,
    constraints: PackingConstraints | None = None,
    catalog: TypeCatalog | None = None,
) -> RepackResult:
    """Convenience wrapper around PackingOptimizer.repack()."""
    return PackingOptimizer(LayoutEngine(catalog)).repack(aggregate, profile, constraints)
