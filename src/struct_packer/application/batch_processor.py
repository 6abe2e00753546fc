#!/usr/bin/env python3

"""Batch layout processing.

Each aggregate is laid out (and optionally checked and repacked) on its
own. A failure is recorded against that aggregate and the batch carries
on. Aggregates are independent, so with more than one worker they are
spread over a process pool; results always come back in input order.
"""

from dataclasses import dataclass, field
from multiprocessing import Pool

from ..domain.models.layout import Aggregate, LayoutError, MachineProfile
from ..domain.services.catalog import TypeCatalog
from ..domain.services.layout import LayoutEngine, check_union_overlap
from ..domain.services.packing import PackingConstraints, PackingOptimizer
from ..domain.services.report import LayoutReport
from ..infrastructure.config import get_config
from ..infrastructure.logging import ProgressTracker, get_logger, log_timing

logger = get_logger(__name__)


@dataclass(frozen=True)
class BatchOptions:
    """What to do with each aggregate."""

    repack: bool = False
    constraints: PackingConstraints = field(default_factory=PackingConstraints)
    check_unions: bool = False
    workers: int = 1
    max_depth: int = 64
    waste_warning_percent: float = 25.0

    @classmethod
    def from_config(cls, **overrides: object) -> "BatchOptions":
        """Defaults from the LAYOUT_* engine configuration."""
        config = get_config()
        values: dict[str, object] = {
            "check_unions": config["CHECK_UNIONS"],
            "workers": config["BATCH_WORKERS"],
            "max_depth": config["MAX_NESTING_DEPTH"],
            "waste_warning_percent": config["WASTE_WARNING_PERCENT"],
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]


@dataclass(frozen=True)
class AggregateOutcome:
    """Result for one aggregate: a report or the error that stopped it."""

    name: str
    report: LayoutReport | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> str | None:
        return type(self.error).__name__ if self.error is not None else None

    @property
    def error_member(self) -> str | None:
        return getattr(self.error, "member", None)


def process_aggregate(
    aggregate: Aggregate,
    catalog: TypeCatalog,
    profile: MachineProfile,
    options: BatchOptions,
) -> AggregateOutcome:
    """Lay out one aggregate, turning layout errors into an outcome."""
    name = aggregate.name or "<anonymous>"
    engine = LayoutEngine(catalog, max_depth=options.max_depth)

    try:
        layout = engine.compute_layout(aggregate, profile)
        if options.check_unions and aggregate.disjoint:
            check_union_overlap(aggregate, layout, engine, profile)

        repacked = None
        if options.repack:
            repacked = PackingOptimizer(engine).repack(aggregate, profile, options.constraints)
    except LayoutError as e:
        logger.error(f"[FAILED] {name}: {e}")
        return AggregateOutcome(name=name, error=e)

    if layout.waste_percent > options.waste_warning_percent:
        logger.warning(
            f"{name} wastes {layout.waste_percent:.1f}% of its {layout.total_size} bytes"
        )
    return AggregateOutcome(name=name, report=LayoutReport.from_result(layout, repacked))


def _process_worker(args: tuple) -> AggregateOutcome:
    """Worker function for parallel batch processing.

    Args:
        args: Tuple of (aggregate, catalog, profile, options)
    """
    aggregate, catalog, profile, options = args
    return process_aggregate(aggregate, catalog, profile, options)


class BatchProcessor:
    """Processes many aggregates against one catalog and profile."""

    def __init__(
        self,
        catalog: TypeCatalog,
        profile: MachineProfile,
        options: BatchOptions | None = None,
    ):
        """
        Args:
            catalog: Catalog with every type the aggregates refer to
            profile: Target machine profile
            options: Processing options
        """
        if catalog.profile != profile:
            raise ValueError(
                f"Catalog was built for profile '{catalog.profile.name}', not '{profile.name}'"
            )
        self.catalog = catalog
        self.profile = profile
        self.options = options or BatchOptions()

    @log_timing
    def process(self, aggregates: list[Aggregate]) -> list[AggregateOutcome]:
        """Process a batch; one outcome per aggregate, in input order."""
        tracker = ProgressTracker(logger)
        if not aggregates:
            return []

        workers = min(self.options.workers, len(aggregates))
        with tracker.track_operation(f"layout of {len(aggregates)} aggregates"):
            if workers > 1:
                logger.info(f"Processing {len(aggregates)} aggregates using {workers} workers")
                worker_args = [
                    (aggregate, self.catalog, self.profile, self.options)
                    for aggregate in aggregates
                ]
                with Pool(workers) as pool:
                    outcomes = pool.map(_process_worker, worker_args)
            else:
                outcomes = [
                    process_aggregate(aggregate, self.catalog, self.profile, self.options)
                    for aggregate in aggregates
                ]

        for outcome in outcomes:
            tracker.record(outcome.name, outcome.ok)
        tracker.report_summary()
        return outcomes
