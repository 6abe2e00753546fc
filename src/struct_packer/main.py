"""Main entry point for the struct packer."""

import argparse
import json
import sys
from pathlib import Path
from typing import NoReturn

from .application import AggregateOutcome, BatchOptions, BatchProcessor
from .application.loaders import (
    Description,
    DescriptionError,
    DwarfLoadError,
    load_description,
    load_elf_description,
)
from .config import OUTPUT_FORMATS, Config
from .domain.models.layout import MachineProfile
from .domain.services.packing import PackingConstraints
from .infrastructure.config import get_config
from .infrastructure.elf_platform import PlatformDetector
from .infrastructure.logging import LoggerSetup, get_logger, log_timing


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Compute C struct/union layouts and minimal-padding member orders",
        epilog="""
Examples:
  # Lay out every aggregate of a JSON description (64-bit Unix profile)
  python main.py structs.json

  # Same structs on 32-bit x86, with repacking suggestions
  python main.py structs.json --profile i386 --repack

  # Keep tagged groups together and prefer cache-line-friendly placement
  python main.py structs.json --repack --preserve-groups --cache-line-hint

  # Re-lay out structs compiled into an ELF file (profile detected from the ELF)
  python main.py build/app.elf --symbols packet,header --repack

  # JSON reports, one file per aggregate
  python main.py structs.json --format json -o reports/
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "input",
        type=Path,
        nargs="?",
        help="JSON description or ELF file with DWARF info (optional if using .env)",
    )
    parser.add_argument(
        "-p",
        "--profile",
        type=str,
        help="Machine profile: lp64, lp64-be, llp64, ilp32, i386 "
        "(default: from the input, else LAYOUT_DEFAULT_PROFILE)",
    )
    parser.add_argument("--repack", action="store_true", help="Compute minimal-padding order")
    parser.add_argument(
        "--preserve-groups",
        action="store_true",
        help="Keep members sharing a group tag contiguous (implies --repack)",
    )
    parser.add_argument(
        "--cache-line-hint",
        action="store_true",
        help="Prefer keeping groups within one cache line (implies --repack)",
    )
    parser.add_argument(
        "--check-unions",
        action="store_true",
        help="Verify asserted-disjoint member pairs (best effort)",
    )
    parser.add_argument(
        "--symbols",
        type=str,
        metavar="NAMES",
        help="Comma-separated aggregates to process (default: all)",
    )
    parser.add_argument("--format", choices=OUTPUT_FORMATS, help="Report format (default: text)")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write one report file per aggregate to this directory (default: stdout)",
    )
    parser.add_argument("--workers", type=int, help="Worker processes for large batches")
    parser.add_argument("--log-dir", type=Path, help="Also write a debug log file here")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output with debug logs",
    )
    return parser.parse_args(argv)


def load_input(config: Config, names: set[str] | None) -> tuple[Description, MachineProfile]:
    """Load the description and pick the machine profile.

    Raises:
        DescriptionError, DwarfLoadError: If the input cannot be used
    """
    logger = get_logger(__name__)
    assert config.input_path is not None

    detected = None
    if PlatformDetector.is_elf(config.input_path):
        description = load_elf_description(config.input_path, names)
        detected = PlatformDetector.detect(config.input_path)
    else:
        description = load_description(config.input_path)
        detected = description.profile
        if names is not None:
            known = {aggregate.name for aggregate in description.aggregates}
            for missing in sorted(names - known):
                logger.warning(f"Aggregate {missing} not found in {config.input_path}")
            description.definitions.extend(a for a in description.aggregates if a.name not in names)
            description.aggregates = [a for a in description.aggregates if a.name in names]

    if config.profile_name:
        profile = MachineProfile.named(config.profile_name)
    elif detected is not None:
        profile = detected
    else:
        profile = MachineProfile.named(get_config()["DEFAULT_PROFILE"])

    logger.info(f"Using machine profile {profile.name}")
    return description, profile


def write_reports(outcomes: list[AggregateOutcome], config: Config) -> None:
    """Write successful reports to files or stdout."""
    logger = get_logger(__name__)
    as_json = config.output_format == "json"

    if config.output_dir is None:
        if as_json:
            document = [
                outcome.report.to_dict()
                if outcome.report is not None
                else {"name": outcome.name, "error": outcome.error_kind, "message": str(outcome.error), "member": outcome.error_member}
                for outcome in outcomes
            ]
            print(json.dumps(document, indent=2))
        else:
            texts = [o.report.render_text() for o in outcomes if o.report is not None]
            print("\n\n".join(texts))
        return

    config.ensure_output_dir()
    for outcome in outcomes:
        if outcome.report is None:
            continue
        stem = outcome.name.replace("::", "_").replace("<", "_").replace(">", "_") or "anonymous"
        if as_json:
            output_file = config.output_dir / f"{stem}.json"
            output_file.write_text(json.dumps(outcome.report.to_dict(), indent=2), encoding="utf-8")
        else:
            output_file = config.output_dir / f"{stem}.txt"
            output_file.write_text(outcome.report.render_text() + "\n", encoding="utf-8")
        logger.info(f"[SUCCESS] Generated: {output_file}")


def compare_reported_sizes(outcomes: list[AggregateOutcome], description: Description) -> None:
    """Warn where the computed size disagrees with the compiler's."""
    logger = get_logger(__name__)
    for outcome in outcomes:
        reported = description.reported_sizes.get(outcome.name)
        if outcome.report is None or reported is None:
            continue
        if outcome.report.total_size != reported:
            logger.warning(
                f"{outcome.name}: computed size {outcome.report.total_size} differs from "
                f"compiler-reported {reported} (packing attributes or C++ layout rules?)"
            )


@log_timing
def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for layout computation."""
    args = parse_args(argv)

    try:
        config = Config.from_args(
            input_path=args.input,
            output_dir=args.output,
            profile_name=args.profile,
            verbose=args.verbose,
            workers=args.workers,
            repack=args.repack,
            preserve_groups=args.preserve_groups,
            cache_line_hint=args.cache_line_hint,
            check_unions=args.check_unions,
            output_format=args.format,
        )
        if args.log_dir is not None:
            config.log_dir = args.log_dir
        config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    LoggerSetup.initialize(config.log_dir, verbose=config.verbose)
    logger = get_logger(__name__)
    logger.debug(f"Input: {config.input_path}")

    names = None
    if args.symbols:
        names = {s.strip() for s in args.symbols.split(",") if s.strip()}

    try:
        description, profile = load_input(config, names)
    except (DescriptionError, DwarfLoadError, ValueError, OSError) as e:
        logger.error(f"Cannot load {config.input_path}: {e}")
        sys.exit(1)

    if not description.aggregates and not description.rejected:
        logger.error("No aggregates to process")
        sys.exit(1)

    overrides: dict[str, object] = {
        "repack": config.repack,
        "constraints": PackingConstraints(
            preserve_groups=config.preserve_groups,
            cache_line_hint=config.cache_line_hint,
        ),
    }
    if config.check_unions:
        overrides["check_unions"] = True
    if config.workers is not None:
        overrides["workers"] = config.workers
    options = BatchOptions.from_config(**overrides)

    catalog = description.build_catalog(profile)
    outcomes = BatchProcessor(catalog, profile, options).process(description.aggregates)
    outcomes += [AggregateOutcome(name=name, error=error) for name, error in description.rejected]

    compare_reported_sizes(outcomes, description)
    write_reports(outcomes, config)

    failed = [o for o in outcomes if not o.ok]
    logger.info("=" * 70)
    logger.info("LAYOUT SUMMARY")
    logger.info("=" * 70)
    logger.info(f"Total aggregates: {len(outcomes)}")
    logger.info(f"Laid out: {len(outcomes) - len(failed)}")
    logger.info(f"Failed: {len(failed)}")
    if options.repack:
        saved = sum(o.report.repack.savings for o in outcomes if o.report and o.report.repack)
        logger.info(f"Bytes saved by repacking: {saved}")

    if failed:
        logger.info("Failed aggregates:")
        for outcome in failed:
            logger.info(f"  - {outcome.name}: {outcome.error_kind}: {outcome.error}")

    sys.exit(0 if not failed else 1)


if __name__ == "__main__":
    main()
