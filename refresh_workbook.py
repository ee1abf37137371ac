#!/usr/bin/env python3
"""
Refresh cube function results for a workbook file.

Usage:
    python refresh_workbook.py BOOK.xlsx               # Refresh missing results in the workbook
    python refresh_workbook.py BOOK.xlsx Sheet1        # Refresh one sheet
    python refresh_workbook.py BOOK.xlsx Sheet1!A1:D20 # Refresh one range
    python refresh_workbook.py BOOK.xlsx --force       # Re-query every cube cell
    python refresh_workbook.py BOOK.xlsx [TARGET] --clear  # Clear the cache, then force-refresh TARGET (default: workbook)
    python refresh_workbook.py BOOK.xlsx --dry-run     # Show the batches, query nothing
    python refresh_workbook.py BOOK.xlsx --save        # Flag the file for full recalculation on open
    python refresh_workbook.py --show-query FUNC ARG.. # Print the single-call query for FUNC(ARG, ...)

Options:
    -v, --verbose   Show logger names on the console

Environment:
    CUBE_DB_PATH, CUBE_FUNCTIONS_CONFIG, CUBE_ACCESS_TOKEN, CUBE_API_BASE_URL,
    CUBE_MAX_QUERY_LENGTH, CUBE_MIN_POOL_SIZE, CUBE_LOG_LEVEL, CUBE_LOG_DIR
"""

import sys
from pathlib import Path

# Add project to path
sys.path.insert(0, str(Path(__file__).parent))

from app.container import Container
from cube_client import QueryExecutionError
from refresh.batches import build_batches
from settings.logging import setup_logging
from web.api.errors import ValidationError, validate_scope
from web.api.refresh import clear_cache_and_refresh, refresh_range, refresh_sheet, refresh_workbook
from workbook import OfflineHost, OpenpyxlFormulaSource

logger = setup_logging(verbose="-v" in sys.argv or "--verbose" in sys.argv)

FLAGS = ("--force", "-f", "--clear", "--dry-run", "--save", "--show-query", "--verbose", "-v")


def show_query(container: Container, args: list[str]) -> int:
    """Print the standalone query for one call."""
    function = container.registry.get(args[0])
    if function is None:
        print(f"Unknown function: {args[0]}")
        return 1
    print(container.query_builder.build_calculate_query(function, args[1:]))
    return 0


def dry_run(container: Container, source: OpenpyxlFormulaSource, target: str | None, force: bool) -> int:
    """Collect, pool and build without querying."""
    scope = _scope(target)
    items, skipped = container.collector(source).collect(scope, force)
    analysis = container.pool_analyzer.analyze(items)
    batches, unrenderable = build_batches(container.query_builder, analysis)

    print("\n" + "=" * 60)
    print(f"DRY RUN {scope.describe().upper()}")
    print("=" * 60)
    print(f"  Cells: {len(items)} ({skipped + unrenderable} skipped)")
    print(f"  Pools: {len(analysis.pools)} ({analysis.pooled_count} cells)")
    print(f"  Orphans: {len(analysis.orphans)}")
    for index, batch in enumerate(batches):
        print(f"\n-- Batch {index}: {len(batch.keys)} keys, {len(batch.text):,} chars, dataset {batch.dataset_id}")
        print(batch.text)
    print("=" * 60 + "\n")
    return 0


def _scope(target: str | None):
    if target is None:
        return validate_scope()
    if "!" in target:
        return validate_scope(range_ref=target)
    return validate_scope(sheet=target)


def main():
    args = sys.argv[1:]
    force = "--force" in args or "-f" in args
    clear = "--clear" in args
    save = "--save" in args
    positional = [a for a in args if a not in FLAGS]

    if "--show-query" in args:
        if not positional:
            print(__doc__)
            sys.exit(1)
        container = Container()
        try:
            sys.exit(show_query(container, positional))
        finally:
            container.close()

    if not positional or not positional[0].lower().endswith((".xlsx", ".xlsm")):
        print(__doc__)
        sys.exit(1)

    path = Path(positional[0])
    target = positional[1] if len(positional) > 1 else None
    if not path.exists():
        logger.error("Workbook not found: {}", path)
        sys.exit(1)

    container = Container()
    try:
        source = OpenpyxlFormulaSource(path)

        if "--dry-run" in args:
            sys.exit(dry_run(container, source, target, force))

        host = OfflineHost(source, save=save)
        if clear:
            logger.info("Clearing cache before refresh")
            if target is None:
                response = clear_cache_and_refresh(container, source, host)
            elif "!" in target:
                response = clear_cache_and_refresh(container, source, host, range_ref=target)
            else:
                response = clear_cache_and_refresh(container, source, host, sheet=target)
        elif target is None:
            response = refresh_workbook(container, source, host, force=force)
        elif "!" in target:
            response = refresh_range(container, source, host, target, force=force)
        else:
            response = refresh_sheet(container, source, host, target, force=force)
    except (ValidationError, ValueError) as e:
        logger.error("{}", e)
        sys.exit(1)
    except QueryExecutionError as e:
        logger.error("Query service unavailable: {}", e.message)
        sys.exit(1)
    finally:
        container.close()

    status = "OK" if response.ok else f"{len(response.failed_batches)} FAILED BATCHES"
    logger.info(
        "Refresh {}: {} cells, {} pools, {} orphans, {} batches, {} stored",
        status,
        response.collected,
        response.pools,
        response.orphans,
        response.batches,
        response.stored,
    )
    for failed in response.failed_batches:
        logger.warning("Batch {} ({} keys): {}", failed.batch, failed.keys, failed.error)
    sys.exit(0 if response.ok else 2)


if __name__ == "__main__":
    main()
