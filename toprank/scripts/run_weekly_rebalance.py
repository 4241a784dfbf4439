"""Toprank – Run the weekly scoring-to-portfolio rebalance.

Usage examples
--------------

Run for the rebalance weekday on or before today (UTC):

    python -m toprank.scripts.run_weekly_rebalance

Re-run a specific date (every stage is idempotent):

    python -m toprank.scripts.run_weekly_rebalance --run-date 2025-06-02

Price holdings and benchmarks through EODHD instead of ``prices_daily``:

    python -m toprank.scripts.run_weekly_rebalance --price-source eodhd

The process exits with status 1 when the pipeline cannot be wired (for
example a missing API key) or the run stops on a fatal error.
"""

from __future__ import annotations

import argparse
import sys
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from toprank.core.config import get_config, load_config
from toprank.core.database import DatabaseManager
from toprank.core.errors import ToprankError
from toprank.core.logging import get_logger, setup_logging
from toprank.core.time import resolve_rebalance_date, utc_today
from toprank.pipeline.orchestrator import build_rebalance_pipeline


logger = get_logger(__name__)


def _parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD date string for CLI arguments."""

    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the run_weekly_rebalance CLI."""

    parser = argparse.ArgumentParser(description="Run the weekly Top-N rebalance for the current strategy version.")
    parser.add_argument(
        "--run-date",
        dest="run_date",
        type=_parse_date,
        default=None,
        help="Rebalance date (YYYY-MM-DD). Defaults to the configured rebalance weekday on or before today (UTC).",
    )
    parser.add_argument(
        "--price-source",
        choices=["database", "eodhd"],
        default="database",
        help="Where close prices come from (default: database)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Optional .env file to load before reading configuration",
    )

    args = parser.parse_args(argv)

    config = load_config(args.env_file) if args.env_file is not None else get_config()
    setup_logging(config)

    run_date = args.run_date or resolve_rebalance_date(utc_today(), config.rebalance_day_of_week)
    logger.info("run_weekly_rebalance: run_date=%s price_source=%s", run_date, args.price_source)

    db_manager = DatabaseManager(config)
    try:
        try:
            pipeline = build_rebalance_pipeline(config, db_manager, price_source=args.price_source)
        except ToprankError as exc:
            logger.error("run_weekly_rebalance: cannot wire the pipeline: %s", exc)
            print(f"Cannot start run: {exc}", file=sys.stderr)
            return 1
        result = pipeline.run(run_date)
    finally:
        db_manager.close_all()

    if result.holdings:
        print(f"Holdings for {result.run_date} ({result.strategy_slug}):")
        for holding in result.holdings:
            print(f"  {holding.rank_position:>3}  {holding.symbol:<8} weight={holding.target_weight:.4f}")
    if result.performance is not None:
        p = result.performance
        print(
            f"Performance seq={p.sequence_number} turnover={p.turnover:.4f} "
            f"net={p.net_return:+.4%} equity={p.strategy_equity:,.2f}"
        )
    if result.issues:
        print(f"{len(result.issues)} issue(s) recorded")

    if not result.ok:
        print(f"Run failed in stage {result.failed_stage}: {result.error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
