"""Toprank – Show the recorded performance of a strategy version.

Prints summary metrics derived from ``strategy_performance_weekly`` and
the enter/exit actions of the latest rebalance, and optionally exports
the series as CSV.

    python -m toprank.scripts.show_performance
    python -m toprank.scripts.show_performance --slug ai-top20-nasdaq100-v1-0-0-m2-0 --csv perf.csv
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from toprank.core.config import get_config
from toprank.core.database import DatabaseManager
from toprank.core.logging import get_logger, setup_logging
from toprank.performance.metrics import CurveSummary, points_frame, summarize
from toprank.performance.storage import PerformanceStorage
from toprank.portfolio.storage import PortfolioStorage
from toprank.strategy.config import default_strategy_config
from toprank.strategy.storage import StrategyStorage


logger = get_logger(__name__)


def _fmt_pct(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:+.2%}"


def _curve_line(label: str, curve: CurveSummary) -> str:
    return (
        f"  {label:<28} total={_fmt_pct(curve.total_return)} "
        f"cagr={_fmt_pct(curve.cagr)} max_dd={_fmt_pct(curve.max_drawdown)}"
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the show_performance CLI."""

    parser = argparse.ArgumentParser(description="Show summary metrics for a strategy's performance series.")
    parser.add_argument("--slug", type=str, default=None, help="Strategy slug (default: current version)")
    parser.add_argument("--csv", type=Path, default=None, help="Optional path to export the weekly series")

    args = parser.parse_args(argv)

    config = get_config()
    setup_logging(config)
    slug = args.slug or default_strategy_config(config).slug

    db_manager = DatabaseManager(config)
    try:
        row = StrategyStorage(db_manager).load_strategy_row(slug)
        if row is None:
            print(f"No strategy persisted under slug {slug!r}", file=sys.stderr)
            return 1
        strategy_id = str(row["strategy_id"])
        points = PerformanceStorage(db_manager).load_series(strategy_id)
        actions = (
            PortfolioStorage(db_manager).load_actions(strategy_id, points[-1].run_date) if points else []
        )
    finally:
        db_manager.close_all()

    summary = summarize(points)
    if summary is None:
        print(f"No performance recorded yet for {slug}")
        return 0

    print(f"Strategy {slug}: {summary.n_points} weekly point(s)")
    print(_curve_line("Strategy", summary.strategy))
    for key, curve in summary.benchmarks.items():
        print(_curve_line(key.upper(), curve))
    print(f"  Sharpe (weekly, annualised): {'n/a' if summary.sharpe is None else f'{summary.sharpe:.2f}'}")
    print(f"  Months beating QQQ:          {_fmt_pct(summary.pct_months_beating_benchmark)}")

    print(f"Latest rebalance {points[-1].run_date}: {len(actions)} action(s)")
    for action in actions:
        print(f"  {action.action_type.value:<10} {action.symbol:<8} {action.label}")

    if args.csv is not None:
        points_frame(points).to_csv(args.csv)
        logger.info("show_performance: wrote %d rows to %s", len(points), args.csv)

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
