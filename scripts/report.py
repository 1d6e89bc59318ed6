"""CLI for the exit report: closed recommendations, P&L totals and win rate.

Usage:
    python scripts/report.py --kind intraday
    python scripts/report.py --kind intraday --status profit --date 2026-10-19
    python scripts/report.py --kind swing --search reliance --json
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from datetime import date

from stockpicker.database import engine
from stockpicker.services.domain import RecommendationError, RecommendationKind
from stockpicker.services.persistence import SqlRecommendationRepository
from stockpicker.services.presentation import (
    RecommendationView,
    ReportSummary,
    StatusFilter,
    build_views,
    exit_report,
    format_currency,
    format_percent,
    status_label,
)
from stockpicker.services.record_store import RecommendationStore


def format_report(kind: RecommendationKind, rows: list[RecommendationView], summary: ReportSummary) -> str:
    """Format the exit report as a readable console table."""
    lines = []
    sep = "=" * 78
    percent_basis = kind is RecommendationKind.SWING

    lines.append(sep)
    lines.append(f"  StockPicker {kind.value.capitalize()} Report")
    lines.append(sep)
    lines.append(f"  {'Date':<12}{'Symbol':<14}{'Side':<6}{'Entry':>12}  {'Status':<24}{'P&L':>14}")
    lines.append("-" * 78)

    for view in rows:
        rec, val = view.record, view.valuation
        pnl = (
            format_percent(val.profit_loss_percent)
            if percent_basis
            else format_currency(val.profit_loss)
        )
        lines.append(
            f"  {rec.created_at.date().isoformat():<12}{rec.symbol[:13]:<14}{rec.side.value:<6}"
            f"{rec.entry_price:>12,.2f}  {status_label(view)[:23]:<24}{pnl:>14}"
        )

    lines.append("-" * 78)
    if percent_basis:
        lines.append(f"  Total Profit:     {format_percent(summary.total_profit):>14}")
        lines.append(f"  Total Loss:       {format_percent(-summary.total_loss):>14}")
        lines.append(f"  Net P&L:          {format_percent(summary.net_profit_loss):>14}")
    else:
        lines.append(f"  Total Profit:     {format_currency(summary.total_profit):>14}")
        lines.append(f"  Total Loss:       {format_currency(summary.total_loss):>14}")
        lines.append(f"  Net P&L:          {format_currency(summary.net_profit_loss):>14}")
    lines.append(
        f"  Win Rate:         {summary.win_rate:>13.1f}%  "
        f"({summary.successful_trades}/{summary.total_trades} trades, "
        f"{summary.not_executed_count} not executed)"
    )
    lines.append(sep)
    return "\n".join(lines)


async def run_report(args: argparse.Namespace) -> None:
    kind = RecommendationKind(args.kind)
    store = RecommendationStore(kind, SqlRecommendationRepository(kind))

    try:
        await store.load()
    except RecommendationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        await engine.dispose()

    rows, summary = exit_report(
        build_views(store.list_records()),
        status=StatusFilter(args.status),
        on_date=args.date,
        search=args.search,
    )

    if args.json:
        payload = {
            "kind": kind.value,
            "summary": asdict(summary),
            "recommendations": [
                {
                    "id": v.record.id,
                    "symbol": v.record.symbol,
                    "created_at": v.record.created_at.isoformat(),
                    "exit_reason": v.record.exit_reason.value,
                    "profit_loss": v.valuation.profit_loss,
                    "profit_loss_percent": v.valuation.profit_loss_percent,
                }
                for v in rows
            ],
        }
        print(json.dumps(payload, indent=2))
    else:
        print(format_report(kind, rows, summary))


def main() -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(
        description="StockPicker exit report: closed recommendations with P&L"
    )
    parser.add_argument(
        "--kind", default="intraday",
        choices=[k.value for k in RecommendationKind],
        help="Recommendation kind (default: intraday)",
    )
    parser.add_argument(
        "--status", default="all",
        choices=[s.value for s in StatusFilter],
        help="Status filter (default: all)",
    )
    parser.add_argument(
        "--date", type=date.fromisoformat, default=None,
        help="Only recommendations created on this date (YYYY-MM-DD, UTC)",
    )
    parser.add_argument(
        "--search", default=None,
        help="Case-insensitive symbol search",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Output report as JSON instead of formatted table",
    )
    args = parser.parse_args()

    asyncio.run(run_report(args))


if __name__ == "__main__":
    main()
