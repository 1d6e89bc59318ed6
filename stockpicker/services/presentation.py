"""Read-side views over valued recommendations: filters, ordering, summary, formatting.

Nothing here decides business outcomes; every number comes from the
valuation engine.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from stockpicker.config import settings
from stockpicker.services.domain import ExitReason, Recommendation, RecommendationStatus
from stockpicker.services.valuation import Valuation, round_half_up, value_recommendation


class StatusFilter(str, Enum):
    ALL = "all"
    OPEN = "open"
    EXIT = "exit"
    PROFIT = "profit"
    LOSS = "loss"
    NOT_EXECUTED = "not_executed"


@dataclass(frozen=True)
class RecommendationView:
    """A record paired with its valuation."""

    record: Recommendation
    valuation: Valuation

    @property
    def is_not_executed(self) -> bool:
        return self.record.exit_reason is ExitReason.NOT_EXECUTED

    @property
    def is_booked(self) -> bool:
        """Exited with a P&L outcome (anything but not executed)."""
        return self.record.is_exited and not self.is_not_executed


@dataclass(frozen=True)
class ReportSummary:
    open_count: int
    exit_count: int
    not_executed_count: int
    total_profit: float
    total_loss: float
    net_profit_loss: float
    total_trades: int
    successful_trades: int
    win_rate: float


def build_views(records: Iterable[Recommendation], investment: float | None = None) -> list[RecommendationView]:
    return [RecommendationView(record=r, valuation=value_recommendation(r, investment)) for r in records]


def matches_status(view: RecommendationView, status: StatusFilter) -> bool:
    pl = view.valuation.profit_loss
    if status is StatusFilter.OPEN:
        return view.valuation.status is RecommendationStatus.OPEN
    if status is StatusFilter.EXIT:
        return view.valuation.status is RecommendationStatus.EXIT
    if status is StatusFilter.PROFIT:
        return view.is_booked and pl > 0
    if status is StatusFilter.LOSS:
        return view.is_booked and pl < 0
    if status is StatusFilter.NOT_EXECUTED:
        return view.is_not_executed
    return True


def filter_views(
    views: Iterable[RecommendationView],
    status: StatusFilter = StatusFilter.ALL,
    on_date: date | None = None,
    search: str | None = None,
) -> list[RecommendationView]:
    """Keep views matching status, created on on_date (UTC), and containing search in the symbol."""
    needle = search.strip().lower() if search else ""
    result = []
    for view in views:
        if not matches_status(view, status):
            continue
        if on_date is not None and view.record.created_at.astimezone(timezone.utc).date() != on_date:
            continue
        if needle and needle not in view.record.symbol.lower():
            continue
        result.append(view)
    return result


def sort_views(views: Iterable[RecommendationView]) -> list[RecommendationView]:
    """Newest first. Stable, so ties keep their incoming order."""
    return sorted(views, key=lambda v: v.record.created_at, reverse=True)


def summarize(views: Iterable[RecommendationView]) -> ReportSummary:
    """Counts by status and P&L aggregates.

    exit_count covers every EXIT record, not-executed ones included. Trades
    exclude open and not-executed recommendations. A trade is
    successful when its profit/loss is strictly positive.
    """
    views = list(views)
    booked = [v for v in views if v.is_booked]
    profits = [v.valuation.profit_loss for v in booked if v.valuation.profit_loss > 0]
    losses = [abs(v.valuation.profit_loss) for v in booked if v.valuation.profit_loss < 0]

    total_trades = len(booked)
    successful = len(profits)
    total_profit = round_half_up(sum(profits))
    total_loss = round_half_up(sum(losses))
    return ReportSummary(
        open_count=sum(1 for v in views if v.valuation.status is RecommendationStatus.OPEN),
        exit_count=sum(1 for v in views if v.valuation.status is RecommendationStatus.EXIT),
        not_executed_count=sum(1 for v in views if v.is_not_executed),
        total_profit=total_profit,
        total_loss=total_loss,
        net_profit_loss=round_half_up(total_profit - total_loss),
        total_trades=total_trades,
        successful_trades=successful,
        win_rate=round_half_up(successful / total_trades * 100) if total_trades else 0.0,
    )


def exit_report(
    views: Iterable[RecommendationView],
    status: StatusFilter = StatusFilter.ALL,
    on_date: date | None = None,
    search: str | None = None,
) -> tuple[list[RecommendationView], ReportSummary]:
    """Exited recommendations only, filtered and sorted, with their summary."""
    exited = [v for v in views if v.valuation.status is RecommendationStatus.EXIT]
    rows = sort_views(filter_views(exited, status=status, on_date=on_date, search=search))
    return rows, summarize(rows)


# ---------- Formatting ----------

_EXIT_LABELS = {
    ExitReason.TARGET_1_HIT: "Target 1 Hit",
    ExitReason.TARGET_2_HIT: "Target 2 Hit",
    ExitReason.TARGET_3_HIT: "Target 3 Hit",
    ExitReason.STOPLOSS_HIT: "Stoploss Hit",
    ExitReason.PARTIAL_PROFIT: "Partial Profit",
    ExitReason.PARTIAL_LOSS: "Partial Loss",
    ExitReason.NOT_EXECUTED: "Not Executed",
}


def _group_indian(digits: str) -> str:
    """1234567 -> 12,34,567 (lakh/crore grouping)."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(value: float, symbol: str | None = None) -> str:
    symbol = settings.currency_symbol if symbol is None else symbol
    rounded = round_half_up(value)
    whole, frac = f"{abs(rounded):.2f}".split(".")
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{_group_indian(whole)}.{frac}"


def format_percent(value: float) -> str:
    sign = "+" if value >= 0 else ""
    return f"{sign}{round_half_up(value):.2f}%"


def format_price(value: float) -> str:
    """Plain price without trailing zeros: 95.0 -> '95', 95.5 -> '95.5'."""
    return f"{round_half_up(value):.2f}".rstrip("0").rstrip(".")


def format_exit_reason(reason: ExitReason | None, exit_price: float | None = None) -> str:
    if reason is None:
        return ""
    label = _EXIT_LABELS[reason]
    if reason.requires_price and exit_price is not None:
        return f"{label} @ {settings.currency_symbol}{format_price(exit_price)}"
    return label


def status_label(view: RecommendationView) -> str:
    if view.valuation.status is RecommendationStatus.OPEN:
        return "Open"
    return format_exit_reason(view.record.exit_reason)


def outcome_label(view: RecommendationView) -> str | None:
    """'Profit Booked' / 'Loss Booked' for booked exits; None otherwise."""
    if not view.is_booked:
        return None
    return "Profit Booked" if view.valuation.profit_loss >= 0 else "Loss Booked"


def is_recent(created_at: datetime, now: datetime | None = None, hours: int | None = None) -> bool:
    """Created within the last `hours` (default from settings)."""
    now = now or datetime.now(timezone.utc)
    hours = settings.recent_window_hours if hours is None else hours
    return now - created_at <= timedelta(hours=hours)
