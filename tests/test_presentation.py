"""Tests for the read-side views: filters, ordering, report summary and formatting."""

from dataclasses import replace
from datetime import date, timedelta

import pytest

from conftest import T0, make_recommendation
from stockpicker.services.domain import ExitReason
from stockpicker.services.presentation import (
    StatusFilter,
    build_views,
    exit_report,
    filter_views,
    format_currency,
    format_exit_reason,
    format_percent,
    format_price,
    is_recent,
    outcome_label,
    sort_views,
    status_label,
    summarize,
)


def exited(rec, reason, exit_price=None):
    return replace(rec, exit_reason=reason, exit_price=exit_price, exited_at=rec.created_at)


@pytest.fixture
def book():
    """One open trade, three booked exits (+500, -200, +300) and one not executed.

    Intraday defaults size RELIANCE at 40 shares, so partial exits at
    2512.5 / 2495 / 2507.5 book exactly +500 / -200 / +300.
    """
    base = make_recommendation()
    return build_views([
        replace(base, id="open", symbol="INFY", created_at=T0 + timedelta(hours=5)),
        exited(replace(base, id="win-1", created_at=T0 + timedelta(hours=4)), ExitReason.PARTIAL_PROFIT, 2512.5),
        exited(replace(base, id="loss-1", created_at=T0 + timedelta(hours=3)), ExitReason.PARTIAL_LOSS, 2495.0),
        exited(replace(base, id="win-2", created_at=T0 + timedelta(days=1)), ExitReason.PARTIAL_PROFIT, 2507.5),
        exited(replace(base, id="skip", symbol="TATAMOTORS", created_at=T0), ExitReason.NOT_EXECUTED),
    ])


def ids(views):
    return [v.record.id for v in views]


class TestSummary:
    def test_win_rate_excludes_not_executed(self, book):
        summary = summarize(book)
        assert summary.total_trades == 3
        assert summary.successful_trades == 2
        assert summary.win_rate == 66.67

    def test_totals(self, book):
        summary = summarize(book)
        assert summary.total_profit == 800
        assert summary.total_loss == 200
        assert summary.net_profit_loss == 600

    def test_counts_by_status(self, book):
        summary = summarize(book)
        assert summary.open_count == 1
        assert summary.exit_count == 4
        assert summary.not_executed_count == 1

    def test_empty(self):
        summary = summarize([])
        assert summary.total_trades == 0
        assert summary.win_rate == 0.0
        assert summary.net_profit_loss == 0


class TestFilters:
    @pytest.mark.parametrize(
        "status, expected",
        [
            (StatusFilter.ALL, {"open", "win-1", "loss-1", "win-2", "skip"}),
            (StatusFilter.OPEN, {"open"}),
            (StatusFilter.EXIT, {"win-1", "loss-1", "win-2", "skip"}),
            (StatusFilter.PROFIT, {"win-1", "win-2"}),
            (StatusFilter.LOSS, {"loss-1"}),
            (StatusFilter.NOT_EXECUTED, {"skip"}),
        ],
    )
    def test_status(self, book, status, expected):
        assert set(ids(filter_views(book, status=status))) == expected

    def test_date_uses_created_day(self, book):
        assert ids(filter_views(book, on_date=date(2026, 10, 20))) == ["win-2"]

    def test_search_is_case_insensitive_substring(self, book):
        assert ids(filter_views(book, search="tata")) == ["skip"]
        assert ids(filter_views(book, search="  INF ")) == ["open"]

    def test_filters_combine(self, book):
        rows = filter_views(book, status=StatusFilter.PROFIT, on_date=date(2026, 10, 19), search="rel")
        assert ids(rows) == ["win-1"]

    def test_deleted_records_disappear(self, book):
        remaining = [v for v in book if v.record.id != "loss-1"]
        assert "loss-1" not in ids(filter_views(remaining, status=StatusFilter.ALL))


class TestOrdering:
    def test_newest_first(self, book):
        assert ids(sort_views(book)) == ["win-2", "open", "win-1", "loss-1", "skip"]

    def test_ties_keep_incoming_order(self):
        base = make_recommendation()
        views = build_views([replace(base, id="x"), replace(base, id="y"), replace(base, id="z")])
        assert ids(sort_views(views)) == ["x", "y", "z"]


class TestExitReport:
    def test_only_exited_rows(self, book):
        rows, summary = exit_report(book)
        assert ids(rows) == ["win-2", "win-1", "loss-1", "skip"]
        assert summary.open_count == 0
        assert summary.win_rate == 66.67

    def test_summary_follows_filters(self, book):
        rows, summary = exit_report(book, status=StatusFilter.LOSS)
        assert ids(rows) == ["loss-1"]
        assert summary.total_trades == 1
        assert summary.win_rate == 0.0
        assert summary.net_profit_loss == -200


class TestFormatting:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (100_000, "₹1,00,000.00"),
            (1_234_567.891, "₹12,34,567.89"),
            (999, "₹999.00"),
            (0, "₹0.00"),
            (-2000, "-₹2,000.00"),
        ],
    )
    def test_currency_uses_indian_grouping(self, value, expected):
        assert format_currency(value) == expected

    def test_currency_symbol_override(self):
        assert format_currency(1500, symbol="$") == "$1,500.00"

    def test_percent_is_signed(self):
        assert format_percent(4) == "+4.00%"
        assert format_percent(0) == "+0.00%"
        assert format_percent(-2.5) == "-2.50%"

    def test_price_drops_trailing_zeros(self):
        assert format_price(95.0) == "95"
        assert format_price(95.5) == "95.5"
        assert format_price(2512.25) == "2512.25"

    def test_exit_reason_labels(self):
        assert format_exit_reason(ExitReason.TARGET_2_HIT) == "Target 2 Hit"
        assert format_exit_reason(ExitReason.STOPLOSS_HIT) == "Stoploss Hit"
        assert format_exit_reason(ExitReason.PARTIAL_PROFIT, 95.0) == "Partial Profit @ ₹95"
        assert format_exit_reason(ExitReason.PARTIAL_LOSS) == "Partial Loss"
        assert format_exit_reason(ExitReason.NOT_EXECUTED) == "Not Executed"
        assert format_exit_reason(None) == ""

    def test_status_and_outcome_labels(self, book):
        by_id = {v.record.id: v for v in book}
        assert status_label(by_id["open"]) == "Open"
        assert outcome_label(by_id["open"]) is None
        assert status_label(by_id["skip"]) == "Not Executed"
        assert outcome_label(by_id["skip"]) is None
        assert status_label(by_id["win-1"]) == "Partial Profit"
        assert outcome_label(by_id["win-1"]) == "Profit Booked"
        assert outcome_label(by_id["loss-1"]) == "Loss Booked"

    def test_recent_window(self):
        assert is_recent(T0, now=T0 + timedelta(hours=47))
        assert not is_recent(T0, now=T0 + timedelta(hours=49))
        assert is_recent(T0, now=T0 + timedelta(hours=5), hours=6)
