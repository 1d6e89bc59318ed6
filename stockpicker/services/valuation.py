"""Recommendation valuation engine: status, risk/reward, sizing and P&L.

Pure functions over a Recommendation snapshot. No I/O, no clock, no mutation,
so the same record always values the same way.

Two bases share one code path, selected by the kind profile:
- investment: fixed capital per trade (intraday). Quantity is
  floor(investment / entry), P&L is in currency and signed by trade side.
- percent: percent move from the current price (swing). Long only, P&L is a
  percentage and the currency figure mirrors it for display. Target and
  max-loss percents are signed moves from the current price, so a target
  already passed projects negative.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from stockpicker.config import settings
from stockpicker.services.domain import (
    DataIntegrityError,
    ExitReason,
    Recommendation,
    RecommendationStatus,
    TradeSide,
    ValuationBasis,
)


@dataclass(frozen=True)
class TargetProjection:
    """Potential gain if a target is reached. amount is None on the percent basis."""

    price: float
    percent: float
    amount: float | None = None


@dataclass(frozen=True)
class Valuation:
    """Derived, read-only view of a recommendation."""

    status: RecommendationStatus
    risk_reward: float
    quantity: int | None
    investment: float | None
    targets: tuple[TargetProjection, ...]
    max_loss: float | None
    max_loss_percent: float
    profit_loss: float
    profit_loss_percent: float
    targets_hit: tuple[bool, ...]
    stoploss_hit: bool

    @property
    def min_profit(self) -> TargetProjection:
        return self.targets[0]

    @property
    def max_profit(self) -> TargetProjection:
        return self.targets[-1]


def round_half_up(value: float, places: int = 2) -> float:
    """Round away from zero on ties, using the shortest decimal form of value.

    round() on floats is banker's rounding over the binary value, so
    round(1.005, 2) == 1.0. Here 1.005 -> 1.01.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def derive_status(rec: Recommendation) -> RecommendationStatus:
    return RecommendationStatus.EXIT if rec.exit_reason is not None else RecommendationStatus.OPEN


def direction_multiplier(side: TradeSide) -> int:
    return 1 if side is TradeSide.BUY else -1


def risk_reward(basis_price: float, stoploss: float, final_target: float) -> float:
    """Reward distance over risk distance, 2 dp. Zero when the stop sits on the basis."""
    risk = abs(basis_price - stoploss)
    reward = abs(final_target - basis_price)
    if risk <= 0:
        return 0.0
    return round_half_up(reward / risk)


def exit_reference_price(rec: Recommendation) -> float | None:
    """Price the exit is booked at, or None when there is nothing to book."""
    reason = rec.exit_reason
    if reason is None or reason is ExitReason.NOT_EXECUTED:
        return None
    if reason is ExitReason.STOPLOSS_HIT:
        return rec.stoploss
    if reason.requires_price:
        if rec.exit_price is None:
            raise DataIntegrityError(
                f"Recommendation {rec.id or rec.symbol} exited with {reason.value} but has no exit price"
            )
        return rec.exit_price

    number = reason.target_number
    if number is None or number > len(rec.targets):
        raise DataIntegrityError(
            f"Recommendation {rec.id or rec.symbol} has exit reason {reason.value} "
            f"but only {len(rec.targets)} targets"
        )
    return rec.targets[number - 1]


def targets_hit(rec: Recommendation) -> tuple[tuple[bool, ...], bool]:
    """Which targets (and whether the stoploss) the exit reason implies were reached."""
    reason = rec.exit_reason
    number = reason.target_number if reason is not None else None
    hit = tuple(number is not None and i < number for i in range(len(rec.targets)))
    return hit, reason is ExitReason.STOPLOSS_HIT


def value_recommendation(rec: Recommendation, investment: float | None = None) -> Valuation:
    """Value a recommendation according to its kind's basis."""
    if rec.profile.basis is ValuationBasis.INVESTMENT:
        if investment is None:
            investment = settings.intraday_investment_amount
        return _value_on_investment(rec, investment)
    return _value_on_percent(rec)


def _value_on_investment(rec: Recommendation, investment: float) -> Valuation:
    entry = rec.entry_price
    quantity = math.floor(investment / entry)

    projections = []
    for target in rec.targets:
        amount = quantity * abs(target - entry)
        projections.append(
            TargetProjection(
                price=target,
                amount=round_half_up(amount, 0),
                percent=round_half_up(amount / investment * 100),
            )
        )
    max_loss = quantity * abs(entry - rec.stoploss)

    profit_loss = 0.0
    reference = exit_reference_price(rec)
    if reference is not None:
        multiplier = direction_multiplier(rec.side) if rec.profile.directional else 1
        profit_loss = quantity * (reference - entry) * multiplier

    hit, stop_hit = targets_hit(rec)
    return Valuation(
        status=derive_status(rec),
        risk_reward=risk_reward(entry, rec.stoploss, rec.final_target),
        quantity=quantity,
        investment=investment,
        targets=tuple(projections),
        max_loss=round_half_up(max_loss, 0),
        max_loss_percent=round_half_up(max_loss / investment * 100),
        profit_loss=round_half_up(profit_loss, 0),
        profit_loss_percent=round_half_up(profit_loss / investment * 100),
        targets_hit=hit,
        stoploss_hit=stop_hit,
    )


def _value_on_percent(rec: Recommendation) -> Valuation:
    basis = rec.current_price

    projections = tuple(
        TargetProjection(price=target, percent=round_half_up((target - basis) / basis * 100))
        for target in rec.targets
    )

    profit_loss_percent = 0.0
    reference = exit_reference_price(rec)
    if reference is not None:
        profit_loss_percent = (reference - basis) / basis * 100

    hit, stop_hit = targets_hit(rec)
    return Valuation(
        status=derive_status(rec),
        risk_reward=risk_reward(basis, rec.stoploss, rec.final_target),
        quantity=None,
        investment=None,
        targets=projections,
        max_loss=None,
        max_loss_percent=round_half_up((basis - rec.stoploss) / basis * 100),
        profit_loss=round_half_up(profit_loss_percent),
        profit_loss_percent=round_half_up(profit_loss_percent),
        targets_hit=hit,
        stoploss_hit=stop_hit,
    )
