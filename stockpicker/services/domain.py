"""Recommendation domain types shared by the valuation engine, store and API.

Intraday and swing recommendations are one record type tagged with a kind.
Everything that differs between the two kinds lives in PROFILES.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class RecommendationKind(str, Enum):
    INTRADAY = "intraday"
    SWING = "swing"


class RecommendationStatus(str, Enum):
    OPEN = "OPEN"
    EXIT = "EXIT"


class ExitReason(str, Enum):
    TARGET_1_HIT = "TARGET_1_HIT"
    TARGET_2_HIT = "TARGET_2_HIT"
    TARGET_3_HIT = "TARGET_3_HIT"
    STOPLOSS_HIT = "STOPLOSS_HIT"
    PARTIAL_PROFIT = "PARTIAL_PROFIT"
    PARTIAL_LOSS = "PARTIAL_LOSS"
    NOT_EXECUTED = "NOT_EXECUTED"

    @property
    def target_number(self) -> int | None:
        """1-based target number for TARGET_N_HIT reasons, else None."""
        if self.value.startswith("TARGET_"):
            return int(self.value.split("_")[1])
        return None

    @property
    def requires_price(self) -> bool:
        return self in (ExitReason.PARTIAL_PROFIT, ExitReason.PARTIAL_LOSS)


class ValuationBasis(str, Enum):
    INVESTMENT = "investment"  # fixed capital per trade, sized in shares
    PERCENT = "percent"  # percent move from current price, no sizing


@dataclass(frozen=True)
class KindProfile:
    """Parameters that specialise the shared engine for one recommendation kind."""

    kind: RecommendationKind
    target_count: int
    basis: ValuationBasis
    directional: bool  # apply the BUY/SELL direction multiplier
    long_only: bool
    extras: frozenset[str] = field(default_factory=frozenset)

    def allows(self, reason: ExitReason) -> bool:
        number = reason.target_number
        return number is None or number <= self.target_count


PROFILES: dict[RecommendationKind, KindProfile] = {
    RecommendationKind.INTRADAY: KindProfile(
        kind=RecommendationKind.INTRADAY,
        target_count=3,
        basis=ValuationBasis.INVESTMENT,
        directional=True,
        long_only=False,
    ),
    RecommendationKind.SWING: KindProfile(
        kind=RecommendationKind.SWING,
        target_count=2,
        basis=ValuationBasis.PERCENT,
        directional=False,
        long_only=True,
        extras=frozenset({"allocation", "notes", "image_url"}),
    ),
}


@dataclass(frozen=True)
class Recommendation:
    """A tracked trade idea. Snapshots are immutable; the store swaps whole records."""

    kind: RecommendationKind
    symbol: str
    side: TradeSide
    entry_price: float
    targets: tuple[float, ...]
    stoploss: float
    current_price: float
    id: str = ""
    allocation: str | None = None
    notes: str | None = None
    image_url: str | None = None
    exit_reason: ExitReason | None = None
    exit_price: float | None = None
    exited_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def profile(self) -> KindProfile:
        return PROFILES[self.kind]

    @property
    def final_target(self) -> float:
        return self.targets[-1]

    @property
    def is_exited(self) -> bool:
        return self.exit_reason is not None


# ---------- Errors ----------


class RecommendationError(Exception):
    """Base class for every recommendation failure surfaced to callers."""


class ValidationError(RecommendationError):
    """Input rejected before any mutation."""


class NotFound(RecommendationError):
    """Mutation or lookup target id is absent."""


class Conflict(RecommendationError):
    """Concurrent edit detected, or the operation is illegal in the record's state."""


class PersistenceFailure(RecommendationError):
    """The persistence collaborator failed; in-memory state is unchanged."""


class DataIntegrityError(RecommendationError):
    """A stored record violates an invariant the engine depends on."""
