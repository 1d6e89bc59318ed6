"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from stockpicker.services.domain import (
    Conflict,
    Recommendation,
    RecommendationKind,
    TradeSide,
)
from stockpicker.services.record_store import RecommendationStore

T0 = datetime(2026, 10, 19, 9, 15, tzinfo=timezone.utc)


def make_recommendation(**kwargs) -> Recommendation:
    """Helper to create test records with sensible defaults (RELIANCE intraday BUY)."""
    kind = kwargs.get("kind", RecommendationKind.INTRADAY)
    if kind is RecommendationKind.SWING:
        defaults = {
            "kind": kind,
            "id": "swing-1",
            "symbol": "TCS",
            "side": TradeSide.BUY,
            "entry_price": 4000.0,
            "current_price": 4000.0,
            "targets": (4400.0, 4800.0),
            "stoploss": 3800.0,
            "allocation": "5% of portfolio",
        }
    else:
        defaults = {
            "kind": kind,
            "id": "intraday-1",
            "symbol": "RELIANCE",
            "side": TradeSide.BUY,
            "entry_price": 2500.0,
            "current_price": 2500.0,
            "targets": (2550.0, 2600.0, 2650.0),
            "stoploss": 2450.0,
        }
    defaults.update(created_at=T0, updated_at=T0, version=1)
    defaults.update(kwargs)
    return Recommendation(**defaults)


class FakeRepository:
    """In-memory stand-in for the SQL repository, with the same version check."""

    def __init__(self) -> None:
        self.rows: dict[str, Recommendation] = {}
        self.deleted: list[str] = []

    async def fetch_all(self) -> list[Recommendation]:
        return sorted(self.rows.values(), key=lambda r: r.created_at, reverse=True)

    async def fetch_one(self, rec_id: str) -> Recommendation | None:
        return self.rows.get(rec_id)

    async def insert(self, rec: Recommendation) -> None:
        self.rows[rec.id] = rec

    async def update(self, rec: Recommendation, expected_version: int) -> None:
        stored = self.rows.get(rec.id)
        if stored is None or stored.version != expected_version:
            raise Conflict(f"Recommendation {rec.id} was changed or removed by another writer")
        self.rows[rec.id] = rec

    async def delete(self, rec_id: str) -> None:
        self.deleted.append(rec_id)
        self.rows.pop(rec_id, None)


class FakeClock:
    """Deterministic clock; advance() moves it forward."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def intraday_store(repository: FakeRepository, clock: FakeClock) -> RecommendationStore:
    """Fresh intraday store for each test."""
    return RecommendationStore(RecommendationKind.INTRADAY, repository, clock=clock)


@pytest.fixture
def swing_store(clock: FakeClock) -> RecommendationStore:
    """Fresh swing store for each test, with its own repository."""
    return RecommendationStore(RecommendationKind.SWING, FakeRepository(), clock=clock)
