"""Persistence collaborator for the record store.

One repository per recommendation kind, each backed by its own table.
Every write is a single transaction keyed by record id. Updates are
compare-and-swap on the version column so a second concurrent writer gets
Conflict instead of silently overwriting.
"""

import logging
from typing import Protocol

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockpicker.database import async_session
from stockpicker.models import IntradayRecommendationRow, SwingRecommendationRow
from stockpicker.services.domain import (
    Conflict,
    ExitReason,
    PersistenceFailure,
    Recommendation,
    RecommendationKind,
    TradeSide,
)

logger = logging.getLogger(__name__)

_ROW_MODELS = {
    RecommendationKind.INTRADAY: IntradayRecommendationRow,
    RecommendationKind.SWING: SwingRecommendationRow,
}


class RecommendationRepository(Protocol):
    """What the record store needs from durable storage."""

    async def fetch_all(self) -> list[Recommendation]: ...

    async def fetch_one(self, rec_id: str) -> Recommendation | None: ...

    async def insert(self, rec: Recommendation) -> None: ...

    async def update(self, rec: Recommendation, expected_version: int) -> None: ...

    async def delete(self, rec_id: str) -> None: ...


def record_to_columns(rec: Recommendation) -> dict:
    """Flatten a record into column values for its kind's table."""
    columns = {
        "id": rec.id,
        "stock_name": rec.symbol,
        "recommended_price": rec.entry_price,
        "current_price": rec.current_price,
        "stoploss": rec.stoploss,
        "exit_reason": rec.exit_reason.value if rec.exit_reason else None,
        "exit_price": rec.exit_price,
        "exited_at": rec.exited_at,
        "created_at": rec.created_at,
        "updated_at": rec.updated_at,
        "version": rec.version,
    }
    for i, target in enumerate(rec.targets, start=1):
        columns[f"target{i}"] = target

    if rec.kind is RecommendationKind.INTRADAY:
        columns["trade_side"] = rec.side.value
    else:
        columns["allocation"] = rec.allocation
        columns["notes"] = rec.notes
        columns["image_url"] = rec.image_url
    return columns


def row_to_record(kind: RecommendationKind, row) -> Recommendation:
    """Build a record from a table row of the given kind."""
    if kind is RecommendationKind.INTRADAY:
        targets = (row.target1, row.target2, row.target3)
        side = TradeSide(row.trade_side)
        extras = {}
    else:
        targets = (row.target1, row.target2)
        side = TradeSide.BUY
        extras = {"allocation": row.allocation, "notes": row.notes, "image_url": row.image_url}

    return Recommendation(
        kind=kind,
        id=row.id,
        symbol=row.stock_name,
        side=side,
        entry_price=float(row.recommended_price),
        targets=tuple(float(t) for t in targets),
        stoploss=float(row.stoploss),
        current_price=float(row.current_price),
        exit_reason=ExitReason(row.exit_reason) if row.exit_reason else None,
        exit_price=float(row.exit_price) if row.exit_price is not None else None,
        exited_at=row.exited_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
        **extras,
    )


class SqlRecommendationRepository:
    """SQLAlchemy async repository for one recommendation kind."""

    def __init__(
        self,
        kind: RecommendationKind,
        session_factory: async_sessionmaker[AsyncSession] = async_session,
    ) -> None:
        self._kind = kind
        self._model = _ROW_MODELS[kind]
        self._session_factory = session_factory

    async def fetch_all(self) -> list[Recommendation]:
        """All rows, most recent first."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(self._model).order_by(self._model.created_at.desc())
                )
                return [row_to_record(self._kind, row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Failed to load %s recommendations: %s", self._kind.value, e)
            raise PersistenceFailure(f"Could not load {self._kind.value} recommendations") from e

    async def fetch_one(self, rec_id: str) -> Recommendation | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(self._model, rec_id, populate_existing=True)
                return row_to_record(self._kind, row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error("Failed to load %s recommendation %s: %s", self._kind.value, rec_id, e)
            raise PersistenceFailure(f"Could not load recommendation {rec_id}") from e

    async def insert(self, rec: Recommendation) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(insert(self._model).values(**record_to_columns(rec)))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Insert failed for %s %s: %s", self._kind.value, rec.id, e)
            raise PersistenceFailure(f"Could not save recommendation {rec.symbol}") from e

    async def update(self, rec: Recommendation, expected_version: int) -> None:
        """Write rec only if the stored row is still at expected_version."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(self._model)
                    .where(self._model.id == rec.id, self._model.version == expected_version)
                    .values(**record_to_columns(rec))
                )
                if result.rowcount == 0:
                    await session.rollback()
                    raise Conflict(
                        f"Recommendation {rec.id} was changed or removed by another writer"
                    )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Update failed for %s %s: %s", self._kind.value, rec.id, e)
            raise PersistenceFailure(f"Could not update recommendation {rec.id}") from e

    async def delete(self, rec_id: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(delete(self._model).where(self._model.id == rec_id))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Delete failed for %s %s: %s", self._kind.value, rec_id, e)
            raise PersistenceFailure(f"Could not delete recommendation {rec_id}") from e
