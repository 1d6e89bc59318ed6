"""Recommendation API routes for listing, reporting and editing recommendations.

One router serves both kinds; the {kind} path segment picks the store.
Reads are public. Every write requires the admin API key.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import AfterValidator, BaseModel, Field

from stockpicker.api.auth import require_api_key
from stockpicker.config import settings
from stockpicker.services.domain import ExitReason, RecommendationKind, TradeSide
from stockpicker.services.persistence import SqlRecommendationRepository
from stockpicker.services.presentation import (
    RecommendationView,
    StatusFilter,
    build_views,
    exit_report,
    filter_views,
    format_exit_reason,
    is_recent,
    outcome_label,
    sort_views,
    status_label,
    summarize,
)
from stockpicker.services.record_store import RecommendationStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/{kind}/recommendations", tags=["recommendations"])

# Module-level store singletons, loaded at startup
stores: dict[RecommendationKind, RecommendationStore] = {
    kind: RecommendationStore(
        kind,
        SqlRecommendationRepository(kind),
        max_age=timedelta(seconds=settings.read_model_max_age_seconds),
    )
    for kind in RecommendationKind
}


def get_store(kind: RecommendationKind) -> RecommendationStore:
    return stores[kind]


def _two_decimals(value: float) -> float:
    if Decimal(repr(value)).as_tuple().exponent < -2:
        raise ValueError("prices allow at most 2 decimal places")
    return value


# Prices are stored as NUMERIC(14, 2)
Price = Annotated[float, Field(gt=0, allow_inf_nan=False), AfterValidator(_two_decimals)]


class RecommendationCreate(BaseModel):
    """Request body for a new recommendation. Swing ignores side (always BUY)."""

    symbol: str = Field(..., min_length=1, max_length=50)
    side: TradeSide = TradeSide.BUY
    entry_price: Price
    targets: list[Price] = Field(..., min_length=1, max_length=3)
    stoploss: Price
    current_price: Price | None = None
    allocation: str | None = Field(None, max_length=100)
    notes: str | None = None
    image_url: str | None = None


class RecommendationUpdate(BaseModel):
    """Partial edit. Only fields present in the body are merged."""

    symbol: str | None = Field(None, min_length=1, max_length=50)
    side: TradeSide | None = None
    entry_price: Price | None = None
    targets: list[Price] | None = Field(None, min_length=1, max_length=3)
    stoploss: Price | None = None
    current_price: Price | None = None
    allocation: str | None = Field(None, max_length=100)
    notes: str | None = None
    image_url: str | None = None
    exit_reason: ExitReason | None = None
    exit_price: Price | None = None
    expected_version: int | None = None


class ExitRequest(BaseModel):
    exit_reason: ExitReason
    exit_price: Price | None = None
    expected_version: int | None = None


class PriceUpdateRequest(BaseModel):
    price: Price = Field(..., description="New current market price, positive with at most 2 decimals")
    expected_version: int | None = None


def serialize_view(view: RecommendationView) -> dict:
    """JSON shape of a record plus its valuation."""
    rec, val = view.record, view.valuation
    return {
        "id": rec.id,
        "kind": rec.kind.value,
        "symbol": rec.symbol,
        "side": rec.side.value,
        "entry_price": rec.entry_price,
        "current_price": rec.current_price,
        "targets": list(rec.targets),
        "stoploss": rec.stoploss,
        "allocation": rec.allocation,
        "notes": rec.notes,
        "image_url": rec.image_url,
        "exit_reason": rec.exit_reason.value if rec.exit_reason else None,
        "exit_price": rec.exit_price,
        "exited_at": rec.exited_at.isoformat() if rec.exited_at else None,
        "created_at": rec.created_at.isoformat(),
        "updated_at": rec.updated_at.isoformat(),
        "version": rec.version,
        "status": val.status.value,
        "status_label": status_label(view),
        "outcome_label": outcome_label(view),
        "exit_label": format_exit_reason(rec.exit_reason, rec.exit_price),
        "is_recent": is_recent(rec.created_at),
        "risk_reward": val.risk_reward,
        "quantity": val.quantity,
        "investment": val.investment,
        "target_projections": [
            {"price": p.price, "percent": p.percent, "amount": p.amount} for p in val.targets
        ],
        "targets_hit": list(val.targets_hit),
        "stoploss_hit": val.stoploss_hit,
        "max_loss": val.max_loss,
        "max_loss_percent": val.max_loss_percent,
        "profit_loss": val.profit_loss,
        "profit_loss_percent": val.profit_loss_percent,
    }


@router.get("/")
async def list_recommendations(
    status: StatusFilter = StatusFilter.ALL,
    on_date: date | None = Query(None, alias="date"),
    search: str | None = Query(None, max_length=50),
    store: RecommendationStore = Depends(get_store),
):
    """List recommendations with valuation, newest first."""
    await store.ensure_fresh()
    views = build_views(store.list_records())
    rows = sort_views(filter_views(views, status=status, on_date=on_date, search=search))
    return {
        "recommendations": [serialize_view(v) for v in rows],
        "count": len(rows),
        "open_count": summarize(views).open_count,
    }


@router.get("/report")
async def get_report(
    status: StatusFilter = StatusFilter.ALL,
    on_date: date | None = Query(None, alias="date"),
    search: str | None = Query(None, max_length=50),
    store: RecommendationStore = Depends(get_store),
):
    """Exited recommendations with profit, loss, net P&L and win rate."""
    await store.ensure_fresh()
    rows, summary = exit_report(
        build_views(store.list_records()), status=status, on_date=on_date, search=search
    )
    return {
        "recommendations": [serialize_view(v) for v in rows],
        "summary": {
            "open_count": summary.open_count,
            "exit_count": summary.exit_count,
            "not_executed_count": summary.not_executed_count,
            "total_profit": summary.total_profit,
            "total_loss": summary.total_loss,
            "net_profit_loss": summary.net_profit_loss,
            "total_trades": summary.total_trades,
            "successful_trades": summary.successful_trades,
            "win_rate": summary.win_rate,
        },
    }


@router.get("/{rec_id}")
async def get_recommendation(rec_id: str, store: RecommendationStore = Depends(get_store)):
    await store.ensure_fresh()
    (view,) = build_views([store.get(rec_id)])
    return serialize_view(view)


@router.post("/", status_code=201, dependencies=[Depends(require_api_key)])
async def create_recommendation(
    req: RecommendationCreate, store: RecommendationStore = Depends(get_store)
):
    """Create a new OPEN recommendation. Current price defaults to the entry price."""
    rec = await store.create(**req.model_dump())
    (view,) = build_views([rec])
    return serialize_view(view)


@router.patch("/{rec_id}", dependencies=[Depends(require_api_key)])
async def update_recommendation(
    rec_id: str, req: RecommendationUpdate, store: RecommendationStore = Depends(get_store)
):
    """Merge the supplied fields into a recommendation."""
    changes = req.model_dump(exclude_unset=True)
    expected_version = changes.pop("expected_version", None)
    rec = await store.update(rec_id, changes, expected_version=expected_version)
    (view,) = build_views([rec])
    return serialize_view(view)


@router.post("/{rec_id}/price", dependencies=[Depends(require_api_key)])
async def update_price(
    rec_id: str, req: PriceUpdateRequest, store: RecommendationStore = Depends(get_store)
):
    rec = await store.update_current_price(rec_id, req.price, expected_version=req.expected_version)
    (view,) = build_views([rec])
    return serialize_view(view)


@router.post("/{rec_id}/exit", dependencies=[Depends(require_api_key)])
async def exit_recommendation(
    rec_id: str, req: ExitRequest, store: RecommendationStore = Depends(get_store)
):
    """Close a recommendation with an exit reason (and price for partial exits)."""
    rec = await store.exit(
        rec_id, req.exit_reason, req.exit_price, expected_version=req.expected_version
    )
    (view,) = build_views([rec])
    return serialize_view(view)


@router.delete("/{rec_id}", dependencies=[Depends(require_api_key)])
async def delete_recommendation(rec_id: str, store: RecommendationStore = Depends(get_store)):
    """Delete permanently. Unknown ids succeed without effect."""
    await store.delete(rec_id)
    return {"status": "deleted", "id": rec_id}
