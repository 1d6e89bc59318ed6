"""Record store: the service-owned collection of recommendations for one kind.

Holds an in-memory read model ordered most-recent-first and delegates every
mutation to a persistence repository. Memory is only swapped after the
repository confirms the write, so a PersistenceFailure leaves the read model
exactly as it was.
"""

import asyncio
import logging
import math
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from stockpicker.services.domain import (
    PROFILES,
    Conflict,
    ExitReason,
    NotFound,
    Recommendation,
    RecommendationKind,
    TradeSide,
    ValidationError,
)
from stockpicker.services.persistence import RecommendationRepository

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    "symbol",
    "side",
    "entry_price",
    "targets",
    "stoploss",
    "current_price",
    "allocation",
    "notes",
    "image_url",
    "exit_reason",
    "exit_price",
})

REQUIRED_FIELDS = frozenset({"symbol", "side", "entry_price", "targets", "stoploss", "current_price"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_positive(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


def _has_cents_precision(value: float) -> bool:
    """At most two decimal places, the precision prices are stored at."""
    return Decimal(repr(value)).as_tuple().exponent >= -2


def _check_price(name: str, value: Any) -> None:
    if not _is_positive(value):
        raise ValidationError(f"{name.capitalize()} must be positive, got {value!r}")
    if not _has_cents_precision(value):
        raise ValidationError(f"{name.capitalize()} allows at most 2 decimal places, got {value!r}")


def _coerce_exit_reason(value: Any) -> ExitReason:
    try:
        return ExitReason(value)
    except ValueError:
        raise ValidationError(f"Unknown exit reason: {value!r}") from None


def validate_recommendation(rec: Recommendation) -> None:
    """Raise ValidationError unless rec satisfies every record invariant."""
    profile = PROFILES[rec.kind]

    if not rec.symbol or not rec.symbol.strip():
        raise ValidationError("Stock symbol is required")

    if len(rec.targets) != profile.target_count:
        raise ValidationError(
            f"{rec.kind.value} recommendations need exactly {profile.target_count} targets, "
            f"got {len(rec.targets)}"
        )

    prices = {"entry price": rec.entry_price, "stoploss": rec.stoploss, "current price": rec.current_price}
    for i, target in enumerate(rec.targets, start=1):
        prices[f"target {i}"] = target
    for name, value in prices.items():
        _check_price(name, value)

    if profile.long_only and rec.side is not TradeSide.BUY:
        raise ValidationError(f"{rec.kind.value} recommendations are long only")

    for extra in ("allocation", "notes", "image_url"):
        if extra not in profile.extras and getattr(rec, extra) is not None:
            raise ValidationError(f"{extra} is not a field of {rec.kind.value} recommendations")
    if "allocation" in profile.extras and not (rec.allocation and rec.allocation.strip()):
        raise ValidationError("Allocation is required")

    reason = rec.exit_reason
    if reason is None:
        if rec.exit_price is not None or rec.exited_at is not None:
            raise ValidationError("Exit price and exit time require an exit reason")
        return
    if not profile.allows(reason):
        raise ValidationError(f"{reason.value} is not a valid exit for {rec.kind.value} recommendations")
    if rec.exited_at is None:
        raise ValidationError("Exited recommendations need an exit time")
    if reason.requires_price:
        if rec.exit_price is None:
            raise ValidationError(f"{reason.value} requires a positive exit price")
        _check_price("exit price", rec.exit_price)
    if not reason.requires_price and rec.exit_price is not None:
        raise ValidationError(f"{reason.value} does not take an exit price")


class RecommendationStore:
    """Ordered collection of one kind of recommendation, backed by a repository.

    Mutations are serialised per store with an asyncio lock; the repository's
    version check catches writers in other processes. A record that lost such
    a race is re-read before the Conflict propagates, and mutations of ids
    missing from the cache fall through to the repository.
    """

    def __init__(
        self,
        kind: RecommendationKind,
        repository: RecommendationRepository,
        clock: Callable[[], datetime] = _utcnow,
        max_age: timedelta | None = None,
    ) -> None:
        self.kind = kind
        self.profile = PROFILES[kind]
        self._repository = repository
        self._clock = clock
        self._max_age = max_age
        self._loaded_at: datetime | None = None
        self._records: list[Recommendation] = []
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        """Replace the read model with what the repository holds."""
        records = await self._repository.fetch_all()
        records.sort(key=lambda r: r.created_at, reverse=True)
        self._records = records
        self._loaded_at = self._clock()
        logger.info("Loaded %d %s recommendations", len(records), self.kind.value)

    async def ensure_fresh(self) -> None:
        """Reload when the read model is older than max_age.

        Picks up creates, edits and deletes made by other processes. A store
        without max_age is only loaded explicitly.
        """
        if self._max_age is None:
            return
        async with self._lock:
            if self._loaded_at is None or self._clock() - self._loaded_at >= self._max_age:
                await self.load()

    def list_records(self) -> list[Recommendation]:
        return list(self._records)

    def get(self, rec_id: str) -> Recommendation:
        rec = self._find(rec_id)
        if rec is None:
            raise NotFound(f"{self.kind.value} recommendation {rec_id} not found")
        return rec

    async def create(
        self,
        *,
        symbol: str,
        entry_price: float,
        targets: tuple[float, ...] | list[float],
        stoploss: float,
        side: TradeSide | str = TradeSide.BUY,
        current_price: float | None = None,
        allocation: str | None = None,
        notes: str | None = None,
        image_url: str | None = None,
    ) -> Recommendation:
        """Validate, persist and prepend a new OPEN recommendation."""
        try:
            side = TradeSide(side)
        except ValueError:
            raise ValidationError(f"Unknown trade side: {side!r}") from None

        now = self._clock()
        rec = Recommendation(
            kind=self.kind,
            id=str(uuid.uuid4()),
            symbol=symbol.strip(),
            side=side,
            entry_price=entry_price,
            targets=tuple(targets),
            stoploss=stoploss,
            current_price=entry_price if current_price is None else current_price,
            allocation=allocation,
            notes=notes,
            image_url=image_url,
            created_at=now,
            updated_at=now,
            version=1,
        )
        validate_recommendation(rec)

        async with self._lock:
            await self._repository.insert(rec)
            self._records.insert(0, rec)

        logger.info(
            "Created %s recommendation %s: %s %s @ %.2f, SL @ %.2f",
            self.kind.value, rec.id, rec.side.value, rec.symbol, rec.entry_price, rec.stoploss,
        )
        return rec

    async def update(
        self,
        rec_id: str,
        changes: dict[str, Any],
        expected_version: int | None = None,
    ) -> Recommendation:
        """Merge partial fields into a record.

        Setting exit_reason to None clears every exit field together; this is
        an administrative correction, not a lifecycle step.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        async with self._lock:
            current = await self._require(rec_id, expected_version)
            now = self._clock()
            merged = self._merge(current, changes, now)
            updated = replace(merged, updated_at=now, version=current.version + 1)
            validate_recommendation(updated)
            await self._write(updated, current.version)

        logger.info(
            "Updated %s recommendation %s (%s)",
            self.kind.value, rec_id, ", ".join(sorted(changes)) or "no fields",
        )
        return updated

    async def update_current_price(
        self,
        rec_id: str,
        price: float,
        expected_version: int | None = None,
    ) -> Recommendation:
        try:
            _check_price("current price", price)
        except ValidationError:
            logger.warning("Rejected price update for %s: %r", rec_id, price)
            raise

        async with self._lock:
            current = await self._require(rec_id, expected_version)
            updated = replace(
                current,
                current_price=price,
                updated_at=self._clock(),
                version=current.version + 1,
            )
            await self._write(updated, current.version)

        logger.info("Price updated for %s %s: %.2f", self.kind.value, updated.symbol, price)
        return updated

    async def exit(
        self,
        rec_id: str,
        exit_reason: ExitReason | str,
        exit_price: float | None = None,
        expected_version: int | None = None,
    ) -> Recommendation:
        """Close a recommendation. Exit fields are set once, in one write."""
        reason = _coerce_exit_reason(exit_reason)
        if not self.profile.allows(reason):
            raise ValidationError(f"{reason.value} is not a valid exit for {self.kind.value} recommendations")
        if reason.requires_price and exit_price is None:
            raise ValidationError(f"{reason.value} requires an exit price")
        if exit_price is not None:
            _check_price("exit price", exit_price)

        async with self._lock:
            current = await self._require(rec_id, expected_version)
            if current.is_exited:
                raise Conflict(
                    f"Recommendation {rec_id} already exited with {current.exit_reason.value}"
                )
            now = self._clock()
            updated = replace(
                current,
                exit_reason=reason,
                exit_price=exit_price if reason.requires_price else None,
                exited_at=now,
                updated_at=now,
                version=current.version + 1,
            )
            await self._write(updated, current.version)

        logger.info("Exited %s %s: %s", self.kind.value, updated.symbol, reason.value)
        return updated

    async def delete(self, rec_id: str) -> None:
        """Remove a record permanently. Unknown ids are a no-op."""
        async with self._lock:
            await self._repository.delete(rec_id)
            before = len(self._records)
            self._records = [r for r in self._records if r.id != rec_id]

        if len(self._records) < before:
            logger.info("Deleted %s recommendation %s", self.kind.value, rec_id)
        else:
            logger.info("Delete of unknown %s recommendation %s ignored", self.kind.value, rec_id)

    def _find(self, rec_id: str) -> Recommendation | None:
        return next((rec for rec in self._records if rec.id == rec_id), None)

    async def _refresh(self, rec_id: str) -> Recommendation | None:
        """Replace one cached record with the repository's copy, or drop it if gone."""
        fresh = await self._repository.fetch_one(rec_id)
        self._records = [r for r in self._records if r.id != rec_id]
        if fresh is not None:
            self._records.append(fresh)
            self._records.sort(key=lambda r: r.created_at, reverse=True)
        return fresh

    async def _require(self, rec_id: str, expected_version: int | None) -> Recommendation:
        """The record to mutate, re-read from the repository when the cache may be stale."""
        current = self._find(rec_id)
        if current is None or (expected_version is not None and expected_version != current.version):
            current = await self._refresh(rec_id)
        if current is None:
            raise NotFound(f"{self.kind.value} recommendation {rec_id} not found")
        if expected_version is not None and expected_version != current.version:
            raise Conflict(
                f"Recommendation {rec_id} is at version {current.version}, "
                f"not {expected_version}"
            )
        return current

    def _merge(self, current: Recommendation, changes: dict[str, Any], now: datetime) -> Recommendation:
        fields = dict(changes)

        cleared = sorted(name for name in REQUIRED_FIELDS if name in fields and fields[name] is None)
        if cleared:
            raise ValidationError(f"Fields cannot be cleared: {', '.join(cleared)}")

        if "side" in fields:
            try:
                fields["side"] = TradeSide(fields["side"])
            except ValueError:
                raise ValidationError(f"Unknown trade side: {fields['side']!r}") from None
        if "targets" in fields:
            fields["targets"] = tuple(fields["targets"])
        if "symbol" in fields and isinstance(fields["symbol"], str):
            fields["symbol"] = fields["symbol"].strip()

        if "exit_reason" in fields:
            if fields["exit_reason"] is None:
                fields.setdefault("exit_price", None)
                fields["exited_at"] = None
            else:
                reason = _coerce_exit_reason(fields["exit_reason"])
                fields["exit_reason"] = reason
                fields["exited_at"] = current.exited_at or now
                if not reason.requires_price:
                    fields["exit_price"] = None

        return replace(current, **fields)

    async def _write(self, updated: Recommendation, expected_version: int) -> None:
        """Persist then swap the record into the read model.

        On a version conflict the cached copy is replaced with the stored row,
        so the caller can retry against the current version.
        """
        try:
            await self._repository.update(updated, expected_version)
        except Conflict:
            fresh = await self._refresh(updated.id)
            logger.warning(
                "Version conflict on %s recommendation %s, cache now at version %s",
                self.kind.value, updated.id, fresh.version if fresh else "deleted",
            )
            raise
        for i, rec in enumerate(self._records):
            if rec.id == updated.id:
                self._records[i] = updated
                break
