"""Quota ledger: per-caller free-tier usage accounting.

Usage is recorded per (provider, model, caller, UTC day) in ``ai_usage``
rows holding minute, hour and day windows. Every mutation for one key is
serialized by an in-process lock; concurrent first inserts from other
processes are resolved by the unique constraint and a single retry.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from aigeek.config import QuotaConfig
from aigeek.db import Database, FreeTierRecord, UsageRecord, as_utc, utcnow
from aigeek.quota.limits import (
    critical_at_limit,
    current_values,
    evaluate_limits,
    hour_start,
    minute_start,
    roll_windows,
    utc_day,
)
from aigeek.types import (
    AdmissionDecision,
    DayWindow,
    HourWindow,
    LimitDimension,
    LimitSet,
    MeterResult,
    MinuteWindow,
    ModelUsage,
    UsageDelta,
    UsageSnapshot,
    UsageSummary,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

LedgerKey = tuple[str, str, str, date]


class QuotaLedger:
    """Tracks usage against free-tier limits and answers admission checks.

    Args:
        db: Database holding usage and free-tier rows
        config: Thresholds and per-provider critical dimensions
        clock: Returns the current time; injectable for tests
    """

    def __init__(
        self,
        db: Database,
        config: Optional[QuotaConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.config = config or QuotaConfig()
        self._clock = clock
        self._locks: dict[LedgerKey, asyncio.Lock] = {}
        self._lock_day: Optional[date] = None

    def now(self) -> datetime:
        return as_utc(self._clock())

    def _lock_for(self, key: LedgerKey) -> asyncio.Lock:
        day = key[3]
        if self._lock_day != day:
            # Locks for previous days guard nothing anymore
            self._locks = {k: v for k, v in self._locks.items() if k[3] >= day}
            self._lock_day = day
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # ------------------------------------------------------------------
    # Record helpers
    # ------------------------------------------------------------------

    async def _load(
        self,
        session: AsyncSession,
        provider: str,
        model_id: str,
        caller_id: str,
        day: date,
    ) -> Optional[UsageRecord]:
        result = await session.execute(
            select(UsageRecord).where(
                UsageRecord.provider == provider,
                UsageRecord.model_id == model_id,
                UsageRecord.caller_id == caller_id,
                UsageRecord.day == day,
            )
        )
        return result.scalar_one_or_none()

    async def _free_tier_limits(self, session: AsyncSession, provider: str, model_id: str) -> LimitSet:
        result = await session.execute(
            select(FreeTierRecord).where(
                FreeTierRecord.provider == provider,
                FreeTierRecord.model_id == model_id,
            )
        )
        free_tier = result.scalar_one_or_none()
        if free_tier is None:
            return LimitSet()
        return LimitSet(**(free_tier.limits or {}))

    @staticmethod
    def _windows(record: UsageRecord) -> tuple[MinuteWindow, HourWindow, DayWindow]:
        return (
            MinuteWindow(
                requests=record.minute_requests,
                tokens=record.minute_tokens,
                audio_seconds=record.minute_audio_seconds,
                window_start=as_utc(record.minute_window_start),
            ),
            HourWindow(
                audio_seconds=record.hour_audio_seconds,
                window_start=as_utc(record.hour_window_start),
            ),
            DayWindow(
                requests=record.day_requests,
                tokens=record.day_tokens,
                audio_seconds=record.day_audio_seconds,
                window_date=record.day_window_date,
            ),
        )

    def _snapshot(
        self,
        provider: str,
        model_id: str,
        caller_id: str,
        day: date,
        minute: MinuteWindow,
        hour: HourWindow,
        day_window: DayWindow,
        limits: LimitSet,
    ) -> UsageSnapshot:
        percentages, near, at = evaluate_limits(
            current_values(minute, hour, day_window),
            limits,
            self.config.near_limit_threshold,
            self.config.at_limit_threshold,
        )
        return UsageSnapshot(
            provider=provider,
            model_id=model_id,
            caller_id=caller_id,
            day=day,
            minute=minute,
            hour=hour,
            current_day=day_window,
            limits=limits,
            percentages=percentages,
            is_near_limit=near,
            is_at_limit=at,
        )

    def _record_snapshot(self, record: UsageRecord, now: datetime) -> UsageSnapshot:
        """Snapshot of a record with stale windows rolled (not persisted)."""
        minute, hour, day_window = roll_windows(*self._windows(record), now)
        return self._snapshot(
            record.provider,
            record.model_id,
            record.caller_id,
            record.day,
            minute,
            hour,
            day_window,
            LimitSet(**(record.limits or {})),
        )

    def _store(self, record: UsageRecord, snapshot: UsageSnapshot) -> None:
        """Write snapshot counters, markers and flags back onto the record."""
        record.minute_requests = snapshot.minute.requests
        record.minute_tokens = snapshot.minute.tokens
        record.minute_audio_seconds = snapshot.minute.audio_seconds
        record.minute_window_start = snapshot.minute.window_start
        record.hour_audio_seconds = snapshot.hour.audio_seconds
        record.hour_window_start = snapshot.hour.window_start
        record.day_requests = snapshot.current_day.requests
        record.day_tokens = snapshot.current_day.tokens
        record.day_audio_seconds = snapshot.current_day.audio_seconds
        record.day_window_date = snapshot.current_day.window_date
        record.percentages = snapshot.percentages.model_dump()
        record.near_limit = snapshot.is_near_limit.model_dump()
        record.at_limit = snapshot.is_at_limit.model_dump()

    def _add(self, snapshot: UsageSnapshot, delta: UsageDelta) -> UsageSnapshot:
        """New snapshot with ``delta`` added to every window."""
        minute = snapshot.minute.model_copy(update={
            "requests": snapshot.minute.requests + delta.requests,
            "tokens": snapshot.minute.tokens + delta.total_tokens,
            "audio_seconds": snapshot.minute.audio_seconds + delta.audio_seconds,
        })
        hour = snapshot.hour.model_copy(update={
            "audio_seconds": snapshot.hour.audio_seconds + delta.audio_seconds,
        })
        day_window = snapshot.current_day.model_copy(update={
            "requests": snapshot.current_day.requests + delta.requests,
            "tokens": snapshot.current_day.tokens + delta.total_tokens,
            "audio_seconds": snapshot.current_day.audio_seconds + delta.audio_seconds,
        })
        return self._snapshot(
            snapshot.provider,
            snapshot.model_id,
            snapshot.caller_id,
            snapshot.day,
            minute,
            hour,
            day_window,
            snapshot.limits,
        )

    async def _mutate(
        self,
        provider: str,
        model_id: str,
        caller_id: str,
        apply: Callable[[UsageRecord, UsageSnapshot], T],
    ) -> T:
        """Run ``apply`` on today's record under the key lock, creating it if needed.

        ``apply`` receives the record and its rolled snapshot and is
        responsible for storing any change.
        """
        now = self.now()
        day = utc_day(now)

        async with self._lock_for((provider, model_id, caller_id, day)):
            try:
                return await self._apply_once(provider, model_id, caller_id, now, apply)
            except IntegrityError:
                # Another process created today's row first; it exists now
                logger.debug(
                    "Concurrent usage record insert for %s/%s/%s, retrying",
                    provider, model_id, caller_id,
                )
                return await self._apply_once(provider, model_id, caller_id, now, apply)

    async def _apply_once(
        self,
        provider: str,
        model_id: str,
        caller_id: str,
        now: datetime,
        apply: Callable[[UsageRecord, UsageSnapshot], T],
    ) -> T:
        day = utc_day(now)
        async with self.db.session() as session:
            record = await self._load(session, provider, model_id, caller_id, day)
            if record is None:
                limits = await self._free_tier_limits(session, provider, model_id)
                record = UsageRecord(
                    provider=provider,
                    model_id=model_id,
                    caller_id=caller_id,
                    day=day,
                    minute_requests=0,
                    minute_tokens=0,
                    minute_audio_seconds=0.0,
                    minute_window_start=minute_start(now),
                    hour_audio_seconds=0.0,
                    hour_window_start=hour_start(now),
                    day_requests=0,
                    day_tokens=0,
                    day_audio_seconds=0.0,
                    day_window_date=day,
                    limits=limits.model_dump(),
                    percentages={},
                    near_limit={},
                    at_limit={},
                )
                session.add(record)
            result = apply(record, self._record_snapshot(record, now))
            await session.flush()
            return result

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def record_usage(
        self,
        provider: str,
        model_id: str,
        caller_id: str,
        delta: UsageDelta,
    ) -> UsageSnapshot:
        """Add usage for a caller and return the updated snapshot.

        Args:
            provider: Provider name
            model_id: Model identifier
            caller_id: Caller identifier
            delta: Requests, tokens and audio seconds to add

        Returns:
            Snapshot after the update
        """
        def apply(record: UsageRecord, snapshot: UsageSnapshot) -> UsageSnapshot:
            updated = self._add(snapshot, delta)
            self._store(record, updated)
            return updated

        snapshot = await self._mutate(provider, model_id, caller_id, apply)
        if snapshot.is_at_limit.any():
            logger.warning(
                "%s/%s caller %s at free-tier limit: %s",
                provider, model_id, caller_id,
                ", ".join(d.value for d in snapshot.is_at_limit.flagged()),
            )
        return snapshot

    async def meter(
        self,
        provider: str,
        model_id: str,
        caller_id: str,
        delta: UsageDelta,
        reservation: Optional[AdmissionDecision] = None,
    ) -> MeterResult:
        """Record usage and report whether it fit inside the free limits.

        ``within_limits`` is true when the model has tracked limits and no
        dimension was at its limit before this update.

        A ``reservation`` held on the same key is consumed by this update:
        its request is backed out before the check and the full ``delta``
        is added, all under one lock.
        """
        held = reservation.usage if reservation is not None and reservation.reserved else None
        if held is not None and (held.provider, held.model_id, held.caller_id) != (provider, model_id, caller_id):
            raise ValueError("reservation was made for a different usage key")

        def apply(record: UsageRecord, snapshot: UsageSnapshot) -> MeterResult:
            if held is not None and held.day == snapshot.day:
                snapshot = self._unreserve(snapshot, held)
            within = not snapshot.limits.is_empty and not snapshot.is_at_limit.any()
            updated = self._add(snapshot, delta)
            self._store(record, updated)
            return MeterResult(snapshot=updated, within_limits=within)

        return await self._mutate(provider, model_id, caller_id, apply)

    async def get_usage_status(self, provider: str, model_id: str, caller_id: str) -> UsageSnapshot:
        """Read-only snapshot of today's usage.

        Returns a zeroed snapshot (with the model's free-tier limits) when
        the caller has no usage today.
        """
        now = self.now()
        day = utc_day(now)
        async with self.db.session() as session:
            record = await self._load(session, provider, model_id, caller_id, day)
            if record is not None:
                return self._record_snapshot(record, now)
            limits = await self._free_tier_limits(session, provider, model_id)

        minute, hour, day_window = roll_windows(MinuteWindow(), HourWindow(), DayWindow(), now)
        return self._snapshot(provider, model_id, caller_id, day, minute, hour, day_window, limits)

    def _decide(self, provider: str, snapshot: UsageSnapshot) -> AdmissionDecision:
        critical = self.config.critical_for(provider)
        exhausted = critical_at_limit(snapshot.is_at_limit, critical)
        if exhausted:
            return AdmissionDecision(
                admissible=False,
                reason=f"Free tier limit reached: {', '.join(d.value for d in exhausted)}",
                critical_dimensions=critical,
                usage=snapshot,
            )
        return AdmissionDecision(admissible=True, critical_dimensions=critical, usage=snapshot)

    async def is_admissible(self, provider: str, model_id: str, caller_id: str) -> AdmissionDecision:
        """Check whether a caller may use a model right now.

        Only the provider's critical dimensions are evaluated.
        """
        snapshot = await self.get_usage_status(provider, model_id, caller_id)
        return self._decide(provider, snapshot)

    async def reserve(self, provider: str, model_id: str, caller_id: str) -> AdmissionDecision:
        """Atomically check admission and reserve one request.

        The reservation counts toward request limits immediately; commit the
        call's tokens later with ``record_usage`` using ``requests=0`` or undo
        it with ``release``.
        """
        def apply(record: UsageRecord, snapshot: UsageSnapshot) -> AdmissionDecision:
            decision = self._decide(provider, snapshot)
            if not decision.admissible:
                return decision
            updated = self._add(snapshot, UsageDelta(requests=1))
            self._store(record, updated)
            return decision.model_copy(update={"usage": updated, "reserved": True})

        decision = await self._mutate(provider, model_id, caller_id, apply)
        if not decision.admissible:
            logger.info("Admission denied for %s/%s caller %s: %s", provider, model_id, caller_id, decision.reason)
        return decision

    def _unreserve(self, snapshot: UsageSnapshot, reserved: UsageSnapshot) -> UsageSnapshot:
        """Back out one reserved request from the windows it was counted in."""
        minute = snapshot.minute
        if minute.window_start == reserved.minute.window_start:
            minute = minute.model_copy(update={"requests": max(0, minute.requests - 1)})
        day_window = snapshot.current_day
        if day_window.window_date == reserved.current_day.window_date:
            day_window = day_window.model_copy(update={"requests": max(0, day_window.requests - 1)})
        return self._snapshot(
            snapshot.provider,
            snapshot.model_id,
            snapshot.caller_id,
            snapshot.day,
            minute,
            snapshot.hour,
            day_window,
            snapshot.limits,
        )

    async def release(self, reservation: AdmissionDecision) -> Optional[UsageSnapshot]:
        """Undo a reservation whose call did not complete.

        Only counters whose window is still the one the reservation was
        made in are decremented, and never below zero.
        """
        if not reservation.reserved or reservation.usage is None:
            return None

        reserved = reservation.usage
        now = self.now()
        if utc_day(now) != reserved.day:
            return None

        def apply(record: UsageRecord, snapshot: UsageSnapshot) -> UsageSnapshot:
            updated = self._unreserve(snapshot, reserved)
            self._store(record, updated)
            return updated

        return await self._mutate(reserved.provider, reserved.model_id, reserved.caller_id, apply)

    async def summarize(self, provider: str, caller_id: str) -> UsageSummary:
        """Aggregate today's usage for a caller across all of a provider's models."""
        now = self.now()
        day = utc_day(now)
        async with self.db.session() as session:
            result = await session.execute(
                select(UsageRecord)
                .where(
                    UsageRecord.provider == provider,
                    UsageRecord.caller_id == caller_id,
                    UsageRecord.day == day,
                )
                .order_by(UsageRecord.model_id)
            )
            snapshots = [self._record_snapshot(record, now) for record in result.scalars().all()]

        summary = UsageSummary(provider=provider, caller_id=caller_id)
        for snapshot in snapshots:
            summary.total_requests += snapshot.current_day.requests
            summary.total_tokens += snapshot.current_day.tokens
            summary.total_audio_seconds += snapshot.current_day.audio_seconds
            summary.models.append(ModelUsage(
                model_id=snapshot.model_id,
                requests=snapshot.current_day.requests,
                tokens=snapshot.current_day.tokens,
                audio_seconds=snapshot.current_day.audio_seconds,
                percentages=snapshot.percentages,
                is_near_limit=snapshot.is_near_limit,
                is_at_limit=snapshot.is_at_limit,
            ))
            summary.is_near_any_limit = summary.is_near_any_limit or snapshot.is_near_limit.any()
            summary.is_at_any_limit = summary.is_at_any_limit or snapshot.is_at_limit.any()
        return summary

    def critical_dimensions(self, provider: str) -> list[LimitDimension]:
        return self.config.critical_for(provider)
