"""
Refresh Worker — Async coordinator for building compliance refreshes.

Pipeline per building:
1. Fetch the four registries concurrently, each under its own timeout
2. Normalize every payload (malformed records skipped and counted)
3. Fall back to cached per-source violations for any registry that failed
4. Score + compute exposure from the merged violation set
5. Commit one snapshot atomically (shielded, serialized per building)
6. Evaluate the escalation state machine on the fresh risk tier
7. Write the audit entry

Buildings fan out under a semaphore. Concurrent requests for one building
share a single in-flight refresh; an on-demand request replaces an in-flight
interval refresh and every waiter receives the newer result.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Mapping, Protocol

from fieldops.audit.logger import AuditLogger
from fieldops.cache.snapshot_cache import InMemorySnapshotCache, SnapshotStore
from fieldops.config import settings
from fieldops.core.compliance_scorer import ComplianceScorer
from fieldops.core.directory import BuildingDirectory, StaticBuildingDirectory
from fieldops.core.errors import AllSourcesUnavailable, SourceFetchFailure
from fieldops.core.exposure import compute_exposure
from fieldops.core.normalizer import NormalizationResult, normalize_batch
from fieldops.engine.escalation import EscalationStateMachine
from fieldops.models.refresh_models import (
    BuildingRefreshResult,
    BuildingSnapshot,
    RefreshAuditEntry,
    RefreshResult,
    RefreshTrigger,
)
from fieldops.models.violation_models import SourceAuthority, Violation

logger = logging.getLogger("fieldops.worker")

SourceOutcome = NormalizationResult | SourceFetchFailure


class RegistryClient(Protocol):
    async def fetch(self, building_identifier: str) -> list[dict]: ...


@dataclass
class _InFlight:
    task: asyncio.Task
    trigger: RefreshTrigger
    generation: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshCoordinator:
    """Keeps building snapshots current against the registries."""

    def __init__(
        self,
        sources: Mapping[SourceAuthority | str, RegistryClient],
        cache: SnapshotStore | None = None,
        scorer: ComplianceScorer | None = None,
        escalation: EscalationStateMachine | None = None,
        directory: BuildingDirectory | None = None,
        audit: AuditLogger | None = None,
        max_concurrency: int | None = None,
        fetch_timeout: float | None = None,
    ) -> None:
        self.sources: dict[SourceAuthority, RegistryClient] = {
            SourceAuthority(authority): client for authority, client in sources.items()
        }
        self.cache = cache if cache is not None else InMemorySnapshotCache()
        self.scorer = scorer or ComplianceScorer()
        self.escalation = escalation or EscalationStateMachine(audit=audit)
        self.directory = directory or StaticBuildingDirectory()
        self.audit = audit
        self.fetch_timeout = fetch_timeout or settings.source_fetch_timeout

        self._semaphore = asyncio.Semaphore(max_concurrency or settings.refresh_max_concurrency)
        self._generation = 0
        self._committed: dict[str, int] = {}  # building_id -> generation of current snapshot
        self._inflight: dict[str, _InFlight] = {}
        self._locks: dict[str, asyncio.Lock] = {}

        self._interval_task: asyncio.Task | None = None
        self.scheduled_building_ids: list[str] = []
        self.scheduled_interval: float | None = None

    # ── Refresh now ──

    async def refresh(
        self,
        building_ids: Iterable[str],
        trigger: RefreshTrigger = "on_demand",
    ) -> RefreshResult:
        """
        Refresh the given buildings and return one outcome per building.

        A failure for one building never aborts the others.
        """
        refresh_id = str(uuid.uuid4())[:8]
        started_at = _utcnow()
        start_time = time.monotonic()
        ids = list(dict.fromkeys(building_ids))

        logger.info(f"[{refresh_id}] Starting {trigger} refresh of {len(ids)} building(s)")

        outcomes = await asyncio.gather(*(self._request(b, trigger) for b in ids))

        result = RefreshResult(
            trigger=trigger,
            results={o.building_id: o for o in outcomes},
            started_at=started_at,
            completed_at=_utcnow(),
            duration_ms=round((time.monotonic() - start_time) * 1000, 1),
        )
        logger.info(
            f"[{refresh_id}] Refresh complete: {len(result.succeeded)} ok, "
            f"{len(result.failed)} without data, stale={result.stale} "
            f"({result.duration_ms:.0f}ms)"
        )
        return result

    # ── Refresh on interval ──

    async def run_on_interval(
        self,
        building_ids: Iterable[str],
        interval_seconds: float | None = None,
    ) -> None:
        """Refresh the buildings forever, sleeping `interval_seconds` between cycles."""
        ids = list(building_ids)
        interval = interval_seconds or settings.refresh_interval_seconds
        logger.info(f"Interval refresh every {interval:.0f}s for {len(ids)} building(s)")

        while True:
            try:
                await self.refresh(ids, trigger="interval")
            except Exception:
                logger.exception("Interval refresh cycle failed")
            await asyncio.sleep(interval)

    def start_interval(
        self,
        building_ids: Iterable[str],
        interval_seconds: float | None = None,
    ) -> asyncio.Task:
        """Schedule interval refreshes, replacing any existing schedule."""
        if self._interval_task and not self._interval_task.done():
            self._interval_task.cancel()

        self.scheduled_building_ids = list(building_ids)
        self.scheduled_interval = interval_seconds or settings.refresh_interval_seconds
        self._interval_task = asyncio.get_running_loop().create_task(
            self.run_on_interval(self.scheduled_building_ids, self.scheduled_interval),
            name="fieldops-interval-refresh",
        )
        return self._interval_task

    async def stop_interval(self) -> bool:
        """Cancel the interval schedule. Returns whether one was running."""
        task, self._interval_task = self._interval_task, None
        self.scheduled_building_ids = []
        self.scheduled_interval = None
        if task is None or task.done():
            return False

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Interval refresh stopped")
        return True

    @property
    def interval_running(self) -> bool:
        return self._interval_task is not None and not self._interval_task.done()

    # ── Request coalescing ──

    async def _request(self, building_id: str, trigger: RefreshTrigger) -> BuildingRefreshResult:
        entry = self._inflight.get(building_id)

        if entry is None or entry.task.done():
            entry = self._start(building_id, trigger)
        elif trigger == "on_demand" and entry.trigger == "interval":
            logger.info(f"[{building_id}] On-demand refresh supersedes in-flight interval refresh")
            entry.task.cancel()
            entry = self._start(building_id, trigger)
        else:
            logger.debug(f"[{building_id}] Joining in-flight {entry.trigger} refresh")

        while True:
            try:
                return await asyncio.shield(entry.task)
            except asyncio.CancelledError:
                replacement = self._inflight.get(building_id)
                if not entry.task.cancelled() or replacement is None or replacement is entry:
                    raise
                entry = replacement

    def _start(self, building_id: str, trigger: RefreshTrigger) -> _InFlight:
        self._generation += 1
        task = asyncio.get_running_loop().create_task(
            self._refresh_building(building_id, trigger, self._generation),
            name=f"refresh:{building_id}:{self._generation}",
        )
        entry = _InFlight(task=task, trigger=trigger, generation=self._generation)
        self._inflight[building_id] = entry
        task.add_done_callback(lambda _t: self._finish(building_id, entry))
        return entry

    def _finish(self, building_id: str, entry: _InFlight) -> None:
        if self._inflight.get(building_id) is entry:
            del self._inflight[building_id]

    def _lock(self, building_id: str) -> asyncio.Lock:
        return self._locks.setdefault(building_id, asyncio.Lock())

    # ── Per-building pipeline ──

    async def _refresh_building(
        self,
        building_id: str,
        trigger: RefreshTrigger,
        generation: int,
    ) -> BuildingRefreshResult:
        start_time = time.monotonic()
        try:
            async with self._semaphore:
                fetched = await self._fetch_sources(building_id)
            result = await asyncio.shield(self._commit(building_id, fetched, generation))
        except asyncio.CancelledError:
            logger.info(f"[{building_id}] {trigger} refresh cancelled")
            raise
        except AllSourcesUnavailable as e:
            logger.warning(str(e))
            result = BuildingRefreshResult(
                building_id=building_id,
                status="unknown",
                failed_sources=[SourceAuthority(f.authority) for f in e.failures],
                missing_sources=list(self.sources),
                error=str(e),
            )
        except Exception as e:
            logger.exception(f"[{building_id}] Refresh failed")
            snapshot = self.cache.get(building_id)
            result = BuildingRefreshResult(
                building_id=building_id,
                status="failed",
                last_successful_at=snapshot.computed_at if snapshot else None,
                error=f"{type(e).__name__}: {e}",
            )

        duration_ms = round((time.monotonic() - start_time) * 1000, 1)
        self._audit(result, trigger, duration_ms)
        return result

    async def _fetch_sources(self, building_id: str) -> dict[SourceAuthority, SourceOutcome]:
        authorities = list(self.sources)
        outcomes = await asyncio.gather(*(self._fetch_one(building_id, a) for a in authorities))
        return dict(zip(authorities, outcomes))

    async def _fetch_one(self, building_id: str, authority: SourceAuthority) -> SourceOutcome:
        identifier = self.directory.identifier_for(building_id, authority)
        try:
            raw = await asyncio.wait_for(
                self.sources[authority].fetch(identifier), timeout=self.fetch_timeout
            )
            if not isinstance(raw, list):
                raise TypeError(f"expected a list of records, got {type(raw).__name__}")
            return normalize_batch(authority, raw, building_id)
        except asyncio.TimeoutError:
            failure = SourceFetchFailure(
                authority.value, building_id, f"timed out after {self.fetch_timeout}s"
            )
        except Exception as e:
            failure = SourceFetchFailure(authority.value, building_id, e)

        logger.warning(str(failure))
        return failure

    async def _commit(
        self,
        building_id: str,
        fetched: dict[SourceAuthority, SourceOutcome],
        generation: int,
    ) -> BuildingRefreshResult:
        async with self._lock(building_id):
            previous = self.cache.get(building_id)

            if self._committed.get(building_id, 0) > generation:
                logger.info(f"[{building_id}] Newer refresh already committed, discarding result")
                return self._replay(building_id, previous, status="fresh")

            failures = [o for o in fetched.values() if isinstance(o, SourceFetchFailure)]
            failed_sources = [a for a, o in fetched.items() if isinstance(o, SourceFetchFailure)]

            if len(failures) == len(fetched):
                if previous is None:
                    raise AllSourcesUnavailable(building_id, failures)
                logger.warning(
                    f"[{building_id}] No registry answered, serving snapshot from "
                    f"{previous.computed_at.isoformat()}"
                )
                self.cache.mark_stale(building_id, failed_sources)
                return self._replay(
                    building_id, previous, status="stale", failed_sources=failed_sources
                )

            now = _utcnow()
            source_violations: dict[SourceAuthority, list[Violation]] = {}
            source_fetched_at: dict[SourceAuthority, datetime] = {}
            missing: list[SourceAuthority] = []
            malformed = 0

            for authority, outcome in fetched.items():
                if isinstance(outcome, NormalizationResult):
                    source_violations[authority] = outcome.violations
                    source_fetched_at[authority] = now
                    malformed += outcome.malformed
                elif previous is not None and authority in previous.source_violations:
                    source_violations[authority] = previous.source_violations[authority]
                    if authority in previous.source_fetched_at:
                        source_fetched_at[authority] = previous.source_fetched_at[authority]
                else:
                    missing.append(authority)

            violations = [v for vs in source_violations.values() for v in vs]
            score = self.scorer.score(building_id, violations, as_of=now)
            exposure = compute_exposure(violations, as_of=now)

            self.cache.put(
                BuildingSnapshot(
                    building_id=building_id,
                    source_violations=source_violations,
                    source_fetched_at=source_fetched_at,
                    score=score,
                    exposure=exposure,
                    computed_at=now,
                    generation=generation,
                ),
                failed_sources=failed_sources,
            )
            self._committed[building_id] = generation

            state = await self.escalation.evaluate(building_id, score.risk_tier)

            stale = bool(failures)
            logger.info(
                f"[{building_id}] score={score.score} grade={score.grade} "
                f"tier={score.risk_tier.value} exposure=${exposure.outstanding_fines:,.2f}"
                + (f" (stale: {', '.join(a.value for a in failed_sources)})" if stale else "")
            )
            return BuildingRefreshResult(
                building_id=building_id,
                status="stale" if stale else "fresh",
                stale=stale,
                score=score,
                exposure=exposure,
                emergency_state=state,
                failed_sources=failed_sources,
                missing_sources=missing,
                malformed_records=malformed,
                last_successful_at=now,
            )

    def _replay(
        self,
        building_id: str,
        snapshot: BuildingSnapshot | None,
        status: str,
        failed_sources: list[SourceAuthority] | None = None,
    ) -> BuildingRefreshResult:
        """Result built from the cached snapshot without recomputation."""
        return BuildingRefreshResult(
            building_id=building_id,
            status=status,
            stale=status == "stale",
            score=snapshot.score if snapshot else None,
            exposure=snapshot.exposure if snapshot else None,
            emergency_state=self.escalation.state(building_id),
            failed_sources=failed_sources or [],
            last_successful_at=snapshot.computed_at if snapshot else None,
        )

    def _audit(self, result: BuildingRefreshResult, trigger: RefreshTrigger, duration_ms: float) -> None:
        if not self.audit:
            return
        self.audit.log(
            RefreshAuditEntry(
                building_id=result.building_id,
                trigger=trigger,
                status=result.status,
                score=result.score.score if result.score else None,
                risk_tier=result.score.risk_tier.value if result.score else None,
                failed_sources=[a.value for a in result.failed_sources],
                malformed_records=result.malformed_records,
                duration_ms=duration_ms,
            )
        )
