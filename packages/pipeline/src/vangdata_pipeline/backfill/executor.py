"""
backfill/executor.py — Runs one backfill job chunk by chunk.

The executor is the only component that fetches data. It is started for a
job id, reads everything it needs from the database, and re-reads the job's
status before every chunk: a pause or cancel written by the manager is
observed at the next chunk boundary and the executor simply stops.

Per chunk:
  1. status check      → stop unless still running (a resumed job is taken back)
  2. fetch             → source adapter, retried on transient failures
  3. normalize         → external codes to canonical snapshots
  4. deduplicate       → drop (retailer, province, product_type, day) already backfilled
  5. insert            → price_snapshots
  6. save progress     → cursor + counters

A chunk that still fails after its retries is recorded in failed_items and
the job moves on; only errors outside a chunk fetch fail the whole job.

Usage:
    from vangdata_pipeline.backfill.executor import BackfillExecutor, spawn_backfill

    await BackfillExecutor(job_id).run()      # inline, e.g. from the CLI
    spawn_backfill(job_id)                    # supervised background task (API)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import structlog

from vangdata_shared.config import settings
from vangdata_shared.errors import ExternalFetchError, TransientFetchError, ValidationError
from vangdata_shared.models.backfill import BackfillJob, FailedItem
from vangdata_shared.models.prices import CrawlerSource
from vangdata_shared.time_utils import utcnow

from vangdata_pipeline.backfill.chunks import Chunk, job_days, plan_chunks
from vangdata_pipeline.backfill.deduplicator import PriceDeduplicator
from vangdata_pipeline.backfill.store import BackfillJobStore
from vangdata_pipeline.loaders.supabase_loader import SupabaseLoader
from vangdata_pipeline.sources import build_source
from vangdata_pipeline.sources.base import BaseHistoricalSource
from vangdata_pipeline.sources.catalogue import SourceCatalogue
from vangdata_pipeline.transforms.normalize import NormalizationMapper
from vangdata_pipeline.utils.logging import job_context
from vangdata_pipeline.utils.retry import retry_async

log = structlog.get_logger(__name__)

SourceFactory = Callable[[CrawlerSource], BaseHistoricalSource]

MAX_ERROR_MESSAGE = 2000


class BackfillExecutor:
    """
    Executes a single job. Construct one per run; instances are not reused.

    Args:
        job_id:         Job to execute.
        store:          Job store (defaults to a new BackfillJobStore).
        catalogue:      Source catalogue.
        deduplicator:   Snapshot deduplicator.
        loader:         Snapshot writer.
        source_factory: Builds the adapter for a catalogue row. Tests inject
                        fakes here.
    """

    def __init__(
        self,
        job_id: str,
        *,
        store: BackfillJobStore | None = None,
        catalogue: SourceCatalogue | None = None,
        deduplicator: PriceDeduplicator | None = None,
        loader: SupabaseLoader | None = None,
        source_factory: SourceFactory = build_source,
    ) -> None:
        self.job_id = job_id
        self.store = store or BackfillJobStore()
        self.catalogue = catalogue or SourceCatalogue()
        self.deduplicator = deduplicator or PriceDeduplicator()
        self.loader = loader or SupabaseLoader()
        self.source_factory = source_factory

        self._counters: dict[str, int] = {
            "items_processed": 0,
            "items_succeeded": 0,
            "items_failed": 0,
            "items_skipped": 0,
            "records_inserted": 0,
            "records_duplicate": 0,
        }
        self._failed_items: list[FailedItem] = []

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self) -> str | None:
        """
        Execute the job until it completes, is paused/cancelled, or fails.

        Never raises: any unexpected error is recorded as job status.

        Returns:
            The job's status when the executor stopped, or None if the job
            does not exist.
        """
        with job_context(job_id=self.job_id):
            try:
                return await self._run()
            except Exception as exc:
                log.exception("backfill_failed", error=str(exc))
                self._fail(exc)
                return "failed"

    async def _run(self) -> str | None:
        job = self.store.get(self.job_id)
        if job is None:
            log.warning("backfill_job_missing")
            return None
        if job.status not in ("pending", "running"):
            log.info("backfill_not_runnable", status=job.status)
            return job.status

        fields: dict[str, Any] = {}
        if job.started_at is None:
            fields["started_at"] = utcnow().isoformat()
        moved = self.store.transition(
            self.job_id, "running", from_statuses={"pending", "running"}, **fields
        )
        if moved is None:
            current = self.store.get_status(self.job_id)
            log.info("backfill_not_runnable", status=current)
            return current
        job = moved
        self._restore_counters(job)

        source = self.catalogue.get(job.source_id)
        if source is None:
            raise ValidationError(f"Source {job.source_id} not found")
        if not source.is_enabled:
            raise ValidationError(f"Source {job.source_id} is disabled")
        adapter = self.source_factory(source)
        adapter.reset()

        mapper = NormalizationMapper(job.source_id)
        await mapper.load()

        types = job.config.types
        if types == "all":
            codes = mapper.enabled_type_codes()
            if not codes:
                raise ValidationError(
                    f"No enabled type mappings for source {job.source_id}"
                )
            chunks = plan_chunks(job_days(job), None, job.progress_cursor)
            total = len(job_days(job))
        else:
            codes = list(types)
            chunks = plan_chunks(job_days(job), codes, job.progress_cursor)
            total = len(job_days(job)) * len(codes)

        if total != job.total_items:
            self.store.update_fields(self.job_id, total_items=total)

        self.store.append_log(
            self.job_id,
            "info",
            "Backfill started",
            {
                "source_id": job.source_id,
                "api_type": source.api_type,
                "chunks_remaining": len(chunks),
                "total_items": total,
                "resumed_from": job.progress_cursor.to_dict() if job.progress_cursor else None,
            },
        )
        log.info(
            "backfill_started",
            source_id=job.source_id,
            chunks_remaining=len(chunks),
            total_items=total,
        )

        t0 = time.monotonic()
        previous = job.progress_cursor
        for chunk in chunks:
            status = self.store.get_status(self.job_id)
            if status == "pending":
                # paused and resumed while the previous chunk was in flight
                status = self._take_back(chunk)
            if status != "running":
                self.store.append_log(
                    self.job_id,
                    "info",
                    f"Backfill stopped: job is {status}",
                    {"next_day": chunk.day.isoformat(), "next_type": chunk.type_code},
                )
                log.info("backfill_stopped", status=status, next_day=chunk.day.isoformat())
                return status

            wanted = [chunk.type_code] if chunk.type_code else codes
            await self._process_chunk(job, adapter, mapper, chunk, wanted)

            cursor = chunk.to_cursor()
            self.store.save_progress(
                self.job_id,
                cursor,
                previous=previous,
                progress_percent=_percent(self._counters["items_processed"], total),
                failed_items=[item.model_dump(mode="json") for item in self._failed_items],
                **self._counters,
            )
            previous = cursor

        done = self.store.transition(
            self.job_id,
            "completed",
            from_statuses={"running", "pending"},
            finished_at=utcnow().isoformat(),
            progress_percent=100.0,
        )
        duration_ms = int((time.monotonic() - t0) * 1000)
        if done is None:
            status = self.store.get_status(self.job_id)
            log.info("backfill_finished_externally", status=status)
            return status

        self.store.append_log(
            self.job_id,
            "info",
            "Backfill completed",
            {**self._counters, "duration_ms": duration_ms},
        )
        log.info("backfill_completed", duration_ms=duration_ms, **self._counters)
        return "completed"

    # ------------------------------------------------------------------
    # Chunk processing
    # ------------------------------------------------------------------

    async def _process_chunk(
        self,
        job: BackfillJob,
        adapter: BaseHistoricalSource,
        mapper: NormalizationMapper,
        chunk: Chunk,
        type_codes: list[str],
    ) -> None:
        day = chunk.day.isoformat()
        self._counters["items_processed"] += 1

        try:
            fetched = await retry_async(
                adapter.fetch_chunk,
                chunk.day,
                type_codes,
                max_attempts=settings.backfill_max_fetch_retries,
                base_delay=settings.backfill_retry_base_delay,
                max_delay=settings.backfill_retry_max_delay,
                retry_on=TransientFetchError,
            )
        except ExternalFetchError as exc:
            self._counters["items_failed"] += 1
            self._failed_items.append(
                FailedItem(day=chunk.day, type_code=chunk.type_code, error=str(exc))
            )
            self.store.append_log(
                self.job_id,
                "error",
                f"Failed to fetch {day}: {exc}",
                {"day": day, "type_code": chunk.type_code, "status": exc.status},
            )
            log.error("chunk_fetch_failed", day=day, type_code=chunk.type_code, error=str(exc))
            return

        self._counters["items_succeeded"] += 1
        for message in fetched.errors:
            self.store.append_log(
                self.job_id, "warn", message, {"day": day, "type_code": chunk.type_code}
            )

        normalized = mapper.normalize(fetched.units, job_id=job.id)
        for unit, reason in normalized.unmapped:
            self.store.append_log(
                self.job_id,
                "warn",
                f"Skipped unmapped unit: {reason}",
                {"day": day, "type_code": unit.type_code, "zone_code": unit.zone_code},
            )

        unique, duplicates = self.deduplicator.filter_duplicates_batch(normalized.snapshots)
        if unique:
            await self.loader.insert_snapshots(unique)

        self._counters["items_skipped"] += len(normalized.unmapped)
        self._counters["records_inserted"] += len(unique)
        self._counters["records_duplicate"] += len(duplicates)

        summary = {
            "saved": len(unique),
            "skipped": len(normalized.unmapped),
            "duplicate": len(duplicates),
        }
        self.store.append_log(
            self.job_id,
            "info",
            f"Processed {day}"
            + (f" [{chunk.type_code}]" if chunk.type_code else "")
            + f": {summary['saved']} saved, {summary['skipped']} skipped, "
            f"{summary['duplicate']} duplicate",
            {"day": day, "type_code": chunk.type_code, **summary},
        )
        log.info("chunk_processed", day=day, type_code=chunk.type_code, **summary)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _restore_counters(self, job: BackfillJob) -> None:
        for name in self._counters:
            self._counters[name] = getattr(job, name)
        self._failed_items = list(job.failed_items)

    def _take_back(self, chunk: Chunk) -> str | None:
        moved = self.store.transition(self.job_id, "running", from_statuses={"pending"})
        if moved is None:
            return self.store.get_status(self.job_id)
        self.store.append_log(
            self.job_id,
            "info",
            "Backfill resumed",
            {"next_day": chunk.day.isoformat(), "next_type": chunk.type_code},
        )
        log.info("backfill_resumed_in_flight", next_day=chunk.day.isoformat())
        return "running"

    def _fail(self, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        try:
            moved = self.store.transition(
                self.job_id,
                "failed",
                finished_at=utcnow().isoformat(),
                error_message=message[:MAX_ERROR_MESSAGE],
            )
            if moved is not None:
                self.store.append_log(
                    self.job_id,
                    "error",
                    f"Backfill failed: {message}",
                    {"error_type": type(exc).__name__},
                )
        except Exception:
            log.exception("backfill_failure_not_recorded")


def _percent(done: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(min(done / total, 1.0) * 100, 2)


# ---------------------------------------------------------------------------
# Supervised background execution
# ---------------------------------------------------------------------------

_running: dict[str, asyncio.Task[str | None]] = {}


def spawn_backfill(job_id: str, **kwargs: Any) -> asyncio.Task[str | None]:
    """
    Start an executor for `job_id` as a background task on the running loop.

    A job that already has a live task in this process is not started twice;
    the existing task is returned. That task picks up a resumed job at its
    next chunk boundary.
    """
    existing = _running.get(job_id)
    if existing is not None and not existing.done():
        log.info("backfill_already_running", job_id=job_id)
        return existing

    task = asyncio.create_task(
        BackfillExecutor(job_id, **kwargs).run(), name=f"backfill-{job_id}"
    )
    _running[job_id] = task

    def _done(t: asyncio.Task[str | None]) -> None:
        if _running.get(job_id) is t:
            del _running[job_id]
        if not t.cancelled():
            log.info("backfill_task_finished", job_id=job_id, status=t.result())

    task.add_done_callback(_done)
    log.info("backfill_spawned", job_id=job_id)
    return task


def running_jobs() -> list[str]:
    """Ids of jobs with a live executor task in this process."""
    return [job_id for job_id, task in _running.items() if not task.done()]


async def wait_for_backfills() -> None:
    """Await every executor task currently in flight."""
    tasks = [task for task in _running.values() if not task.done()]
    if tasks:
        await asyncio.gather(*tasks)


async def drain_pending_jobs(store: BackfillJobStore | None = None, **kwargs: Any) -> dict[str, str | None]:
    """
    Run every pending job to its stopping point, oldest first.

    Returns:
        {job_id: final status}
    """
    store = store or BackfillJobStore()
    results: dict[str, str | None] = {}
    for job_id in store.list_ids_by_status("pending"):
        results[job_id] = await BackfillExecutor(job_id, store=store, **kwargs).run()
    log.info("pending_jobs_drained", jobs=len(results))
    return results
