"""
vangdata_pipeline.backfill — historical price backfill orchestration.

  store.py         — BackfillJobStore: backfill_jobs / backfill_job_logs persistence
  manager.py       — BackfillManager: create, list, pause, resume, cancel, delete
  executor.py      — BackfillExecutor + spawn_backfill(): the long-running engine
  chunks.py        — date span → ordered (day[, type]) chunks after the cursor
  deduplicator.py  — day-granularity duplicate detection
  rate_limiter.py  — per-source sliding-window limiter shared by executors

Import the modules directly. This __init__ must stay import-free because
sources.base imports rate_limiter.
"""
