"""
vangdata_pipeline — historical backfill workers and the automation scheduler.

Architecture:
  backfill/    — job store, manager, executor, chunk planning, dedup, rate limiting
  sources/     — one adapter per upstream historical price API (vang.today, SJC, Onus)
  transforms/  — external code → canonical snapshot normalization
  loaders/     — batched Supabase inserts and upserts
  scheduler/   — hourly automation tick and its handler registry
  utils/       — structlog configuration, exponential-backoff retries

Quick start:
    from vangdata_pipeline.backfill.manager import BackfillManager
    from vangdata_pipeline.backfill.executor import BackfillExecutor
    import asyncio

    job_id = BackfillManager().create_job(
        "src-vangtoday", "full_historical", {"days": 7, "types": "all"}, requester=None
    )
    asyncio.run(BackfillExecutor(job_id).run())

CLI:
    vangdata-pipeline backfill create src-vangtoday --days 7 --run
    vangdata-pipeline backfill drain
    vangdata-pipeline scheduler tick
"""

__version__ = "0.1.0"
