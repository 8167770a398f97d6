"""
vangdata_shared — shared utilities, models, and configuration for the vangdata platform.

Usage:
    from vangdata_shared.config import settings
    from vangdata_shared.db import get_supabase_client
    from vangdata_shared.models.backfill import BackfillJob, parse_job_config
    from vangdata_shared.errors import ConflictError, NotFoundError, ValidationError
    from vangdata_shared.constants import JobStatus, TERMINAL_STATUSES
"""

__version__ = "0.1.0"
