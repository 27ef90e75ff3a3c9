"""
Background Jobs Module

Handles scheduled tasks for:
- Marking unpaid bills past their due date as overdue
"""

from jelantah.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler
from jelantah.jobs.overdue_bills import run_overdue_bills_job

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "run_overdue_bills_job",
]
