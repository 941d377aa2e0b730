"""Task manager: periodic background jobs.

- ``delete_expired_invoices``: reconcile and remove expired unpaid invoices
- ``prune_wait_registry``: drop stale cached payment resolutions
"""

from __future__ import annotations

from lightning_charge.taskmanager.manager import CronJob, TaskManager

__all__ = ["CronJob", "TaskManager"]
