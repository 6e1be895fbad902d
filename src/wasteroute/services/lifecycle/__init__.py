"""Cluster lifecycle management and scheduled jobs."""

from .jobs import JobRegistry, next_daily_run
from .service import Assignment, ClusterLifecycleService

__all__ = ["Assignment", "ClusterLifecycleService", "JobRegistry", "next_daily_run"]
