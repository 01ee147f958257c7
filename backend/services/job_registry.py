"""
Job Registry
Live migration jobs keyed by job id, plus one lock per (platform, account) so
that jobs writing the same session cookies never run at the same time
"""
import asyncio
import logging
from typing import Dict, Optional, Set, Tuple

from product_migrator.core.models import MigrationJob

logger = logging.getLogger(__name__)


class JobRegistry:
    """In-process registry of queued and running jobs"""

    def __init__(self):
        self.jobs: Dict[str, MigrationJob] = {}
        self.locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self.lock_users: Dict[Tuple[str, str], int] = {}
        self.cancelled: Set[str] = set()

    @staticmethod
    def account_key(job: MigrationJob) -> Tuple[str, str]:
        return job.target_platform.strip().lower(), job.account.strip().lower()

    def register(self, job: MigrationJob) -> bool:
        """Add a job; False when a job with the same id is still live"""
        if job.job_id in self.jobs:
            return False
        self.jobs[job.job_id] = job
        return True

    def unregister(self, job_id: str):
        self.jobs.pop(job_id, None)
        self.cancelled.discard(job_id)

    def get(self, job_id: str) -> Optional[MigrationJob]:
        return self.jobs.get(job_id)

    def is_live(self, job_id: str) -> bool:
        return job_id in self.jobs

    def account_lock(self, job: MigrationJob) -> asyncio.Lock:
        """Lock for the job's account; pair every call with release_account_lock"""
        key = self.account_key(job)
        self.lock_users[key] = self.lock_users.get(key, 0) + 1
        return self.locks.setdefault(key, asyncio.Lock())

    def release_account_lock(self, job: MigrationJob):
        """Forget the account's lock once no queued or running job holds a reference"""
        key = self.account_key(job)
        users = self.lock_users.get(key, 0) - 1
        if users > 0:
            self.lock_users[key] = users
        else:
            self.lock_users.pop(key, None)
            self.locks.pop(key, None)

    def mark_cancelled(self, job_id: str) -> bool:
        """Flag a live job so it is dropped if it has not started yet"""
        if job_id not in self.jobs:
            return False
        self.cancelled.add(job_id)
        return True

    def is_cancelled(self, job_id: str) -> bool:
        return job_id in self.cancelled


# Global instance
job_registry = JobRegistry()
