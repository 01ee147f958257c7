"""
Callback Notifier
POSTs progress events to the job's callback_url so the workflow that queued
the migration hears about it without polling
"""
import asyncio
import logging
from typing import Optional

import aiohttp

from product_migrator.core.models import MigrationJob, ProgressEvent

logger = logging.getLogger(__name__)


class CallbackNotifier:
    """Delivers events to webhook URLs; delivery failures never affect the job"""

    def __init__(self, timeout_seconds: float = 10.0, terminal_only: bool = False,
                 session: Optional[aiohttp.ClientSession] = None):
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.terminal_only = terminal_only
        self.session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self.session

    async def notify(self, job: MigrationJob, event: ProgressEvent) -> bool:
        """
        Send one event to the job's callback URL

        Returns:
            True when the callback accepted it, False otherwise (or when no URL is set)
        """
        url = job.options.callback_url
        if not url:
            return False
        if self.terminal_only and not event.is_terminal:
            return False

        payload = event.to_json_dict()
        payload['targetPlatform'] = job.target_platform
        try:
            session = await self._get_session()
            async with session.post(url, json=payload) as response:
                if response.status >= 400:
                    logger.warning(f"Callback {url} rejected {event.stage.value} event: HTTP {response.status}")
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Callback {url} failed for job {job.job_id}: {e}")
            return False

        logger.debug(f"Callback delivered {event.stage.value} for job {job.job_id}")
        return True

    async def close(self):
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None


# Global instance
callback_notifier = CallbackNotifier()
