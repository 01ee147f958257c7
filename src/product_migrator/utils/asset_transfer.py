"""
Asset Transfer
Downloads remote product files/images with linear-backoff retry and stages
them on local disk for form upload
"""
import asyncio
import logging
import os
import re
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional
from urllib.parse import unquote, urlparse

import aiohttp

from ..core.errors import AssetDownloadFailed
from ..dom.interaction import pause

logger = logging.getLogger(__name__)


def _local_name(url: str) -> str:
    basename = unquote(Path(urlparse(url).path).name)
    basename = re.sub(r'[^A-Za-z0-9._-]+', '_', basename).strip('._')
    return f"{uuid.uuid4().hex[:12]}_{basename or 'asset'}"


class AssetTransfer:
    """Fetches assets into a staging directory"""

    def __init__(
        self,
        staging_dir: Path,
        base_delay_ms: int = 1500,
        timeout_seconds: float = 60.0,
        session: Optional[aiohttp.ClientSession] = None,
        chunk_size: int = 64 * 1024,
    ):
        """
        Args:
            staging_dir: Where downloaded files are written (created if missing)
            base_delay_ms: Backoff unit; attempt N waits base_delay_ms * N before retrying
            timeout_seconds: Total timeout for one GET
            session: Shared aiohttp session; a short-lived one is opened per fetch when omitted
        """
        self.staging_dir = Path(staging_dir)
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        self.base_delay_ms = base_delay_ms
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session = session
        self.chunk_size = chunk_size

    async def fetch_to_local(self, url: str, max_retries: int = 3) -> Path:
        """
        Download ``url`` to the staging directory

        Each attempt is a full, independent GET. A failed attempt leaves no
        partial file behind.

        Raises:
            AssetDownloadFailed: all attempts failed
        """
        max_retries = max(1, max_retries)
        target = self.staging_dir / _local_name(url)
        partial = target.with_name(target.name + '.part')
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_retries + 1):
            logger.info(f"📥 Downloading asset (attempt {attempt}/{max_retries}): {url}")
            try:
                await self._download(url, partial)
                os.replace(partial, target)
                logger.info(f"✅ Asset staged: {target.name}")
                return target
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                last_error = e
                partial.unlink(missing_ok=True)
                logger.warning(f"Download attempt {attempt} failed for {url}: {e}")

            if attempt < max_retries:
                await pause(self.base_delay_ms * attempt)

        raise AssetDownloadFailed(url, max_retries, str(last_error) if last_error else None)

    async def _download(self, url: str, destination: Path):
        if self.session is not None:
            await self._stream_to_file(self.session, url, destination)
            return
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            await self._stream_to_file(session, url, destination)

    async def _stream_to_file(self, session, url: str, destination: Path):
        async with session.get(url, timeout=self.timeout) as response:
            response.raise_for_status()
            with open(destination, 'wb') as f:
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    f.write(chunk)

    @asynccontextmanager
    async def staged(self, url: str, max_retries: int = 3) -> AsyncIterator[Path]:
        """Download, yield the local path, and always delete it afterwards"""
        path = await self.fetch_to_local(url, max_retries)
        try:
            yield path
        finally:
            path.unlink(missing_ok=True)
            logger.debug(f"Removed staged asset {path.name}")
