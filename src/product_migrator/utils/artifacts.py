"""
Failure screenshot artifacts
The orchestrator hands PNG bytes to a sink and attaches the returned
reference to the failed progress event
"""
import logging
import re
import time
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class ArtifactSink(Protocol):
    async def save(self, job_id: str, data: bytes) -> str:
        """Store one PNG and return a reference to it"""
        ...


class DirectoryArtifactSink:
    """Writes screenshots to a local directory"""

    def __init__(self, artifact_dir: Path):
        self.artifact_dir = Path(artifact_dir)

    async def save(self, job_id: str, data: bytes) -> str:
        self.artifact_dir.mkdir(parents=True, exist_ok=True)
        safe_id = re.sub(r'[^A-Za-z0-9_-]+', '_', job_id) or 'job'
        screenshot_path = self.artifact_dir / f"error_{safe_id}_{int(time.time() * 1000)}.png"
        screenshot_path.write_bytes(data)
        logger.info(f"📸 Saved failure screenshot: {screenshot_path}")
        return str(screenshot_path)
