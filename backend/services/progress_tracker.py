"""
Progress Tracking Service
Keeps per-job event history and pushes migration progress to WebSocket clients
"""
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from fastapi import WebSocket, WebSocketDisconnect

from product_migrator.core.models import ProgressEvent

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Singleton service for tracking migration progress"""

    def __init__(self, max_jobs: int = 200):
        self.max_jobs = max_jobs
        self.history: "OrderedDict[str, List[ProgressEvent]]" = OrderedDict()
        self.websockets: Dict[str, List[WebSocket]] = {}

    async def connect(self, job_id: str, websocket: WebSocket):
        """Add a WebSocket connection and replay the events seen so far"""
        await websocket.accept()

        # Catch up from history first; join the broadcast list only once caught up
        sent = 0
        while sent < len(self.history.get(job_id, [])):
            await websocket.send_json(self.history[job_id][sent].to_json_dict())
            sent += 1
        self.websockets.setdefault(job_id, []).append(websocket)

    def disconnect(self, job_id: str, websocket: WebSocket):
        """Remove a WebSocket connection"""
        clients = self.websockets.get(job_id, [])
        if websocket in clients:
            clients.remove(websocket)
        if not clients:
            self.websockets.pop(job_id, None)

    async def publish(self, event: ProgressEvent):
        """Record the event and broadcast it to the job's clients"""
        events = self.history.setdefault(event.job_id, [])
        events.append(event)
        self.history.move_to_end(event.job_id)
        while len(self.history) > self.max_jobs:
            self.history.popitem(last=False)

        await self.broadcast(event.job_id, event.to_json_dict())

    async def broadcast(self, job_id: str, message: Dict[str, Any]):
        """Broadcast message to all clients watching a job"""
        disconnected = []
        for ws in list(self.websockets.get(job_id, [])):
            try:
                await ws.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug(f"Dropping progress client for {job_id}: {e}")
                disconnected.append(ws)

        # Clean up disconnected clients
        for ws in disconnected:
            self.disconnect(job_id, ws)

    def events(self, job_id: str) -> List[ProgressEvent]:
        return list(self.history.get(job_id, []))

    def latest(self, job_id: str) -> Optional[ProgressEvent]:
        events = self.history.get(job_id)
        return events[-1] if events else None

    def knows(self, job_id: str) -> bool:
        return job_id in self.history

    def reset(self):
        """Forget all history"""
        self.history.clear()


# Global instance
progress_tracker = ProgressTracker()
