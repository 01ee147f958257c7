"""
FastAPI Backend for the product migrator
Accepts migration jobs from the workflow orchestrator and streams their progress
"""
import logging
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from backend.models.migration import CancelResult, MigrationAccepted, MigrationStatus, PlatformList
from backend.services.callback_notifier import callback_notifier
from backend.services.job_registry import job_registry
from backend.services.progress_tracker import progress_tracker
from product_migrator import __version__
from product_migrator.core.config import MigratorConfig
from product_migrator.core.models import MigrationJob, ProgressEvent, Stage
from product_migrator.core.platforms import get_platform, load_platform_configs
from product_migrator.main import MigrationEngine
from product_migrator.utils.logger_config import setup_logger

settings = MigratorConfig.from_env()
setup_logger(level=settings.log_level)
setup_logger('backend', level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Product Migrator API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_engine: Optional[MigrationEngine] = None


def get_engine() -> MigrationEngine:
    """Shared engine; tests override this dependency"""
    global _engine
    if _engine is None:
        _engine = MigrationEngine(settings)
    return _engine


async def run_migration_job(job: MigrationJob, engine: MigrationEngine):
    """Run one job under its account lock, publishing every event"""
    lock = job_registry.account_lock(job)
    try:
        if lock.locked():
            logger.info(f"Job {job.job_id} waiting for account {job.account} on {job.target_platform}")
        async with lock:
            if job_registry.is_cancelled(job.job_id):
                await _publish(job, ProgressEvent(
                    job_id=job.job_id, stage=Stage.FAILED, percent=100, message="Migration cancelled",
                    details={'errorType': 'JobCancelled'},
                ))
                return

            async for event in engine.stream(job):
                await _publish(job, event)
    finally:
        job_registry.unregister(job.job_id)
        job_registry.release_account_lock(job)


async def _publish(job: MigrationJob, event: ProgressEvent):
    await progress_tracker.publish(event)
    await callback_notifier.notify(job, event)


# Routes
@app.get("/")
async def root():
    return {"message": "Product Migrator API is running", "version": __version__}


# ============================================
# MIGRATION ENDPOINTS
# ============================================

@app.post("/api/migrations", response_model=MigrationAccepted, status_code=202)
async def start_migration(
    job: MigrationJob,
    background_tasks: BackgroundTasks,
    engine: MigrationEngine = Depends(get_engine),
):
    """Queue a migration job"""
    try:
        get_platform(job.target_platform, settings.platforms_path)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=e.args[0])

    if not job_registry.register(job):
        raise HTTPException(status_code=409, detail=f"Job {job.job_id} is already running")

    logger.info(f"Queued job {job.job_id}: {len(job.products())} product(s) → {job.target_platform}")
    background_tasks.add_task(run_migration_job, job, engine)
    return MigrationAccepted(job_id=job.job_id)


@app.get("/api/migrations/{job_id}", response_model=MigrationStatus)
async def get_migration(job_id: str):
    """Latest event of a job"""
    if not job_registry.is_live(job_id) and not progress_tracker.knows(job_id):
        raise HTTPException(status_code=404, detail="Job not found")

    return MigrationStatus(
        job_id=job_id,
        running=job_registry.is_live(job_id),
        event_count=len(progress_tracker.events(job_id)),
        latest=progress_tracker.latest(job_id),
    )


@app.post("/api/migrations/{job_id}/cancel", response_model=CancelResult)
async def cancel_migration(job_id: str, engine: MigrationEngine = Depends(get_engine)):
    """Request cancellation; the job stops at its next step boundary"""
    if not job_registry.mark_cancelled(job_id):
        raise HTTPException(status_code=404, detail="No live job with that id")

    engine.cancel(job_id)
    logger.info(f"Cancellation requested for job {job_id}")
    return CancelResult(job_id=job_id, cancelled=True)


@app.get("/api/platforms", response_model=PlatformList)
async def list_platforms():
    return PlatformList(platforms=sorted(load_platform_configs(settings.platforms_path)))


# ============================================
# WEBSOCKET ENDPOINTS
# ============================================

@app.websocket("/ws/migrations/{job_id}")
async def websocket_progress(websocket: WebSocket, job_id: str):
    """WebSocket endpoint for real-time migration progress updates"""
    await progress_tracker.connect(job_id, websocket)
    try:
        while True:
            # Keep connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        progress_tracker.disconnect(job_id, websocket)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("👋 Product Migrator API shutting down...")
    await callback_notifier.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
