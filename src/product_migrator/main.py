import inspect
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Union

from .agents.orchestrator import MigrationOrchestrator
from .core.config import MigratorConfig
from .core.models import MigrationJob, ProgressEvent, Stage
from .core.platforms import PlatformConfig, get_platform

logger = logging.getLogger(__name__)

EventCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class MigrationEngine:
    """
    Main entry point for the product migrator package.
    Resolves the target platform and runs one MigrationOrchestrator per job.
    """

    def __init__(self, settings: Optional[MigratorConfig] = None, **deps: Any):
        """
        Initialize the MigrationEngine.

        Args:
            settings: Engine configuration (defaults to environment)
            **deps: Collaborators handed to every orchestrator
                (browser_factory, session_store, asset_transfer, artifact_sink, rng)
        """
        self.settings = settings or MigratorConfig.from_env()
        self.deps = deps
        self._active: Dict[str, MigrationOrchestrator] = {}

    def _platform_for(self, job: MigrationJob) -> PlatformConfig:
        return get_platform(job.target_platform, self.settings.platforms_path)

    async def stream(self, job: MigrationJob) -> AsyncIterator[ProgressEvent]:
        """Yield the job's progress events, ending with one terminal event"""
        try:
            platform = self._platform_for(job)
        except (KeyError, ValueError, OSError) as e:
            logger.error(f"Cannot start job {job.job_id}: {e}")
            yield ProgressEvent(job_id=job.job_id, stage=Stage.VALIDATING, percent=0,
                                message="Validating migration job")
            yield ProgressEvent(job_id=job.job_id, stage=Stage.FAILED, percent=100,
                                message=str(e.args[0]) if e.args else str(e),
                                details={'errorType': 'InvalidJob'})
            return

        orchestrator = MigrationOrchestrator(platform, self.settings, **self.deps)
        self._active[job.job_id] = orchestrator
        try:
            async for event in orchestrator.run(job):
                yield event
        finally:
            self._active.pop(job.job_id, None)

    async def run(self, job: MigrationJob, on_event: Optional[EventCallback] = None) -> ProgressEvent:
        """
        Execute the job, passing every event to ``on_event``.

        Args:
            job: The migration job
            on_event: Sync or async callable invoked per event

        Returns:
            The terminal ProgressEvent
        """
        terminal = None
        async for event in self.stream(job):
            if on_event is not None:
                result = on_event(event)
                if inspect.isawaitable(result):
                    await result
            if event.is_terminal:
                terminal = event
        return terminal

    def cancel(self, job_id: str) -> bool:
        """Request cancellation of a running job; False when it is not running here"""
        orchestrator = self._active.get(job_id)
        if orchestrator is None:
            return False
        orchestrator.cancel()
        return True

    def is_running(self, job_id: str) -> bool:
        return job_id in self._active


async def run_migration(
    job: MigrationJob, settings: Optional[MigratorConfig] = None, **deps: Any
) -> AsyncIterator[ProgressEvent]:
    """Run one job with a throwaway engine and yield its events"""
    engine = MigrationEngine(settings, **deps)
    async for event in engine.stream(job):
        yield event
