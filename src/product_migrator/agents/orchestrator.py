"""
Migration Orchestrator - Validate → Login → Navigate → Fill → Upload → Submit → Verify

Runs one MigrationJob as an explicit state machine and streams ProgressEvents.
Each state handler takes the run context and returns the next state, so
every step can be exercised against a mocked page.
"""
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Dict, List, Optional, Set
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..auth.session_store import SessionStore
from ..browser.session import BrowserSession
from ..core.config import MigratorConfig
from ..core.errors import (
    AssetDownloadFailed,
    ChallengeBlocked,
    ElementNotFound,
    InvalidJob,
    JobCancelled,
    LoginFailed,
    MigrationError,
    PageErrorDetected,
    TransientNetworkError,
)
from ..core.models import MigrationJob, ProductRecord, ProgressEvent, Stage, StepResult
from ..core.platforms import PlatformConfig
from ..dom.interaction import InteractionSimulator, pause
from ..dom.selector_resolver import SelectorResolver
from ..utils.artifacts import ArtifactSink, DirectoryArtifactSink
from ..utils.asset_transfer import AssetTransfer
from ..utils.challenge_sentinel import ChallengeOutcome, ChallengeSentinel, ChallengeState
from ..utils.logger_config import log

logger = logging.getLogger(__name__)

# Page reloads forced by the sentinel that may send the job back to an earlier state
MAX_RELOAD_RESTARTS = 2


class MigrationState(str, Enum):
    VALIDATE = "validate"
    LOGIN = "login"
    NAVIGATE = "navigate"
    FILL_FIELDS = "fill_fields"
    UPLOAD_ASSETS = "upload_assets"
    SUBMIT = "submit"
    VERIFY = "verify"
    COMPLETE = "complete"
    FAILED = "failed"


STATE_STAGES = {
    MigrationState.VALIDATE: Stage.VALIDATING,
    MigrationState.LOGIN: Stage.LOGGING_IN,
    MigrationState.NAVIGATE: Stage.FILLING_FORM,
    MigrationState.FILL_FIELDS: Stage.FILLING_FORM,
    MigrationState.UPLOAD_ASSETS: Stage.UPLOADING,
    MigrationState.SUBMIT: Stage.SUBMITTING,
    MigrationState.VERIFY: Stage.VERIFYING,
}

# Fraction of one product's share of the progress bar reached when a state starts
STATE_PROGRESS = {
    MigrationState.LOGIN: 0.05,
    MigrationState.NAVIGATE: 0.25,
    MigrationState.FILL_FIELDS: 0.35,
    MigrationState.UPLOAD_ASSETS: 0.55,
    MigrationState.SUBMIT: 0.75,
    MigrationState.VERIFY: 0.9,
}

STATE_MESSAGES = {
    MigrationState.LOGIN: "Logging in to destination account",
    MigrationState.NAVIGATE: "Opening product form",
    MigrationState.FILL_FIELDS: "Filling product details",
    MigrationState.UPLOAD_ASSETS: "Uploading files and images",
    MigrationState.SUBMIT: "Submitting product",
    MigrationState.VERIFY: "Verifying product was created",
}

BrowserFactory = Callable[[MigrationJob], AsyncContextManager[Any]]


@dataclass
class RunContext:
    """Mutable state of one job run; owned by a single orchestrator run"""
    job: MigrationJob
    page: Any
    context: Any
    resolver: SelectorResolver
    simulator: InteractionSimulator
    sentinel: ChallengeSentinel
    max_step_attempts: int
    asset_max_retries: int
    product: Optional[ProductRecord] = None
    product_index: int = 0
    state: MigrationState = MigrationState.VALIDATE
    session_restore_tried: bool = False
    form_ready: bool = False
    submitted: bool = False
    reload_restarts: int = 0
    uploaded: Set[str] = field(default_factory=set)
    migrated: List[Dict[str, str]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def begin_product(self, index: int, product: ProductRecord):
        self.product_index = index
        self.product = product
        self.submitted = False
        self.reload_restarts = 0
        self.uploaded.clear()

    def summary(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {'migrated': list(self.migrated)}
        if self.warnings:
            details['warnings'] = list(self.warnings)
        return details


class MigrationOrchestrator:
    """Sequences selector resolution, interaction, gating and uploads for one platform"""

    def __init__(
        self,
        platform: PlatformConfig,
        settings: Optional[MigratorConfig] = None,
        *,
        browser_factory: Optional[BrowserFactory] = None,
        session_store: Optional[SessionStore] = None,
        asset_transfer: Optional[AssetTransfer] = None,
        artifact_sink: Optional[ArtifactSink] = None,
        rng: Optional[random.Random] = None,
    ):
        self.platform = platform
        self.settings = settings or MigratorConfig.from_env()
        self.timing = platform.timing
        self.browser_factory = browser_factory or self._default_browser_factory
        self.session_store = session_store or SessionStore(
            self.settings.session_dir, self.settings.session_ttl_days
        )
        self.asset_transfer = asset_transfer or AssetTransfer(
            self.settings.staging_dir,
            base_delay_ms=self.settings.asset_base_delay_ms,
            timeout_seconds=self.settings.asset_timeout_seconds,
        )
        self.artifact_sink = artifact_sink or DirectoryArtifactSink(self.settings.artifact_dir)
        self.rng = rng or random.Random()
        self._cancel_requested = False

        self._handlers = {
            MigrationState.LOGIN: self._step_login,
            MigrationState.NAVIGATE: self._step_navigate,
            MigrationState.FILL_FIELDS: self._step_fill_fields,
            MigrationState.UPLOAD_ASSETS: self._step_upload_assets,
            MigrationState.SUBMIT: self._step_submit,
            MigrationState.VERIFY: self._step_verify,
        }

    def _default_browser_factory(self, job: MigrationJob) -> BrowserSession:
        headless = job.options.headless if job.options.headless is not None else self.settings.headless
        return BrowserSession(
            headless=headless,
            use_stealth=self.settings.use_stealth,
            channel=self.settings.browser_channel,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def cancel(self):
        """Request cancellation; honoured at the next state transition"""
        self._cancel_requested = True

    async def run(self, job: MigrationJob) -> AsyncIterator[ProgressEvent]:
        """
        Execute ``job`` and yield its progress events.

        The stream always ends with exactly one ``complete`` or ``failed``
        event; exceptions never escape.
        """
        log(logger, "info", f"Starting job {job.job_id} ({len(job.products())} product(s) → {job.target_platform})",
            "ORCHESTRATOR", job.account)
        yield self._event(job, Stage.VALIDATING, 0, "Validating migration job")

        terminal: Optional[ProgressEvent] = None
        try:
            self._check_cancelled()
            self._validate(job)

            async with self.browser_factory(job) as browser:
                ctx = self._new_context(job, browser)
                try:
                    async for event in self._run_products(ctx):
                        yield event
                    terminal = self._complete_event(ctx)
                except Exception as e:
                    terminal = await self._failure_event(job, e, ctx)
        except Exception as e:
            if terminal is None:
                terminal = await self._failure_event(job, e, None)

        if terminal.stage is Stage.COMPLETE:
            log(logger, "info", f"✅ Job {job.job_id} complete", "ORCHESTRATOR", job.account)
        else:
            log(logger, "error", f"❌ Job {job.job_id} failed: {terminal.message}", "ORCHESTRATOR", job.account)
        yield terminal

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _new_context(self, job: MigrationJob, browser: Any) -> RunContext:
        page = browser.page
        return RunContext(
            job=job,
            page=page,
            context=browser.context,
            resolver=SelectorResolver(page),
            simulator=InteractionSimulator(page, self.timing, self.rng),
            sentinel=ChallengeSentinel(page, self.platform.challenge_selectors, self.timing),
            max_step_attempts=job.options.max_step_attempts or self.settings.max_step_attempts,
            asset_max_retries=job.options.asset_max_retries or self.settings.asset_max_retries,
        )

    async def _run_products(self, ctx: RunContext) -> AsyncIterator[ProgressEvent]:
        products = ctx.job.products()
        low, high = ctx.job.options.batch_delay_ms or (self.timing.batch_delay_min, self.timing.batch_delay_max)
        for index, product in enumerate(products):
            if index > 0:
                delay = self.rng.uniform(low, high)
                logger.info(f"ORCHESTRATOR: Waiting {delay / 1000:.1f}s before next product")
                await pause(delay)

            ctx.begin_product(index, product)
            state = MigrationState.LOGIN if index == 0 else MigrationState.NAVIGATE
            while state is not MigrationState.COMPLETE:
                self._check_cancelled()
                ctx.state = state
                yield self._state_event(ctx, state)
                state = await self._run_state(ctx, state)

            logger.info(f"ORCHESTRATOR: Product {index + 1}/{len(products)} migrated: {product.title}")

    async def _run_state(self, ctx: RunContext, state: MigrationState) -> MigrationState:
        """Run one state, retrying transient failures up to the attempt limit"""
        handler = self._handlers[state]
        for attempt in range(1, ctx.max_step_attempts + 1):
            result, next_state = await self._attempt(handler, ctx)
            if result.success:
                return next_state

            if not result.retryable or attempt >= ctx.max_step_attempts:
                raise result.error

            logger.warning(
                f"ORCHESTRATOR: {state.value} attempt {attempt}/{ctx.max_step_attempts} failed: "
                f"{result.error}. Retrying..."
            )
            self._check_cancelled()

        raise MigrationError(f"State {state.value} exhausted its attempts")

    @staticmethod
    async def _attempt(handler, ctx: RunContext):
        try:
            next_state = await handler(ctx)
            return StepResult(success=True), next_state
        except MigrationError as e:
            return StepResult(success=False, error=e), None
        except PlaywrightTimeoutError as e:
            return StepResult(success=False, error=TransientNetworkError(f"Timed out: {e}")), None
        except PlaywrightError as e:
            # Detached elements and aborted navigations; the step starts over
            return StepResult(success=False, error=TransientNetworkError(str(e))), None

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _validate(self, job: MigrationJob):
        if job.target_platform.strip().lower() != self.platform.name:
            raise InvalidJob(
                f"Job targets '{job.target_platform}' but engine is configured for '{self.platform.name}'"
            )

        for product in job.products():
            for url in [*product.file_urls, *product.image_urls]:
                if urlparse(url).scheme not in ('http', 'https'):
                    raise InvalidJob(f"Unsupported asset URL for '{product.title}': {url}")
            if product.file_urls and not self.platform.has_field('product_file'):
                raise InvalidJob(f"Platform '{self.platform.name}' has no file upload field")
            if product.image_urls and not self.platform.has_field('product_image'):
                logger.warning(f"Platform '{self.platform.name}' has no image field; images will be skipped")

    async def _step_login(self, ctx: RunContext) -> MigrationState:
        platform = self.platform
        account = ctx.job.account

        if not ctx.session_restore_tried:
            ctx.session_restore_tried = True
            cookies = self.session_store.restore(platform.name, account)
            if cookies:
                await SessionStore.apply(ctx.context, cookies)
                await self._goto(ctx, platform.form_url)
                await self._gate(ctx, 'session restore')
                if await self._is_logged_in(ctx):
                    logger.info("ORCHESTRATOR: Restored session accepted, skipping login form")
                    ctx.form_ready = True
                    return MigrationState.NAVIGATE
                logger.info("ORCHESTRATOR: Restored session rejected, logging in")

        await self._goto(ctx, platform.login_url)
        await self._gate(ctx, 'login page')

        credentials = ctx.job.credentials.destination
        await self._fill(ctx, 'login_email', credentials.username)
        await self._fill(ctx, 'login_password', credentials.password.get_secret_value())
        await self._click(ctx, 'login_submit')
        await self._settle(ctx)

        await self._gate(ctx, 'post-login')
        await self._check_page_errors(ctx)
        if not await self._is_logged_in(ctx):
            raise LoginFailed("Login form still present after submitting credentials")

        # Only an observed successful login is persisted
        self.session_store.persist(platform.name, account, await SessionStore.capture(ctx.context))
        logger.info(f"🔐 ORCHESTRATOR: Logged in as {account}")
        return MigrationState.NAVIGATE

    async def _step_navigate(self, ctx: RunContext) -> MigrationState:
        if ctx.form_ready:
            ctx.form_ready = False
        else:
            await self._goto(ctx, self.platform.form_url)

        await self._gate(ctx, 'product form')
        if await self._resolver_probe(ctx, 'login_email'):
            # Session dropped between products; log in again from scratch
            ctx.session_restore_tried = True
            return self._restart(ctx, MigrationState.LOGIN)

        ctx.uploaded.clear()
        await ctx.resolver.resolve(
            'product_title', self.platform.candidates('product_title'), self.timing.selector
        )
        return MigrationState.FILL_FIELDS

    async def _step_fill_fields(self, ctx: RunContext) -> MigrationState:
        product = ctx.product
        await self._fill(ctx, 'product_title', product.title)
        if product.description and self.platform.has_field('product_description'):
            await self._fill(ctx, 'product_description', product.description)
        await self._fill(ctx, 'product_price', product.price_text())
        await self._check_page_errors(ctx)
        return MigrationState.UPLOAD_ASSETS

    async def _step_upload_assets(self, ctx: RunContext) -> MigrationState:
        product = ctx.product
        uploads = [('product_file', url, index == 0) for index, url in enumerate(product.file_urls)]
        uploads += [('product_image', url, False) for url in product.image_urls]

        for field_name, url, required in uploads:
            if url in ctx.uploaded:
                continue
            if not self.platform.has_field(field_name):
                ctx.warnings.append(f"Skipped {url}: platform has no '{field_name}' field")
                continue

            try:
                async with self.asset_transfer.staged(url, ctx.asset_max_retries) as path:
                    element = await ctx.resolver.resolve(
                        field_name, self.platform.candidates(field_name), self.timing.selector
                    )
                    await ctx.simulator.upload(element, path)
                    await pause(self.timing.upload_settle)
            except (AssetDownloadFailed, ElementNotFound) as e:
                if required:
                    raise
                logger.warning(f"ORCHESTRATOR: Optional asset skipped: {e}")
                ctx.warnings.append(str(e))
                continue

            ctx.uploaded.add(url)

        await self._check_page_errors(ctx)
        return MigrationState.SUBMIT

    async def _step_submit(self, ctx: RunContext) -> MigrationState:
        if ctx.submitted:
            # A retry after the click must not publish the product twice
            return MigrationState.VERIFY

        outcome = await self._gate(ctx, 'pre-submit')
        if outcome.reloaded:
            ctx.uploaded.clear()
            return self._restart(ctx, MigrationState.FILL_FIELDS)

        await self._click(ctx, 'product_submit')
        ctx.submitted = True
        try:
            await self._settle(ctx)
        except PlaywrightTimeoutError:
            logger.warning("ORCHESTRATOR: Page still loading after submit, verifying anyway")
        return MigrationState.VERIFY

    async def _step_verify(self, ctx: RunContext) -> MigrationState:
        await self._check_page_errors(ctx)
        if self.platform.has_field('success_marker'):
            await ctx.resolver.resolve(
                'success_marker', self.platform.candidates('success_marker'), self.timing.selector
            )
        ctx.migrated.append({'title': ctx.product.title, 'url': ctx.page.url})
        return MigrationState.COMPLETE

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_cancelled(self):
        if self._cancel_requested:
            raise JobCancelled()

    def _restart(self, ctx: RunContext, state: MigrationState) -> MigrationState:
        ctx.reload_restarts += 1
        if ctx.reload_restarts > MAX_RELOAD_RESTARTS:
            raise ChallengeBlocked(ctx.state.value)
        logger.info(f"ORCHESTRATOR: Re-entering {state.value} ({ctx.reload_restarts}/{MAX_RELOAD_RESTARTS})")
        return state

    async def _goto(self, ctx: RunContext, url: str):
        await ctx.page.goto(url, wait_until='domcontentloaded', timeout=self.timing.navigation)

    async def _settle(self, ctx: RunContext):
        await pause(self.timing.submit_settle)
        await ctx.page.wait_for_load_state('domcontentloaded', timeout=self.timing.navigation)

    async def _gate(self, ctx: RunContext, step: str) -> ChallengeOutcome:
        outcome = await ctx.sentinel.gate(step)
        if outcome.state is ChallengeState.BLOCKED:
            raise ChallengeBlocked(step, outcome.selector)
        return outcome

    async def _fill(self, ctx: RunContext, field_name: str, value: str):
        element = await ctx.resolver.resolve(
            field_name, self.platform.candidates(field_name), self.timing.selector
        )
        await ctx.simulator.type(element, value)

    async def _click(self, ctx: RunContext, field_name: str):
        element = await ctx.resolver.resolve(
            field_name, self.platform.candidates(field_name), self.timing.selector
        )
        await ctx.simulator.click(element)

    async def _resolver_probe(self, ctx: RunContext, field_name: str) -> bool:
        return await ctx.resolver.probe(self.platform.candidates(field_name)) is not None

    async def _is_logged_in(self, ctx: RunContext) -> bool:
        """Marker element when configured, otherwise absence of the login form"""
        if self.platform.has_field('logged_in_marker'):
            try:
                await ctx.resolver.resolve(
                    'logged_in_marker',
                    self.platform.candidates('logged_in_marker'),
                    self.timing.marker_probe,
                )
                return True
            except ElementNotFound:
                return False
        return not await self._resolver_probe(ctx, 'login_email')

    async def _check_page_errors(self, ctx: RunContext):
        """Raise on a visible error banner rendered by the target page"""
        for selector in self.platform.error_selectors:
            try:
                element = await ctx.page.query_selector(selector)
                if element is None or not await element.is_visible():
                    continue
                text = (await element.text_content() or '').strip()
            except PlaywrightError:
                continue
            if text:
                raise PageErrorDetected(text, selector)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    @staticmethod
    def _event(job: MigrationJob, stage: Stage, percent: int, message: str, **extra) -> ProgressEvent:
        return ProgressEvent(job_id=job.job_id, stage=stage, percent=percent, message=message, **extra)

    def _state_event(self, ctx: RunContext, state: MigrationState) -> ProgressEvent:
        total = len(ctx.job.products())
        share = 100 / total
        percent = min(99, int(ctx.product_index * share + STATE_PROGRESS[state] * share))

        message = STATE_MESSAGES[state]
        if total > 1:
            message = f"{message} ({ctx.product_index + 1}/{total}: {ctx.product.title})"
        else:
            message = f"{message}: {ctx.product.title}"
        return self._event(ctx.job, STATE_STAGES[state], percent, message)

    def _complete_event(self, ctx: RunContext) -> ProgressEvent:
        count = len(ctx.migrated)
        noun = "product" if count == 1 else "products"
        return self._event(
            ctx.job, Stage.COMPLETE, 100, f"Migrated {count} {noun} to {self.platform.name}",
            details=ctx.summary(),
        )

    async def _failure_event(
        self, job: MigrationJob, error: Exception, ctx: Optional[RunContext]
    ) -> ProgressEvent:
        if isinstance(error, MigrationError):
            message = error.message
        else:
            logger.exception(f"ORCHESTRATOR: Unexpected error in job {job.job_id}")
            message = f"Unexpected error: {error}"

        details: Dict[str, Any] = {'errorType': type(error).__name__}
        screenshot_ref = None
        if ctx is not None:
            details.update(ctx.summary())
            details['state'] = ctx.state.value
            if not isinstance(error, JobCancelled):
                screenshot_ref = await self._capture_screenshot(job, ctx)

        return self._event(
            job, Stage.FAILED, 100, message, screenshot_ref=screenshot_ref, details=details,
        )

    async def _capture_screenshot(self, job: MigrationJob, ctx: RunContext) -> Optional[str]:
        try:
            data = await ctx.page.screenshot(full_page=True)
            return await self.artifact_sink.save(job.job_id, data)
        except Exception as e:
            logger.warning(f"ORCHESTRATOR: Failed to take error screenshot: {e}")
            return None
