"""Browser launch and teardown for one migration job"""
import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright_stealth import Stealth

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


class BrowserSession:
    """
    Owns the browser, context and page of a single job.

    Use as an async context manager; everything is closed on exit whatever
    state the job ended in.
    """

    def __init__(
        self,
        headless: bool = True,
        use_stealth: bool = True,
        channel: Optional[str] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        viewport: Optional[dict] = None,
    ):
        self.headless = headless
        self.use_stealth = use_stealth
        self.channel = channel
        self.user_agent = user_agent
        self.viewport = viewport or {'width': 1366, 'height': 768}

        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def __aenter__(self) -> 'BrowserSession':
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def start(self):
        self.playwright = await async_playwright().start()

        launch_args = {
            'headless': self.headless,
            'args': [
                '--disable-blink-features=AutomationControlled',  # Hide automation flag
                '--no-sandbox',
                '--disable-dev-shm-usage',
            ],
        }
        if self.channel:
            launch_args['channel'] = self.channel

        logger.info(f"Launching Chromium (headless={self.headless}, channel={self.channel or 'bundled'})")
        self.browser = await self.playwright.chromium.launch(**launch_args)
        self.context = await self.browser.new_context(
            viewport=self.viewport,
            user_agent=self.user_agent,
            locale='en-US',
            timezone_id='America/New_York',
        )
        if self.use_stealth:
            await Stealth().apply_stealth_async(self.context)
        self.page = await self.context.new_page()

    async def close(self):
        """Close page, context, browser and driver; errors are logged, not raised"""
        try:
            if self.page and not self.page.is_closed():
                await self.page.close()
        except Exception as e:
            logger.warning(f"Error closing page: {e}")

        try:
            if self.context:
                await self.context.close()
        except Exception as e:
            logger.warning(f"Error closing context: {e}")

        try:
            if self.browser:
                await self.browser.close()
        except Exception as e:
            logger.warning(f"Error closing browser: {e}")

        try:
            if self.playwright:
                await self.playwright.stop()
        except Exception as e:
            logger.warning(f"Error stopping playwright: {e}")

        self.page = self.context = self.browser = self.playwright = None
