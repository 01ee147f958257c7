"""Human-paced typing, clicking and uploading on resolved elements"""
import asyncio
import logging
import random
from pathlib import Path
from typing import Optional, Union

from playwright.async_api import ElementHandle, Page

from ..core.platforms import TimingBudgets

logger = logging.getLogger(__name__)


async def pause(ms: float):
    """Timed delay in milliseconds"""
    if ms > 0:
        await asyncio.sleep(ms / 1000)


class InteractionSimulator:
    """Drives one page the way a person would. No retries at this layer."""

    def __init__(self, page: Page, timing: TimingBudgets, rng: Optional[random.Random] = None):
        self.page = page
        self.timing = timing
        self.rng = rng or random.Random()

    def _keystroke_delay(self) -> float:
        return self.rng.uniform(self.timing.typing_min, self.timing.typing_max)

    async def type(self, element: ElementHandle, text: str):
        """Focus, clear, then type one character at a time with jittered delays"""
        await element.focus()
        await element.fill("")

        for char in text:
            await element.type(char)
            await pause(self._keystroke_delay())

        await element.dispatch_event('change')
        await element.dispatch_event('blur')

    async def click(self, element: ElementHandle):
        """Scroll into view, settle, then press and release the pointer over the element centre"""
        await element.scroll_into_view_if_needed()
        await pause(self.timing.click_settle)

        box = await element.bounding_box()
        if not box:
            # Zero-size or hidden controls (e.g. styled submit wrappers) only accept a synthetic click
            logger.debug("INTERACTION: No bounding box, using element click")
            await element.click()
            return

        x = box['x'] + box['width'] / 2
        y = box['y'] + box['height'] / 2
        await self.page.mouse.move(x, y)
        await self.page.mouse.down()
        await pause(self._keystroke_delay())
        await self.page.mouse.up()

    async def upload(self, element: ElementHandle, path: Union[str, Path]):
        await element.set_input_files(str(path))
