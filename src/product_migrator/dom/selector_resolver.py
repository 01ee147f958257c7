"""
Selector Resolver

Resolves a logical form field to a live element by walking an ordered list of
candidate selectors. The total budget is split evenly across candidates and
the first attached match wins; a candidate that times out hands over to the
next one.
"""
import logging
import time
from typing import List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import ElementHandle, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..core.errors import ElementNotFound

logger = logging.getLogger(__name__)


class SelectorResolver:
    """Ranked-fallback element lookup for one page"""

    def __init__(self, page: Page):
        self.page = page

    async def resolve(
        self,
        field: str,
        candidates: Sequence[str],
        timeout_ms: int,
    ) -> ElementHandle:
        """
        Resolve ``field`` to an element.

        Args:
            field: Logical field name, used for error reporting
            candidates: Ordered selectors, most stable first (never empty)
            timeout_ms: Total budget shared by all candidates

        Returns:
            The first attached element found

        Raises:
            ElementNotFound: every candidate failed within its slice
        """
        if not candidates:
            raise ValueError(f"No selector candidates configured for '{field}'")

        slice_ms = timeout_ms / len(candidates)
        deadline = time.monotonic() + timeout_ms / 1000
        tried: List[str] = []

        for selector in candidates:
            tried.append(selector)
            # Overshoot in earlier slices comes out of the later ones
            remaining_ms = (deadline - time.monotonic()) * 1000
            wait_ms = max(1, int(min(slice_ms, remaining_ms)))
            try:
                element = await self.page.wait_for_selector(
                    selector, state='attached', timeout=wait_ms
                )
            except PlaywrightTimeoutError:
                logger.debug(f"RESOLVER: '{field}' candidate timed out: {selector}")
                continue
            except PlaywrightError as e:
                # Invalid selector syntax or a detached frame; the next candidate may still work
                logger.debug(f"RESOLVER: '{field}' candidate errored: {selector} ({e})")
                continue

            if element is not None:
                if len(tried) > 1:
                    logger.info(f"RESOLVER: '{field}' resolved by fallback #{len(tried)}: {selector}")
                return element

        logger.warning(f"RESOLVER: '{field}' not found after {len(tried)} candidate(s)")
        raise ElementNotFound(field, tried)

    async def probe(self, candidates: Sequence[str]) -> Optional[ElementHandle]:
        """Immediate presence check without waiting; returns the first match or None"""
        for selector in candidates:
            try:
                element = await self.page.query_selector(selector)
            except PlaywrightError:
                continue
            if element is not None:
                return element
        return None
