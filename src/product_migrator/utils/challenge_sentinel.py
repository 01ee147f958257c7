#!/usr/bin/env python3
"""
Challenge Sentinel

Detects bot-verification widgets (captcha iframes, challenge forms) and runs a
bounded set of non-destructive mitigations: wait, click beside the widget,
reload. It never interacts with the puzzle itself; a widget that survives all
three leaves the page BLOCKED and the job needs a person.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import ElementHandle, Page

from ..core.platforms import TimingBudgets
from ..dom.interaction import pause

logger = logging.getLogger(__name__)

# Offset of the decoy click from the widget's top-left corner
DECOY_OFFSET_PX = 10


class ChallengeState(str, Enum):
    CLEAR = "clear"
    DETECTED = "detected"
    MITIGATING = "mitigating"
    RESOLVED = "resolved"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class ChallengeOutcome:
    state: ChallengeState
    strategy: Optional[str] = None
    reloaded: bool = False
    selector: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.state in (ChallengeState.CLEAR, ChallengeState.RESOLVED)


class ChallengeSentinel:
    """Per-page challenge detector and mitigator"""

    STRATEGIES = ('passive_wait', 'decoy_click', 'reload')

    def __init__(self, page: Page, selectors: Sequence[str], timing: TimingBudgets):
        self.page = page
        self.selectors = list(selectors)
        self.timing = timing
        self.state = ChallengeState.CLEAR

    async def _find_widget(self) -> Optional[Tuple[str, ElementHandle]]:
        for selector in self.selectors:
            try:
                element = await self.page.query_selector(selector)
            except PlaywrightError:
                continue
            if element is not None:
                return selector, element
        return None

    async def detect(self) -> ChallengeState:
        """Immediate scan; no waiting when the page is clean"""
        found = await self._find_widget()
        self.state = ChallengeState.DETECTED if found else ChallengeState.CLEAR
        return self.state

    async def gate(self, step: str) -> ChallengeOutcome:
        """
        Check the page at a navigation boundary and mitigate if needed

        Args:
            step: Name of the calling step (for logs)

        Returns:
            ChallengeOutcome; ``reloaded`` tells the caller to re-enter its step
        """
        found = await self._find_widget()
        if not found:
            self.state = ChallengeState.CLEAR
            return ChallengeOutcome(ChallengeState.CLEAR)

        selector, element = found
        self.state = ChallengeState.DETECTED
        logger.warning(f"🤖 SENTINEL: Challenge widget at '{step}' ({selector})")

        self.state = ChallengeState.MITIGATING
        reloaded = False
        for strategy in self.STRATEGIES:
            logger.info(f"SENTINEL: Trying {strategy}...")
            if strategy == 'passive_wait':
                await pause(self.timing.challenge_wait)
            elif strategy == 'decoy_click':
                await self._decoy_click(element)
            else:
                await self.page.reload(wait_until='domcontentloaded', timeout=self.timing.navigation)
                reloaded = True

            found = await self._find_widget()
            if not found:
                self.state = ChallengeState.RESOLVED
                logger.info(f"✅ SENTINEL: Challenge cleared by {strategy}")
                return ChallengeOutcome(ChallengeState.RESOLVED, strategy, reloaded)
            selector, element = found

        self.state = ChallengeState.BLOCKED
        logger.error(f"❌ SENTINEL: Challenge persists at '{step}' after all strategies")
        return ChallengeOutcome(ChallengeState.BLOCKED, None, reloaded, selector)

    async def _decoy_click(self, element: ElementHandle):
        """Click just outside the widget; clears overlays that do not really block input"""
        try:
            box = await element.bounding_box()
        except PlaywrightError as e:
            logger.debug(f"SENTINEL: Widget box unavailable: {e}")
            box = None

        if box:
            x = max(0, box['x'] - DECOY_OFFSET_PX)
            y = max(0, box['y'] - DECOY_OFFSET_PX)
        else:
            # Top-left corner is a safe area on every layout
            x, y = DECOY_OFFSET_PX, DECOY_OFFSET_PX

        try:
            await self.page.mouse.click(x, y)
        except PlaywrightError as e:
            logger.debug(f"SENTINEL: Decoy click failed: {e}")
        await pause(self.timing.decoy_settle)
