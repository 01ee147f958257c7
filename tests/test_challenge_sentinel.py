"""
tests/test_challenge_sentinel.py

Challenge detection and the bounded mitigation sequence.

Coverage
--------
- Clean page passes immediately with no mitigation
- Passive wait clears a transient widget
- Reload clears a widget and reports the reload
- Persistent widget ends BLOCKED after every strategy
"""

from __future__ import annotations

import asyncio

from product_migrator.core.platforms import TimingBudgets
from product_migrator.utils.challenge_sentinel import ChallengeSentinel, ChallengeState
from tests.fakes import FakeElement, FakePage, LOGIN_URL, MockStorefront

ZERO = TimingBudgets(challenge_wait=0, decoy_settle=0, navigation=1000)
SELECTORS = [".captcha", "iframe[src*=recaptcha]"]


def _captcha() -> FakeElement:
    return FakeElement(".captcha", box={"x": 100, "y": 200, "width": 300, "height": 80})


class TestGate:
    def test_clean_page_is_clear(self) -> None:
        page = FakePage()

        outcome = asyncio.run(ChallengeSentinel(page, SELECTORS, ZERO).gate("login page"))

        assert outcome.state is ChallengeState.CLEAR
        assert outcome.passed is True
        assert page.actions == []

    def test_passive_wait_resolves_transient_widget(self) -> None:
        page = FakePage()
        page.add(".captcha", _captcha())
        page.vanish_after(".captcha", 1)

        outcome = asyncio.run(ChallengeSentinel(page, SELECTORS, ZERO).gate("post-login"))

        assert outcome.state is ChallengeState.RESOLVED
        assert outcome.strategy == "passive_wait"
        assert outcome.reloaded is False
        assert page.actions == []

    def test_reload_resolves_and_is_reported(self) -> None:
        site = MockStorefront(challenge_loads=1)
        page = FakePage(site=site)
        asyncio.run(page.goto(LOGIN_URL))

        outcome = asyncio.run(ChallengeSentinel(page, SELECTORS, ZERO).gate("login page"))

        assert outcome.state is ChallengeState.RESOLVED
        assert outcome.strategy == "reload"
        assert outcome.reloaded is True
        assert page.reloads == 1

    def test_persistent_widget_is_blocked(self) -> None:
        page = FakePage()
        page.add(".captcha", _captcha())
        sentinel = ChallengeSentinel(page, SELECTORS, ZERO)

        outcome = asyncio.run(sentinel.gate("pre-submit"))

        assert outcome.state is ChallengeState.BLOCKED
        assert outcome.passed is False
        assert outcome.selector == ".captcha"
        assert sentinel.state is ChallengeState.BLOCKED
        assert page.reloads == 1
        # Decoy click lands just outside the widget
        assert ("mouse_click", 90, 190) in page.actions


class TestDetect:
    def test_detect_reports_presence(self) -> None:
        page = FakePage()
        sentinel = ChallengeSentinel(page, SELECTORS, ZERO)
        assert asyncio.run(sentinel.detect()) is ChallengeState.CLEAR

        page.add("iframe[src*=recaptcha]")
        assert asyncio.run(sentinel.detect()) is ChallengeState.DETECTED
