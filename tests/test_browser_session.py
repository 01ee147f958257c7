"""
tests/test_browser_session.py

Browser launch and teardown with the Playwright driver replaced by fakes.
"""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from product_migrator.browser import session as session_module
from product_migrator.browser.session import BrowserSession


class Recorder:
    def __init__(self) -> None:
        self.calls: List[tuple] = []


class _Page:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec

    def is_closed(self) -> bool:
        return False

    async def close(self) -> None:
        self.rec.calls.append(("page.close",))


class _Context:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec

    async def new_page(self) -> _Page:
        return _Page(self.rec)

    async def close(self) -> None:
        self.rec.calls.append(("context.close",))


class _Browser:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec

    async def new_context(self, **kwargs) -> _Context:
        self.rec.calls.append(("new_context", kwargs))
        return _Context(self.rec)

    async def close(self) -> None:
        self.rec.calls.append(("browser.close",))


class _Chromium:
    def __init__(self, rec: Recorder, fail: bool = False) -> None:
        self.rec = rec
        self.fail = fail

    async def launch(self, **kwargs) -> _Browser:
        self.rec.calls.append(("launch", kwargs))
        if self.fail:
            raise RuntimeError("Executable doesn't exist")
        return _Browser(self.rec)


class _Playwright:
    def __init__(self, rec: Recorder, fail: bool) -> None:
        self.rec = rec
        self.chromium = _Chromium(rec, fail)

    async def stop(self) -> None:
        self.rec.calls.append(("playwright.stop",))


def _install(monkeypatch, fail: bool = False) -> Recorder:
    rec = Recorder()

    class _Starter:
        async def start(self) -> _Playwright:
            return _Playwright(rec, fail)

    class _Stealth:
        async def apply_stealth_async(self, context) -> None:
            rec.calls.append(("stealth",))

    monkeypatch.setattr(session_module, "async_playwright", lambda: _Starter())
    monkeypatch.setattr(session_module, "Stealth", _Stealth)
    return rec


def _names(rec: Recorder) -> List[str]:
    return [call[0] for call in rec.calls]


class TestBrowserSession:
    def test_launches_with_stealth_and_closes_everything(self, monkeypatch) -> None:
        rec = _install(monkeypatch)

        async def use() -> None:
            async with BrowserSession(headless=True, channel="chrome") as browser:
                assert browser.page is not None
                assert browser.context is not None

        asyncio.run(use())

        launch_kwargs = rec.calls[0][1]
        assert launch_kwargs["headless"] is True
        assert launch_kwargs["channel"] == "chrome"
        assert "--disable-blink-features=AutomationControlled" in launch_kwargs["args"]
        assert rec.calls[1][1]["locale"] == "en-US"
        assert _names(rec)[2:] == ["stealth", "page.close", "context.close", "browser.close", "playwright.stop"]

    def test_stealth_can_be_disabled(self, monkeypatch) -> None:
        rec = _install(monkeypatch)

        async def use() -> None:
            async with BrowserSession(use_stealth=False):
                pass

        asyncio.run(use())

        assert "stealth" not in _names(rec)

    def test_launch_failure_still_stops_driver(self, monkeypatch) -> None:
        rec = _install(monkeypatch, fail=True)

        async def use() -> None:
            async with BrowserSession():
                pass

        with pytest.raises(RuntimeError):
            asyncio.run(use())

        assert _names(rec) == ["launch", "playwright.stop"]
