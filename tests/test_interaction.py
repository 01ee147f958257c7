"""
tests/test_interaction.py

Human-paced typing, pointer clicks and uploads.
"""

from __future__ import annotations

import asyncio
import random

from product_migrator.core.platforms import TimingBudgets
from product_migrator.dom.interaction import InteractionSimulator
from tests.fakes import FakeElement, FakePage

ZERO = TimingBudgets(typing_min=0, typing_max=0, click_settle=0)


def _simulator(page: FakePage, timing: TimingBudgets = ZERO) -> InteractionSimulator:
    return InteractionSimulator(page, timing, random.Random(7))


class TestType:
    def test_types_one_character_at_a_time(self) -> None:
        page = FakePage()
        element = page.add("#title")
        element.value = "stale text"

        asyncio.run(_simulator(page).type(element, "Presets"))

        assert element.focused is True
        assert element.value == "Presets"
        assert element.typed == list("Presets")
        assert element.events == ["change", "blur"]

    def test_empty_text_still_clears_field(self) -> None:
        page = FakePage()
        element = page.add("#description")
        element.value = "old"

        asyncio.run(_simulator(page).type(element, ""))

        assert element.value == ""
        assert element.typed == []

    def test_keystroke_delays_stay_in_range(self) -> None:
        timing = TimingBudgets(typing_min=40, typing_max=90)
        simulator = _simulator(FakePage(), timing)

        delays = [simulator._keystroke_delay() for _ in range(200)]

        assert all(40 <= d <= 90 for d in delays)


class TestClick:
    def test_presses_pointer_over_element_centre(self) -> None:
        page = FakePage()
        button = page.add("#publish", FakeElement("#publish", box={"x": 10, "y": 20, "width": 100, "height": 40}))

        asyncio.run(_simulator(page).click(button))

        assert page.mouse.position == (60, 40)
        assert button.clicks == 1

    def test_falls_back_to_element_click_without_box(self) -> None:
        page = FakePage()
        button = page.add("#publish")

        asyncio.run(_simulator(page).click(button))

        assert button.clicks == 1
        assert page.action_kinds() == ["click"]


class TestUpload:
    def test_sets_input_files(self, tmp_path) -> None:
        page = FakePage()
        field = page.add("#file")
        staged = tmp_path / "course.pdf"
        staged.write_bytes(b"%PDF-1.7")

        asyncio.run(_simulator(page).upload(field, staged))

        assert field.files == [b"%PDF-1.7"]
