"""
tests/test_platforms.py

Platform table loading and validation.
"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from product_migrator.core.platforms import (
    REQUIRED_FIELDS,
    PlatformConfig,
    TimingBudgets,
    get_platform,
    load_platform_configs,
)


def _entry(**overrides) -> dict:
    entry = {
        "login_url": "https://shop.test/login",
        "form_url": "https://shop.test/products/new",
        "selectors": {name: [f"#{name}"] for name in REQUIRED_FIELDS},
    }
    entry.update(overrides)
    return entry


class TestBuiltins:
    def test_payhip_is_configured(self) -> None:
        payhip = get_platform("Payhip")

        assert payhip.name == "payhip"
        assert payhip.login_url.startswith("https://")
        for field in REQUIRED_FIELDS:
            assert payhip.candidates(field)
        assert payhip.has_field("product_file")
        assert payhip.challenge_selectors
        assert payhip.error_selectors

    def test_unknown_platform(self) -> None:
        with pytest.raises(KeyError, match="Unknown platform"):
            get_platform("etsy")


class TestValidation:
    def test_missing_required_field_rejected(self) -> None:
        selectors = {name: ["#x"] for name in REQUIRED_FIELDS if name != "product_price"}

        with pytest.raises(ValidationError, match="product_price"):
            PlatformConfig(name="shop", **_entry(selectors=selectors))

    def test_empty_candidate_list_rejected(self) -> None:
        selectors = {name: ["#x"] for name in REQUIRED_FIELDS}
        selectors["product_title"] = ["  "]

        with pytest.raises(ValidationError, match="product_title"):
            PlatformConfig(name="shop", **_entry(selectors=selectors))

    def test_unknown_field_lookup_raises(self) -> None:
        platform = PlatformConfig(name="shop", **_entry())

        assert platform.has_field("product_image") is False
        with pytest.raises(KeyError):
            platform.candidates("product_image")

    def test_timing_ranges_are_ordered(self) -> None:
        timing = TimingBudgets(typing_min=120, typing_max=50, batch_delay_min=4000, batch_delay_max=1000)

        assert timing.typing_max == 120
        assert timing.batch_delay_max == 4000


class TestExtraPlatforms:
    def test_extra_file_merged_over_builtins(self, tmp_path) -> None:
        extra = tmp_path / "platforms.json"
        extra.write_text(json.dumps({"platforms": {"MockShop": _entry()}}))

        platforms = load_platform_configs(extra)

        assert {"payhip", "mockshop"} <= set(platforms)
        assert get_platform("mockshop", extra).form_url == "https://shop.test/products/new"

    def test_invalid_extra_file_reports_platform(self, tmp_path) -> None:
        extra = tmp_path / "broken.json"
        extra.write_text(json.dumps({"platforms": {"broken": {"login_url": "x"}}}))

        with pytest.raises(ValueError, match="broken"):
            load_platform_configs(extra)
