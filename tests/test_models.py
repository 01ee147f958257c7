"""
tests/test_models.py

Job payload parsing, progress events and engine configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from product_migrator.core.config import MigratorConfig
from product_migrator.core.errors import ElementNotFound, PageErrorDetected
from product_migrator.core.models import MigrationJob, ProductRecord, ProgressEvent, Stage, StepResult
from tests.fakes import make_job, product_payload


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class TestMigrationJob:
    def test_parses_camel_case_payload(self) -> None:
        job = make_job(additional=2)

        assert job.source_product.title == "Lightroom Presets"
        assert job.source_product.price == 19.99
        assert job.is_batch is True
        assert [p.title for p in job.products()] == ["Lightroom Presets", "Bonus Pack 1", "Bonus Pack 2"]
        assert job.account == "seller@example.com"
        assert len(job.job_id) == 32

    def test_password_is_secret(self) -> None:
        job = make_job()

        assert "hunter2" not in repr(job)
        assert job.credentials.destination.password.get_secret_value() == "hunter2"

    def test_empty_title_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_job(sourceProduct=product_payload(title=""))

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_job(sourceProduct=product_payload(price=-1))

    def test_product_is_read_only(self) -> None:
        product = ProductRecord(title="Pack", price=5)
        with pytest.raises(ValidationError):
            product.title = "Other"

    def test_batch_delay_option(self) -> None:
        job = make_job(options={"batchDelayMs": [10, 20]})

        assert job.options.batch_delay_ms == (10, 20)

    def test_inverted_batch_delay_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_job(options={"batchDelayMs": [20, 10]})


class TestProductRecord:
    @pytest.mark.parametrize("price, text", [(19.99, "19.99"), (20.0, "20"), (0, "0"), (7.5, "7.50")])
    def test_price_text(self, price, text) -> None:
        assert ProductRecord(title="Pack", price=price).price_text() == text

    def test_primary_file_url(self) -> None:
        assert ProductRecord(title="Pack", price=1, file_urls=["a", "b"]).primary_file_url == "a"
        assert ProductRecord(title="Pack", price=1).primary_file_url is None


# ---------------------------------------------------------------------------
# Events and step results
# ---------------------------------------------------------------------------


class TestProgressEvent:
    def test_json_dict_uses_wire_names(self) -> None:
        event = ProgressEvent(job_id="j1", stage=Stage.LOGGING_IN, percent=10, message="Logging in")

        data = event.to_json_dict()

        assert data["jobId"] == "j1"
        assert data["stage"] == "loggingIn"
        assert "screenshotRef" not in data
        assert data["timestamp"].endswith(("Z", "+00:00"))

    def test_percent_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ProgressEvent(job_id="j1", stage=Stage.COMPLETE, percent=101, message="done")

    def test_terminal_stages(self) -> None:
        assert Stage.COMPLETE.is_terminal and Stage.FAILED.is_terminal
        assert not any(s.is_terminal for s in Stage if s not in (Stage.COMPLETE, Stage.FAILED))


class TestStepResult:
    def test_retryable_follows_error(self) -> None:
        assert StepResult(False, ElementNotFound("title", ["#t"])).retryable is True
        assert StepResult(False, PageErrorDetected("Price too low")).retryable is False
        assert StepResult(True).retryable is False


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestMigratorConfig:
    def test_from_env(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("MIGRATOR_HEADLESS", "false")
        monkeypatch.setenv("MIGRATOR_SESSION_DIR", str(tmp_path))
        monkeypatch.setenv("MIGRATOR_MAX_STEP_ATTEMPTS", "5")
        monkeypatch.setenv("MIGRATOR_ASSET_MAX_RETRIES", "not-a-number")
        monkeypatch.setenv("MIGRATOR_LOG_LEVEL", "debug")

        config = MigratorConfig.from_env()

        assert config.headless is False
        assert config.session_dir == Path(tmp_path)
        assert config.max_step_attempts == 5
        assert config.asset_max_retries == 3
        assert config.log_level == "DEBUG"

    def test_with_overrides_ignores_none(self) -> None:
        config = MigratorConfig(headless=True)

        assert config.with_overrides(headless=None) is config
        assert config.with_overrides(headless=False).headless is False
