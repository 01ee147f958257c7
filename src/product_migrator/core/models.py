"""
Data model for migration jobs and progress reporting.

Wire-facing models serialize with camelCase aliases (``jobId``, ``imageUrls``)
so payloads from the workflow orchestrator validate unchanged.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic.alias_generators import to_camel


class Stage(str, Enum):
    """Fixed progress stages reported to observers"""
    VALIDATING = "validating"
    LOGGING_IN = "loggingIn"
    FILLING_FORM = "fillingForm"
    UPLOADING = "uploading"
    SUBMITTING = "submitting"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.COMPLETE, Stage.FAILED)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ProductRecord(_WireModel):
    """Product listing copied from the source storefront (read-only)"""
    title: str = Field(min_length=1)
    description: str = ""
    price: float = Field(ge=0)
    image_urls: List[str] = Field(default_factory=list)
    file_urls: List[str] = Field(default_factory=list)

    @property
    def primary_file_url(self) -> Optional[str]:
        return self.file_urls[0] if self.file_urls else None

    def price_text(self) -> str:
        """Price as typed into a form field (no trailing zeros beyond cents)"""
        text = f"{self.price:.2f}"
        return text[:-3] if text.endswith(".00") else text


class AccountCredentials(_WireModel):
    username: str = Field(min_length=1)
    password: SecretStr


class JobCredentials(_WireModel):
    destination: AccountCredentials
    source: Optional[AccountCredentials] = None


class JobOptions(_WireModel):
    """Per-job overrides. ``None`` means use the engine settings"""
    max_step_attempts: Optional[int] = Field(default=None, ge=1)
    asset_max_retries: Optional[int] = Field(default=None, ge=1)
    headless: Optional[bool] = None
    callback_url: Optional[str] = None
    batch_delay_ms: Optional[Tuple[int, int]] = None

    @field_validator('batch_delay_ms')
    @classmethod
    def _delay_range(cls, value):
        if value is not None:
            low, high = value
            if low < 0 or low > high:
                raise ValueError(f"batchDelayMs must be [min, max] with 0 <= min <= max, got {list(value)}")
        return value


class MigrationJob(_WireModel):
    """One unit of work: migrate one product (or a batch) into one account"""
    job_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source_product: ProductRecord
    additional_products: List[ProductRecord] = Field(default_factory=list)
    target_platform: str = Field(min_length=1)
    credentials: JobCredentials
    options: JobOptions = Field(default_factory=JobOptions)

    def products(self) -> List[ProductRecord]:
        return [self.source_product, *self.additional_products]

    @property
    def is_batch(self) -> bool:
        return bool(self.additional_products)

    @property
    def account(self) -> str:
        return self.credentials.destination.username


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressEvent(_WireModel):
    """Progress update emitted by the orchestrator (append-only stream)"""
    job_id: str
    stage: Stage
    percent: int = Field(ge=0, le=100)
    message: str
    timestamp: datetime = Field(default_factory=_utc_now)
    screenshot_ref: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one attempt at one state; decides retry vs abort"""
    success: bool
    error: Optional[Exception] = None
    screenshot_ref: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return bool(self.error is not None and getattr(self.error, 'retryable', False))


__all__ = [
    'Stage',
    'ProductRecord',
    'AccountCredentials',
    'JobCredentials',
    'JobOptions',
    'MigrationJob',
    'ProgressEvent',
    'StepResult',
]
