"""
Target platform table.

Each supported storefront is one JSON entry mapping logical form fields to
ordered selector candidates (most specific first), plus page URLs and timing
budgets. Adding a platform whose form fits the generic
login/fill/upload/submit pipeline means adding an entry, not code.
"""
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

BUILTIN_PLATFORMS_PATH = Path(__file__).parent / 'platforms.json'

REQUIRED_FIELDS = (
    'login_email',
    'login_password',
    'login_submit',
    'product_title',
    'product_price',
    'product_submit',
)


class TimingBudgets(BaseModel):
    """Per-step budgets in milliseconds"""
    model_config = ConfigDict(frozen=True)

    selector: int = Field(default=10000, ge=0)
    navigation: int = Field(default=30000, ge=0)
    typing_min: int = Field(default=50, ge=0)
    typing_max: int = Field(default=150, ge=0)
    click_settle: int = Field(default=300, ge=0)
    marker_probe: int = Field(default=3000, ge=0)
    challenge_wait: int = Field(default=6000, ge=0)
    decoy_settle: int = Field(default=1500, ge=0)
    upload_settle: int = Field(default=5000, ge=0)
    submit_settle: int = Field(default=2000, ge=0)
    batch_delay_min: int = Field(default=2000, ge=0)
    batch_delay_max: int = Field(default=5000, ge=0)

    @field_validator('typing_max')
    @classmethod
    def _typing_range(cls, value, info):
        minimum = info.data.get('typing_min', 0)
        return max(value, minimum)

    @field_validator('batch_delay_max')
    @classmethod
    def _batch_range(cls, value, info):
        minimum = info.data.get('batch_delay_min', 0)
        return max(value, minimum)


class PlatformConfig(BaseModel):
    """Static description of one target storefront"""
    model_config = ConfigDict(frozen=True)

    name: str
    login_url: str
    form_url: str
    selectors: Dict[str, List[str]]
    challenge_selectors: List[str] = Field(default_factory=list)
    error_selectors: List[str] = Field(default_factory=list)
    timing_budgets_ms: TimingBudgets = Field(default_factory=TimingBudgets)

    @field_validator('selectors')
    @classmethod
    def _non_empty_candidates(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        cleaned: Dict[str, List[str]] = {}
        for field_name, candidates in value.items():
            stripped = [c.strip() for c in candidates if isinstance(c, str) and c.strip()]
            if not stripped:
                raise ValueError(f"selectors['{field_name}'] must list at least one candidate")
            cleaned[field_name.strip().lower()] = stripped
        missing = [name for name in REQUIRED_FIELDS if name not in cleaned]
        if missing:
            raise ValueError(f"missing selectors for: {', '.join(missing)}")
        return cleaned

    def candidates(self, field_name: str) -> List[str]:
        try:
            return self.selectors[field_name]
        except KeyError:
            raise KeyError(f"Platform '{self.name}' has no selectors for '{field_name}'") from None

    def has_field(self, field_name: str) -> bool:
        return field_name in self.selectors

    @property
    def timing(self) -> TimingBudgets:
        return self.timing_budgets_ms


def _read_platform_file(path: Path) -> Dict[str, PlatformConfig]:
    if not path.exists():
        raise FileNotFoundError(f"Platform config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding='utf-8'))
    entries = raw_data.get('platforms', {})
    if not isinstance(entries, dict):
        raise ValueError(f"Invalid platform config {path}: 'platforms' must be an object")

    parsed: Dict[str, PlatformConfig] = {}
    for name, entry in entries.items():
        if not isinstance(entry, dict):
            raise ValueError(f"Invalid platform config {path}: entry '{name}' must be an object")
        key = name.strip().lower()
        try:
            parsed[key] = PlatformConfig(name=key, **entry)
        except ValidationError as e:
            raise ValueError(f"Invalid platform '{name}' in {path}: {e}") from e
    return parsed


@lru_cache(maxsize=4)
def load_platform_configs(extra_path: Optional[Path] = None) -> Dict[str, PlatformConfig]:
    """
    Load the built-in platform table, merging ``extra_path`` entries over it.

    Args:
        extra_path: Optional JSON file with the same shape as platforms.json

    Returns:
        Mapping of platform name to immutable PlatformConfig
    """
    platforms = _read_platform_file(BUILTIN_PLATFORMS_PATH)
    if extra_path is not None:
        extra = _read_platform_file(Path(extra_path))
        platforms.update(extra)
        logger.info(f"Loaded {len(extra)} extra platform(s) from {extra_path}")
    return platforms


def get_platform(name: str, extra_path: Optional[Path] = None) -> PlatformConfig:
    platforms = load_platform_configs(extra_path)
    key = name.strip().lower()
    if key not in platforms:
        allowed = ", ".join(sorted(platforms))
        raise KeyError(f"Unknown platform '{name}'. Configured platforms: {allowed}")
    return platforms[key]


__all__ = [
    'TimingBudgets',
    'PlatformConfig',
    'REQUIRED_FIELDS',
    'load_platform_configs',
    'get_platform',
]
