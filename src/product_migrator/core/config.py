import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        return default


def _get_float_env(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return max(minimum, float(raw))
    except ValueError:
        return default


def _get_str_env(name: str, default: Optional[str]) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped or default


@dataclass(frozen=True)
class MigratorConfig:
    """
    Central configuration for the migration engine.
    Handles environment variables, working directories and retry limits.
    """

    headless: bool = True
    use_stealth: bool = True
    browser_channel: Optional[str] = None
    session_dir: Path = Path.home() / '.product_migrator' / 'sessions'
    session_ttl_days: int = 30
    staging_dir: Path = Path.home() / '.product_migrator' / 'staging'
    artifact_dir: Path = Path.home() / '.product_migrator' / 'artifacts'
    max_step_attempts: int = 3
    asset_max_retries: int = 3
    asset_base_delay_ms: int = 1500
    asset_timeout_seconds: float = 60.0
    platforms_path: Optional[Path] = None
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'MigratorConfig':
        defaults = cls()
        platforms_path = _get_str_env('MIGRATOR_PLATFORMS_PATH', None)
        return cls(
            headless=_get_bool_env('MIGRATOR_HEADLESS', defaults.headless),
            use_stealth=_get_bool_env('MIGRATOR_USE_STEALTH', defaults.use_stealth),
            browser_channel=_get_str_env('MIGRATOR_BROWSER_CHANNEL', defaults.browser_channel),
            session_dir=Path(_get_str_env('MIGRATOR_SESSION_DIR', str(defaults.session_dir))),
            session_ttl_days=_get_int_env('MIGRATOR_SESSION_TTL_DAYS', defaults.session_ttl_days, 1),
            staging_dir=Path(_get_str_env('MIGRATOR_STAGING_DIR', str(defaults.staging_dir))),
            artifact_dir=Path(_get_str_env('MIGRATOR_ARTIFACT_DIR', str(defaults.artifact_dir))),
            max_step_attempts=_get_int_env('MIGRATOR_MAX_STEP_ATTEMPTS', defaults.max_step_attempts, 1),
            asset_max_retries=_get_int_env('MIGRATOR_ASSET_MAX_RETRIES', defaults.asset_max_retries, 1),
            asset_base_delay_ms=_get_int_env('MIGRATOR_ASSET_BASE_DELAY_MS', defaults.asset_base_delay_ms),
            asset_timeout_seconds=_get_float_env(
                'MIGRATOR_ASSET_TIMEOUT_SECONDS', defaults.asset_timeout_seconds, 1.0
            ),
            platforms_path=Path(platforms_path) if platforms_path else None,
            log_level=(_get_str_env('MIGRATOR_LOG_LEVEL', defaults.log_level) or 'INFO').upper(),
        )

    def with_overrides(self, **changes) -> 'MigratorConfig':
        """Copy with the non-None keyword values applied"""
        applied = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **applied) if applied else self

    @staticmethod
    def get_project_root() -> Path:
        # src/product_migrator/core/ -> src/product_migrator/ -> src/ -> root
        return Path(__file__).parent.parent.parent.parent
