"""
Error taxonomy for the migration engine.

Every error carries a ``retryable`` flag. The orchestrator retries the current
step for retryable errors and fails the job immediately for the rest.
"""
from typing import List, Optional


class MigrationError(Exception):
    """Base class for all engine errors"""

    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# === TRANSIENT ===

class ElementNotFound(MigrationError):
    """No selector candidate matched a live element within its budget slice"""

    retryable = True

    def __init__(self, field: str, candidates_tried: List[str]):
        self.field = field
        self.candidates_tried = list(candidates_tried)
        super().__init__(
            f"Element not found for '{field}' (tried: {', '.join(self.candidates_tried)})"
        )


class TransientNetworkError(MigrationError):
    """Navigation or request failed in a way worth retrying"""

    retryable = True


# === STRUCTURAL ===

class AssetDownloadFailed(MigrationError):
    """Remote asset could not be fetched after all retries"""

    def __init__(self, url: str, attempts: int, last_error: Optional[str] = None):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"Failed to download {url} after {attempts} attempt(s){detail}")


class PageErrorDetected(MigrationError):
    """The target page rendered an error banner"""

    def __init__(self, text: str, selector: Optional[str] = None):
        self.text = text
        self.selector = selector
        super().__init__(f"Page error detected: {text}")


class LoginFailed(MigrationError):
    """Login form was submitted but the logged-in marker never appeared"""

    retryable = True


class InvalidJob(MigrationError):
    """Job payload failed validation before any browser work"""


# === DEFENSE-TRIGGERED ===

class ChallengeBlocked(MigrationError):
    """A bot-verification widget survived every mitigation strategy"""

    def __init__(self, step: str, selector: Optional[str] = None):
        self.step = step
        self.selector = selector
        super().__init__(
            f"Blocking verification challenge at '{step}', manual intervention required"
        )


# === CONTROL ===

class JobCancelled(MigrationError):
    """Cancellation was requested between steps"""

    def __init__(self):
        super().__init__("Migration cancelled")


__all__ = [
    'MigrationError',
    'ElementNotFound',
    'TransientNetworkError',
    'AssetDownloadFailed',
    'PageErrorDetected',
    'LoginFailed',
    'InvalidJob',
    'ChallengeBlocked',
    'JobCancelled',
]
