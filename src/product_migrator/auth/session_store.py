"""
Session cookie storage for target platforms
Persists authentication cookies per (platform, account) as local JSON files
so later runs can skip the interactive login
"""
import hashlib
import json
import logging
import os
import re
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import BrowserContext

logger = logging.getLogger(__name__)

COOKIE_FIELDS = ('name', 'value', 'domain', 'path', 'expires', 'httpOnly', 'secure')


def _slug(value: str) -> str:
    return re.sub(r'[^A-Za-z0-9._-]+', '_', value.strip().lower()).strip('_') or 'default'


def _key(platform: str, account: str) -> str:
    return f"{platform.strip().lower()}\n{account.strip().lower()}"


def normalize_cookie(cookie: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a browser cookie to the stored record shape"""
    record = {
        'name': cookie['name'],
        'value': cookie['value'],
        'domain': cookie.get('domain', ''),
        'path': cookie.get('path', '/'),
        'expires': cookie.get('expires', -1),
        'httpOnly': cookie.get('httpOnly', False),
        'secure': cookie.get('secure', False),
    }
    if cookie.get('sameSite'):
        record['sameSite'] = cookie['sameSite']
    return record


class SessionStore:
    """Owns stored cookies; one file per (platform, account) key"""

    def __init__(self, session_dir: Path, ttl_days: int = 30):
        """
        Args:
            session_dir: Directory holding the session files (created if missing)
            ttl_days: Sessions older than this are discarded on restore
        """
        self.session_dir = Path(session_dir)
        self.session_dir.mkdir(parents=True, exist_ok=True)
        self.ttl = timedelta(days=ttl_days)

    def _session_file(self, platform: str, account: str) -> Path:
        # Readable prefix; the digest alone identifies the key
        digest = hashlib.sha256(_key(platform, account).encode('utf-8')).hexdigest()[:16]
        return self.session_dir / f"{_slug(platform)}-{digest}.json"

    def restore(self, platform: str, account: str) -> Optional[List[Dict[str, Any]]]:
        """
        Load stored cookies for the key

        Returns:
            The cookie records, or None when missing, unreadable or expired
        """
        session_file = self._session_file(platform, account)
        if not session_file.exists():
            logger.info(f"No saved session for {platform} (account: {account})")
            return None

        try:
            session_data = json.loads(session_file.read_text(encoding='utf-8'))
            expires_at = datetime.fromisoformat(session_data['expires_at'])
            cookies = session_data['cookies']
            stored_key = session_data['key']
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable session file {session_file.name}: {e}")
            return None

        if stored_key != _key(platform, account):
            logger.warning(f"Ignoring session file {session_file.name}: stored for another account")
            return None

        if datetime.now(timezone.utc) > expires_at:
            logger.warning(f"Session expired for {platform} (account: {account})")
            session_file.unlink(missing_ok=True)
            return None

        logger.info(f"✅ Restored {len(cookies)} cookie(s) for {platform} (account: {account})")
        return cookies

    def persist(self, platform: str, account: str, cookies: List[Dict[str, Any]]):
        """Overwrite the stored cookies for the key (atomic replace)"""
        now = datetime.now(timezone.utc)
        session_data = {
            'platform': platform,
            'key': _key(platform, account),
            'cookies': [normalize_cookie(c) for c in cookies],
            'saved_at': now.isoformat(),
            'expires_at': (now + self.ttl).isoformat(),
        }

        session_file = self._session_file(platform, account)
        fd, tmp_path = tempfile.mkstemp(dir=self.session_dir, prefix=session_file.stem, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(session_data, f, indent=2)
            os.replace(tmp_path, session_file)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

        logger.info(f"💾 Saved session for {platform} (account: {account})")

    def delete(self, platform: str, account: str) -> bool:
        session_file = self._session_file(platform, account)
        if session_file.exists():
            session_file.unlink()
            logger.info(f"🗑️ Deleted session for {platform} (account: {account})")
            return True
        return False

    # === BROWSER CONTEXT HELPERS ===

    @staticmethod
    async def capture(context: BrowserContext) -> List[Dict[str, Any]]:
        return [normalize_cookie(c) for c in await context.cookies()]

    @staticmethod
    async def apply(context: BrowserContext, cookies: List[Dict[str, Any]]):
        await context.add_cookies(cookies)
