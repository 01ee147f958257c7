"""
tests/test_session_store.py

Per-(platform, account) cookie persistence.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

from product_migrator.auth.session_store import SessionStore, normalize_cookie
from tests.fakes import FakeContext

COOKIE = {
    "name": "sid", "value": "abc123", "domain": ".payhip.com", "path": "/",
    "expires": 1893456000, "httpOnly": True, "secure": True, "sameSite": "Lax",
}


class TestPersistRestore:
    def test_round_trip(self, tmp_path) -> None:
        store = SessionStore(tmp_path)
        store.persist("payhip", "seller@example.com", [COOKIE])

        assert store.restore("payhip", "seller@example.com") == [COOKIE]

    def test_missing_session_is_none(self, tmp_path) -> None:
        assert SessionStore(tmp_path).restore("payhip", "nobody@example.com") is None

    def test_accounts_do_not_share_sessions(self, tmp_path) -> None:
        store = SessionStore(tmp_path)
        store.persist("payhip", "a@example.com", [COOKIE])

        assert store.restore("payhip", "b@example.com") is None
        assert store.restore("gumroad", "a@example.com") is None

    def test_similar_accounts_map_to_distinct_files(self, tmp_path) -> None:
        store = SessionStore(tmp_path)
        store.persist("payhip", "john+shop@x.com", [COOKIE])

        assert store.restore("payhip", "john_shop@x.com") is None
        assert store.restore("payhip", "john+shop@x.com") == [COOKIE]

    def test_platform_and_account_boundary_is_kept(self, tmp_path) -> None:
        store = SessionStore(tmp_path)
        store.persist("a_b", "c", [COOKIE])

        assert store.restore("a", "b_c") is None

    def test_file_stored_for_another_account_is_ignored(self, tmp_path) -> None:
        store = SessionStore(tmp_path)
        store.persist("payhip", "a@example.com", [COOKIE])
        original = next(tmp_path.iterdir())
        store.persist("payhip", "b@example.com", [dict(COOKIE, value="other")])
        other = next(p for p in tmp_path.iterdir() if p != original)
        original.write_text(other.read_text())

        assert store.restore("payhip", "a@example.com") is None

    def test_persist_overwrites(self, tmp_path) -> None:
        store = SessionStore(tmp_path)
        store.persist("payhip", "a@example.com", [COOKIE])
        store.persist("payhip", "a@example.com", [dict(COOKIE, value="fresh")])

        assert store.restore("payhip", "a@example.com")[0]["value"] == "fresh"
        assert [p.suffix for p in tmp_path.iterdir()] == [".json"]

    def test_expired_session_discarded(self, tmp_path) -> None:
        store = SessionStore(tmp_path)
        store.persist("payhip", "a@example.com", [COOKIE])
        session_file = next(tmp_path.iterdir())
        data = json.loads(session_file.read_text())
        data["expires_at"] = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        session_file.write_text(json.dumps(data))

        assert store.restore("payhip", "a@example.com") is None
        assert not session_file.exists()

    def test_corrupt_file_ignored(self, tmp_path) -> None:
        store = SessionStore(tmp_path)
        store.persist("payhip", "a@example.com", [COOKIE])
        next(tmp_path.iterdir()).write_text("{not json")

        assert store.restore("payhip", "a@example.com") is None

    def test_delete(self, tmp_path) -> None:
        store = SessionStore(tmp_path)
        store.persist("payhip", "a@example.com", [COOKIE])

        assert store.delete("payhip", "a@example.com") is True
        assert store.delete("payhip", "a@example.com") is False


class TestBrowserHelpers:
    def test_normalize_drops_unknown_keys(self) -> None:
        record = normalize_cookie({"name": "sid", "value": "x", "partitionKey": "p"})

        assert record == {
            "name": "sid", "value": "x", "domain": "", "path": "/",
            "expires": -1, "httpOnly": False, "secure": False,
        }

    def test_capture_and_apply(self) -> None:
        source, target = FakeContext(), FakeContext()
        asyncio.run(source.add_cookies([COOKIE]))

        cookies = asyncio.run(SessionStore.capture(source))
        asyncio.run(SessionStore.apply(target, cookies))

        assert target.cookie_value("sid") == "abc123"
