"""GitHub App authentication.

An installation access token is obtained in two steps:
  1. mint a short-lived RS256 JWT signed with the app's private key (iss = app id)
  2. POST it to /app/installations/{id}/access_tokens

The token is valid for about an hour. TokenCache keeps it in memory and only
repeats the two steps once the token is absent or within `safety_margin`
seconds of expiry. Refresh is single-flight: callers that find the cache stale
queue on one lock, the first performs the exchange, and the rest return the
token it stored. If that exchange fails, the callers that were waiting on it
raise its AuthError instead of starting exchanges of their own.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, NamedTuple

import jwt
import requests

from codesage_core.exceptions import AuthError

logger = logging.getLogger(__name__)

JWT_TTL_SECONDS = 10 * 60
# GitHub rejects assertions issued "in the future"; backdate to absorb clock drift.
JWT_CLOCK_SKEW_SECONDS = 60
DEFAULT_TOKEN_TTL_SECONDS = 60 * 60
USER_AGENT = "CodeSage-Bot"


class _CachedToken(NamedTuple):
    token: str
    expires_at: float


class TokenCache:
    def __init__(
        self,
        app_id: str,
        private_key_path: str,
        installation_id: str,
        api_url: str = "https://api.github.com",
        timeout: float = 10,
        safety_margin: float = 300,
        clock: Callable[[], float] = time.time,
        session: requests.Session | None = None,
    ):
        self._app_id = str(app_id)
        self._private_key_path = private_key_path
        self._installation_id = str(installation_id)
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._safety_margin = safety_margin
        self._clock = clock
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self._cached: _CachedToken | None = None
        # Bumped after every refresh attempt so waiters can tell one finished.
        self._generation = 0
        self._last_error: AuthError | None = None

    def get_installation_token(self) -> str:
        """Return a valid installation token, refreshing it if needed.

        Raises AuthError when signing or the exchange fails.
        """
        cached = self._cached
        if self._is_fresh(cached):
            logger.debug("Using cached installation token")
            return cached.token

        generation = self._generation
        with self._lock:
            # Another caller may have refreshed while we waited for the lock.
            cached = self._cached
            if self._is_fresh(cached):
                return cached.token
            if self._generation != generation and self._last_error is not None:
                # The refresh we waited on failed; share its outcome instead of retrying.
                raise AuthError(str(self._last_error)) from self._last_error
            try:
                self._cached = self._refresh()
                self._last_error = None
            except AuthError as e:
                self._last_error = e
                raise
            finally:
                self._generation += 1
            return self._cached.token

    def invalidate(self) -> None:
        """Drop the cached token so the next call performs a fresh exchange."""
        with self._lock:
            self._cached = None

    def _is_fresh(self, cached: _CachedToken | None) -> bool:
        return cached is not None and self._clock() < cached.expires_at - self._safety_margin

    def _refresh(self) -> _CachedToken:
        logger.info("Generating new installation token for installation %s", self._installation_id)
        assertion = self._mint_jwt()
        url = f"{self._api_url}/app/installations/{self._installation_id}/access_tokens"
        try:
            resp = self._session.post(
                url,
                headers={
                    "Authorization": f"Bearer {assertion}",
                    "Accept": "application/vnd.github+json",
                    "User-Agent": USER_AGENT,
                },
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise AuthError(f"Installation token exchange failed: {e}") from e

        if not resp.ok:
            logger.error("Token exchange rejected: %s %s", resp.status_code, resp.text[:200])
            raise AuthError(f"Installation token exchange failed with HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise AuthError("Installation token response is not JSON") from e

        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthError("Installation token response has no token")

        expires_at = self._parse_expiry(data.get("expires_at"))
        logger.info("Successfully generated installation token")
        return _CachedToken(token=token, expires_at=expires_at)

    def _mint_jwt(self) -> str:
        try:
            private_key = Path(self._private_key_path).read_text()
        except OSError as e:
            raise AuthError(f"Cannot read GitHub App private key: {e}") from e

        now = int(self._clock())
        payload = {
            "iat": now - JWT_CLOCK_SKEW_SECONDS,
            "exp": now + JWT_TTL_SECONDS,
            "iss": self._app_id,
        }
        try:
            return jwt.encode(payload, private_key, algorithm="RS256")
        except Exception as e:
            logger.error("Error generating JWT: %s", e)
            raise AuthError(f"Failed to generate JWT for GitHub App: {e}") from e

    def _parse_expiry(self, value) -> float:
        if isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=timezone.utc)
                return parsed.timestamp()
            except ValueError:
                logger.warning("Unparsable token expiry %r; assuming one hour", value)
        return self._clock() + DEFAULT_TOKEN_TTL_SECONDS
