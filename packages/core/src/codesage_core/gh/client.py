"""Source-control client: fetch a PR's unified diff and post a PR comment.

Both calls authenticate with an installation token from TokenCache, carry an
explicit timeout, and go through the shared retry helper. Only transient
failures are retried (network errors, timeouts, 5xx, 429, and 401, which
also drops the cached token). Any other 4xx surfaces at once as a
PlatformError carrying the status code.

Without a TokenCache the client runs unconfigured: fetch_diff returns a fixed
sample diff and post_comment only logs the body.
"""

from __future__ import annotations

import logging

import requests
from github import Auth, Github, GithubException

from codesage_core.exceptions import PlatformError
from codesage_core.gh.auth import USER_AGENT, TokenCache
from codesage_core.utils.retry import DEFAULT_ATTEMPTS, DEFAULT_BASE_DELAY, call_with_retry

logger = logging.getLogger(__name__)

_RETRYABLE_STATUSES = {401, 429}

MOCK_DIFF = """\
diff --git a/src/example/db.py b/src/example/db.py
index 1234567..abcdefg 100644
--- a/src/example/db.py
+++ b/src/example/db.py
@@ -10,7 +10,8 @@ class UserRepository:
     def find_by_name(self, name):
-        query = "SELECT * FROM users WHERE name = '" + name + "'"
-        return self.conn.execute(query).fetchall()
+        query = "SELECT * FROM users WHERE name = ?"
+        return self.conn.execute(query, (name,)).fetchall()
"""


def _is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, PlatformError):
        return False
    return exc.status_code is None or exc.is_server_error or exc.status_code in _RETRYABLE_STATUSES


class SourceControlClient:
    def __init__(
        self,
        token_cache: TokenCache | None = None,
        api_url: str = "https://api.github.com",
        timeout: float = 15,
        attempts: int = DEFAULT_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        session: requests.Session | None = None,
    ):
        self._tokens = token_cache
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._attempts = attempts
        self._base_delay = base_delay
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return self._tokens is not None

    def fetch_diff(self, owner: str, name: str, pr_number: int) -> str:
        """Return the unified diff of a pull request.

        Raises PlatformError once retries are exhausted, AuthError if no
        installation token can be obtained.
        """
        logger.info("Fetching PR diff for %s/%s #%d", owner, name, pr_number)
        if not self.configured:
            logger.warning("GitHub App not configured. Returning mock diff.")
            return MOCK_DIFF

        url = f"{self._api_url}/repos/{owner}/{name}/pulls/{pr_number}"

        def _fetch_once() -> str:
            token = self._tokens.get_installation_token()
            try:
                resp = self._session.get(
                    url,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/vnd.github.v3.diff",
                        "User-Agent": USER_AGENT,
                    },
                    timeout=self._timeout,
                )
            except requests.RequestException as e:
                raise PlatformError(f"Failed to fetch PR diff: {e}") from e
            if resp.status_code == 401:
                self._tokens.invalidate()
            if not resp.ok:
                raise PlatformError("Failed to fetch PR diff", resp.status_code)
            return resp.text

        diff = call_with_retry(
            _fetch_once,
            attempts=self._attempts,
            base_delay=self._base_delay,
            retry_on=_is_transient,
            label=f"GitHub diff fetch {owner}/{name}#{pr_number}",
        )
        logger.info("Successfully fetched diff for PR #%d (%d chars)", pr_number, len(diff))
        return diff

    def post_comment(self, owner: str, name: str, pr_number: int, body: str) -> None:
        """Post `body` as a comment on the pull request's conversation."""
        logger.info("Posting comment to PR %s/%s #%d", owner, name, pr_number)
        if not self.configured:
            logger.warning("GitHub App not configured. Logging comment instead:")
            logger.info("Comment for PR #%d:\n%s", pr_number, body)
            return

        def _post_once() -> None:
            token = self._tokens.get_installation_token()
            gh = Github(auth=Auth.Token(token), base_url=self._api_url, timeout=self._timeout, retry=None)
            try:
                issue = gh.get_repo(f"{owner}/{name}", lazy=True).get_issue(pr_number)
                issue.create_comment(body)
            except GithubException as e:
                if e.status == 401:
                    self._tokens.invalidate()
                raise PlatformError("Failed to post comment", e.status) from e
            except requests.RequestException as e:
                raise PlatformError(f"Failed to post comment: {e}") from e
            finally:
                gh.close()

        call_with_retry(
            _post_once,
            attempts=self._attempts,
            base_delay=self._base_delay,
            retry_on=_is_transient,
            label=f"GitHub comment post {owner}/{name}#{pr_number}",
        )
        logger.info("Successfully posted comment to PR #%d", pr_number)
