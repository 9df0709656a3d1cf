"""Extraction of pull request events from raw webhook payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from codesage_core.exceptions import MalformedEventError

HANDLED_ACTIONS = frozenset({"opened", "synchronize"})


@dataclass(frozen=True)
class AnalysisEvent:
    owner: str
    name: str
    pr_number: int
    pr_title: str
    pr_author: str
    pr_url: str
    action: str

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.owner, self.name, self.pr_number)

    def describe(self) -> str:
        return f"{self.owner}/{self.name}#{self.pr_number}"


def _dig(payload: Any, *path: str) -> Any:
    node = payload
    for part in path:
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def extract_event(payload: Any) -> AnalysisEvent | None:
    """Return the event carried by a webhook payload.

    Returns None for anything that is not an `opened` or `synchronize` pull
    request action; those are acknowledged and dropped. Raises
    MalformedEventError when a handled action lacks the PR number or the
    repository owner/name.
    """
    action = _dig(payload, "action")
    if action not in HANDLED_ACTIONS:
        return None

    pr = _dig(payload, "pull_request")
    if not isinstance(pr, dict):
        raise MalformedEventError(f"'{action}' event has no pull_request object")

    number = pr.get("number")
    owner = _dig(pr, "base", "repo", "owner", "login")
    name = _dig(pr, "base", "repo", "name")

    # bool is an int subclass; a JSON true is not a PR number.
    if not isinstance(number, int) or isinstance(number, bool):
        raise MalformedEventError("pull_request.number is missing or not an integer")
    if not isinstance(owner, str) or not owner:
        raise MalformedEventError("pull_request.base.repo.owner.login is missing")
    if not isinstance(name, str) or not name:
        raise MalformedEventError("pull_request.base.repo.name is missing")

    return AnalysisEvent(
        owner=owner,
        name=name,
        pr_number=number,
        pr_title=pr.get("title") or "",
        pr_author=_dig(pr, "user", "login") or "",
        pr_url=pr.get("html_url") or "",
        action=action,
    )
