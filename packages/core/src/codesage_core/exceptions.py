"""Error taxonomy for the analysis pipeline.

Every error here is caught at the orchestrator boundary; none is allowed to
escape a worker.
"""

from __future__ import annotations


class CodeSageError(Exception):
    """Base class for all pipeline errors."""


class MalformedEventError(CodeSageError):
    """A pull request event is missing a field the pipeline needs."""


class AIServiceError(CodeSageError):
    pass


class ProviderExhaustedError(AIServiceError):
    """One provider failed on every retry attempt."""

    def __init__(self, provider: str, attempts: int, cause: BaseException | None = None):
        super().__init__(f"{provider} failed after {attempts} attempt(s): {cause}")
        self.provider = provider
        self.attempts = attempts


class ParseError(CodeSageError):
    """The provider reply could not be interpreted as an analysis document."""


class AuthError(CodeSageError):
    """Signing the app assertion or exchanging it for an installation token failed."""


class PlatformError(CodeSageError):
    """A source-control API call failed.

    status_code is the upstream HTTP status when one was received, None for
    network errors and timeouts.
    """

    def __init__(self, message: str, status_code: int | None = None):
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500
