"""Error types shared across the release helper package.

Every fatal condition raised by the helper derives from :class:`ReleaseError`
so the command-line layer can report it uniformly. Errors raised after a
remote call failed are chained to the underlying :class:`GitHubApiError`.
"""

from __future__ import annotations

__all__ = [
    "GitHubApiError",
    "IncompatibleParameterError",
    "InputError",
    "InvalidParameterError",
    "MissingParameterError",
    "ReleaseCreationError",
    "ReleaseError",
    "RemoteQueryError",
    "SourceFileError",
    "TagExistsError",
    "TagMissingError",
    "TagMutationError",
    "UploadError",
]


class ReleaseError(RuntimeError):
    """Raised when the release run cannot continue."""


class InputError(ReleaseError):
    """Raised when an action input is missing, malformed, or inconsistent."""

    def __init__(self, parameter: str, message: str) -> None:
        super().__init__(message)
        self.parameter = parameter


class MissingParameterError(InputError):
    """Raised when a required input was not provided."""

    def __init__(self, parameter: str, detail: str | None = None) -> None:
        message = f"Missing required parameter '{parameter}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(parameter, message)


class InvalidParameterError(InputError):
    """Raised when an input holds a value outside its accepted range."""


class IncompatibleParameterError(InputError):
    """Raised when an input cannot be combined with the selected strategy."""

    def __init__(self, parameter: str, strategy: str) -> None:
        message = f"Parameter '{parameter}' is incompatible with strategy '{strategy}'"
        super().__init__(parameter, message)
        self.strategy = strategy


class SourceFileError(InputError):
    """Raised when a ``file`` text source cannot be read."""

    def __init__(self, parameter: str, path: str) -> None:
        message = f"Failed to read '{parameter}' from file {path}"
        super().__init__(parameter, message)
        self.path = path


class GitHubApiError(ReleaseError):
    """Raised by the REST client when GitHub rejects or drops a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        """Return ``True`` when GitHub answered ``404 Not Found``."""
        return self.status_code == 404  # noqa: PLR2004


class RemoteQueryError(ReleaseError):
    """Raised when the current tag or release state cannot be determined."""


class TagExistsError(ReleaseError):
    """Raised when ``fail-fast`` finds the tag already present."""


class TagMissingError(ReleaseError):
    """Raised when ``use-existing-tag`` finds no tag to reference."""


class TagMutationError(ReleaseError):
    """Raised when creating or moving the tag fails."""


class ReleaseCreationError(ReleaseError):
    """Raised when GitHub refuses to create the release."""


class UploadError(ReleaseError):
    """Raised when an asset could not be uploaded within the retry budget."""

    def __init__(self, asset_name: str, attempts: int) -> None:
        message = f"Upload of asset '{asset_name}' failed after {attempts} attempt(s)"
        super().__init__(message)
        self.asset_name = asset_name
        self.attempts = attempts
