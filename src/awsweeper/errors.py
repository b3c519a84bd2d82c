"""Error taxonomy for sweep runs.

Configuration errors are fatal before any provider call. Provider errors are
recorded per resource or per resource type and never abort a run.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class AWSweeperError(Exception):
    """Base class for all awsweeper errors."""


class ConfigError(AWSweeperError):
    """Invalid criteria document or settings.

    Attributes:
        path: Dotted location of the offending value (e.g. "subnet.ids[0]")
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class ProviderErrorKind(Enum):
    """Broad classification of a provider failure."""

    TRANSIENT = "transient"
    AUTH = "auth"
    OTHER = "other"


class ProviderError(AWSweeperError):
    """A list or delete call against the cloud provider failed.

    Attributes:
        resource_type: Resource type the call was made for (optional)
        resource_id: Resource identifier for delete calls (optional)
        code: Provider error code (e.g. "Throttling") (optional)
        kind: Broad classification used for retry decisions
    """

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        code: Optional[str] = None,
        kind: ProviderErrorKind = ProviderErrorKind.OTHER,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.code = code
        self.kind = kind

    @property
    def is_transient(self) -> bool:
        return self.kind == ProviderErrorKind.TRANSIENT

    @property
    def is_auth(self) -> bool:
        return self.kind == ProviderErrorKind.AUTH

    def __str__(self) -> str:
        if self.code:
            return f"{self.code}: {self.message}"
        return self.message


class NotFoundError(ProviderError):
    """The resource no longer exists. Deleting it again counts as success."""


class DependencyInUseError(ProviderError):
    """Another live resource still references this one. Retryable."""


class RunCancelledError(AWSweeperError):
    """The run was cancelled before it could produce a result."""
