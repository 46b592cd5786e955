"""Error taxonomy surfaced to the CLI."""

from __future__ import annotations


class RepoFromTemplateError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(RepoFromTemplateError):
    """Missing or invalid input; reported immediately and never retried."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class ProvisioningError(RepoFromTemplateError):
    """A provisioning step failed. ``step`` names the operation that failed."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step} failed: {message}")
        self.step = step
        self.message = message


class CreationError(ProvisioningError):
    """GitHub rejected creation of the repository, a branch or an environment."""


class ProtectionError(ProvisioningError):
    """GitHub rejected a branch protection update."""


class ConsistencyError(ProvisioningError):
    """The default branch never became visible within the retry budget."""
