"""Exception taxonomy shared by the git, terraform, and config layers."""

from __future__ import annotations


class InfradeckError(Exception):
    """Base class for all errors raised by infradeck."""


class ConfigurationError(InfradeckError):
    """Local config could not be read, decoded, or written. Fatal at startup."""


class RepositoryError(InfradeckError):
    """A git operation (clone, fetch, list, checkout, read) failed.

    ``kind`` is a short machine-readable tag such as ``network`` or
    ``branch_not_found``.
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class ContentError(InfradeckError):
    """Slide or description content is missing or unreadable."""


class ProvisionError(InfradeckError):
    """Terraform could not be run, or exited non-zero.

    The message carries captured stderr so the operator can diagnose it.
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
