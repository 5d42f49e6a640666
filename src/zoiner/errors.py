from __future__ import annotations

from enum import Enum


class ZoinerError(Exception):
    """Base class for every error raised inside the cast-to-coin pipeline."""


class ConfigError(ZoinerError):
    pass


class NotFoundError(ZoinerError):
    """A cast or user lookup came back empty."""


class MetadataValidationError(ZoinerError):
    """The published metadata URI is unusable (bad scheme, unreachable, or missing fields)."""


class UpstreamUnavailableError(ZoinerError):
    """The pinning service rejected authentication or the upload."""


class ChainErrorKind(str, Enum):
    METADATA_FETCH = "metadata_fetch"
    FATAL = "fatal"


class ChainWriteError(ZoinerError):
    """Failure reported by the chain adapter, tagged with its retry class."""

    def __init__(self, message: str, kind: ChainErrorKind = ChainErrorKind.FATAL):
        super().__init__(message)
        self.kind = ChainErrorKind(kind)

    @property
    def transient(self) -> bool:
        # the indexer could not read the metadata yet, so nothing was written on-chain
        return self.kind is ChainErrorKind.METADATA_FETCH


class DeploymentError(ZoinerError):
    """Terminal deployment failure; the message is shown to the user."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts
