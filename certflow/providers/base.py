"""Base adapter interfaces for certificate providers."""

from __future__ import annotations

import abc
from typing import Any, Optional

from ..context import ExecutionContext
from ..logsink import LogSink, NullLogSink
from ..models import DeployResult, UploadResult


class _LoggingAdapter:
    """Holds the log sink adapters report their progress to."""

    provider: str = ""

    def __init__(self) -> None:
        self.logger: LogSink = NullLogSink()

    def with_logger(self, logger: Optional[LogSink]):
        self.logger = logger or NullLogSink()
        return self


class BaseUploader(_LoggingAdapter, metaclass=abc.ABCMeta):
    """Registers certificate material with a provider certificate store."""

    @abc.abstractmethod
    async def upload(
        self, ctx: ExecutionContext, cert_pem: str, key_pem: str
    ) -> UploadResult:
        """Upload the pair and return the provider-assigned certificate id.

        Uploading the same material twice must not fail; providers that
        support lookups return the existing id instead.
        """
        raise NotImplementedError


class BaseDeployer(_LoggingAdapter, metaclass=abc.ABCMeta):
    """Binds a certificate to a provider resource (domain, instance, listener)."""

    @abc.abstractmethod
    async def deploy(
        self, ctx: ExecutionContext, cert_pem: str, key_pem: str
    ) -> DeployResult:
        """Deploy the pair to the configured target."""
        raise NotImplementedError


class BaseNotifier(_LoggingAdapter, metaclass=abc.ABCMeta):
    """Delivers a notification message to an external channel."""

    @abc.abstractmethod
    async def notify(
        self, ctx: ExecutionContext, subject: str, message: str
    ) -> dict[str, Any]:
        """Send the message and return the provider response payload."""
        raise NotImplementedError
