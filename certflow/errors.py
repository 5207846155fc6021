"""Error taxonomy shared by node processors, adapters and repositories."""

from __future__ import annotations

from typing import Optional


class CertflowError(Exception):
    """Base class for all certflow failures."""


class ConfigurationInvalid(CertflowError):
    """Node or adapter configuration is missing or malformed."""


class CertificateInvalid(CertflowError):
    """Certificate or private key material could not be parsed."""


class CertificateExpired(CertflowError):
    """Certificate ``notAfter`` lies in the past."""


class RecordNotFound(CertflowError):
    """Requested record does not exist.

    Expected on the first execution of a node; callers treat it as a
    normal result rather than a failure.
    """


class PersistenceFailed(CertflowError):
    """A write to the backing store failed."""


class Canceled(CertflowError):
    """Execution was canceled or its deadline expired mid-call."""

    def __init__(self, operation: str, reason: str = "canceled") -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation}: {reason}")


class ExternalCallFailed(CertflowError):
    """Wrapped provider error carrying the failing operation name."""

    def __init__(
        self,
        operation: str,
        provider: str,
        message: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.provider = provider
        self.cause = cause
        super().__init__(
            f"failed to execute request '{operation}' on {provider}: {message}"
        )


class InvalidRunTransition(CertflowError):
    """A run status change would leave a terminal state."""


__all__ = [
    "CertflowError",
    "ConfigurationInvalid",
    "CertificateInvalid",
    "CertificateExpired",
    "RecordNotFound",
    "PersistenceFailed",
    "Canceled",
    "ExternalCallFailed",
    "InvalidRunTransition",
]
