"""Interface to the ACME client that issues certificates for apply nodes."""

from __future__ import annotations

from typing import Any, Dict, List, Protocol

from pydantic import BaseModel, Field

from .context import ExecutionContext


class ObtainCertificateRequest(BaseModel):
    domains: List[str]
    contact_email: str
    provider: str
    provider_access: Dict[str, Any] = Field(default_factory=dict)
    key_algorithm: str = "RSA2048"


class IssuedCertificate(BaseModel):
    certificate_pem: str
    private_key_pem: str


class CertificateIssuer(Protocol):
    """Obtains a certificate for the given domains."""

    async def obtain(
        self, ctx: ExecutionContext, request: ObtainCertificateRequest
    ) -> IssuedCertificate:
        """Complete the challenge and return the PEM pair."""
