"""Apply node: obtains a certificate from the ACME issuer."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..context import ExecutionContext
from ..errors import CertflowError, ConfigurationInvalid, ExternalCallFailed, RecordNotFound
from ..issuer import ObtainCertificateRequest
from ..models import Certificate, CertificateSource, WorkflowOutput, utcnow
from ..utils import certs
from .base import NodeProcessor


class ApplyNodeConfig(BaseModel):
    domains: List[str] = Field(min_length=1)
    contact_email: str = Field(min_length=1)
    provider: str = Field(min_length=1)
    provider_access: Dict[str, Any] = Field(default_factory=dict)
    key_algorithm: str = "RSA2048"
    skip_before_expiry_days: int = Field(default=30, ge=0)

    @field_validator("domains", mode="before")
    @classmethod
    def _split_domains(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [d.strip() for d in v.split(";") if d.strip()]
        return v


class ApplyNode(NodeProcessor):
    async def process(self, ctx: ExecutionContext) -> None:
        config = self.load_config(ApplyNodeConfig)
        if self.deps.issuer is None:
            self.logger.add_output("no certificate issuer configured")
            raise ConfigurationInvalid("apply node requires a certificate issuer")

        last_output = await self.get_last_output()
        if await self._can_skip(last_output, config):
            return

        request = ObtainCertificateRequest(
            domains=config.domains,
            contact_email=config.contact_email,
            provider=config.provider,
            provider_access=config.provider_access,
            key_algorithm=config.key_algorithm,
        )
        try:
            issued = await ctx.run_io("acme.Obtain", self.deps.issuer.obtain(ctx, request))
        except CertflowError as e:
            self.logger.add_output("failed to obtain certificate", str(e))
            raise
        except Exception as e:
            self.logger.add_output("failed to obtain certificate", str(e))
            raise ExternalCallFailed("acme.Obtain", config.provider, str(e), e) from e
        self.logger.logt("certificate obtained for", config.domains)

        try:
            cert = certs.parse_certificate_from_pem(issued.certificate_pem)
            certs.ensure_not_expired(cert)
            certificate = Certificate.from_pem(
                CertificateSource.ISSUED, issued.certificate_pem, issued.private_key_pem
            )
        except CertflowError as e:
            self.logger.add_output("issued certificate is not usable", str(e))
            raise

        output = self.build_output(ctx, last_output)
        try:
            await self.deps.outputs.save_with_certificate(output, certificate)
        except CertflowError as e:
            self.logger.add_output("failed to save apply record", str(e))
            raise
        self.logger.add_output("apply record saved")

    async def _can_skip(
        self, last_output: Optional[WorkflowOutput], config: ApplyNodeConfig
    ) -> bool:
        """Skip renewal when nothing changed and the last certificate is fresh."""
        if last_output is None or not last_output.succeeded:
            return False
        if last_output.node.config != self.node.config:
            return False
        try:
            last_cert = await self.deps.certificates.get_by_workflow_node_id(self.node.id)
        except RecordNotFound:
            return False

        if last_cert.expire_at is None:
            return False
        renew_at = last_cert.expire_at - timedelta(days=config.skip_before_expiry_days)
        if utcnow() >= renew_at:
            return False
        days_left = (last_cert.expire_at - utcnow()).days
        self.logger.add_output(
            f"certificate still valid for {days_left} days, skipping renewal"
        )
        return True
