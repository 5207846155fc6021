"""Deploy node: pushes an upstream certificate to a provider target."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..context import ExecutionContext
from ..errors import CertificateExpired, CertflowError, ConfigurationInvalid, RecordNotFound
from ..models import OUTPUT_NAME_CERTIFICATE, Certificate, WorkflowOutput
from ..utils import certs
from .base import NodeProcessor


class DeployNodeConfig(BaseModel):
    provider: str = Field(min_length=1)
    provider_access: Dict[str, Any] = Field(default_factory=dict)
    provider_config: Dict[str, Any] = Field(default_factory=dict)
    # "<nodeId>#certificate"
    certificate: str = Field(pattern=r"^[^#]+#[^#]+$")
    skip_on_last_succeeded: bool = True


class DeployNode(NodeProcessor):
    async def process(self, ctx: ExecutionContext) -> None:
        config = self.load_config(DeployNodeConfig)
        try:
            deployer = self.deps.providers.deployer(
                config.provider,
                config.provider_access,
                config.provider_config,
                log_sink=self.logger,
            )
        except ConfigurationInvalid as e:
            self.logger.add_output("failed to create deployer", str(e))
            raise

        last_output = await self.get_last_output()
        certificate = await self._resolve_certificate(config.certificate)

        try:
            certs.parse_certificate_from_pem(certificate.certificate)
        except CertflowError as e:
            self.logger.add_output("certificate is not deployable", str(e))
            raise
        if certificate.is_expired():
            message = f"certificate {certificate.id} expired at {certificate.expire_at}"
            self.logger.add_output("certificate is not deployable", message)
            raise CertificateExpired(message)

        if config.skip_on_last_succeeded and self._already_deployed(last_output, certificate):
            self.logger.add_output("already deployed with this certificate, skipping")
            return

        try:
            result = await deployer.deploy(ctx, certificate.certificate, certificate.private_key)
        except CertflowError as e:
            self.logger.add_output("failed to deploy certificate", str(e))
            raise
        self.logger.logt("deployment finished", result)

        output = self.build_output(ctx, last_output)
        output.set_output_value(OUTPUT_NAME_CERTIFICATE, certificate.id, type="certificate")
        try:
            await self.deps.outputs.save(output)
        except CertflowError as e:
            self.logger.add_output("failed to save deploy record", str(e))
            raise
        self.logger.add_output("deploy record saved")

    async def _resolve_certificate(self, reference: str) -> Certificate:
        """Load the certificate referenced as ``<nodeId>#<slot>``."""
        source_node_id, slot_name = reference.split("#", 1)
        try:
            upstream = await self.deps.outputs.get_by_node_id(source_node_id)
        except RecordNotFound as e:
            self.logger.add_output(f"no output found for input node {source_node_id}", str(e))
            raise ConfigurationInvalid(
                f"input '{reference}' is unresolved: node {source_node_id} has no output"
            ) from e

        slot = upstream.get_output(slot_name)
        if slot is None or not slot.value:
            self.logger.add_output(f"input '{reference}' is empty")
            raise ConfigurationInvalid(f"input '{reference}' carries no certificate id")

        try:
            return await self.deps.certificates.get_by_id(slot.value)
        except RecordNotFound as e:
            self.logger.add_output(f"certificate {slot.value} not found", str(e))
            raise ConfigurationInvalid(
                f"input '{reference}' points to a missing certificate"
            ) from e

    def _already_deployed(
        self, last_output: Optional[WorkflowOutput], certificate: Certificate
    ) -> bool:
        if last_output is None or not last_output.succeeded:
            return False
        if last_output.node.config != self.node.config:
            return False
        last_slot = last_output.get_output(OUTPUT_NAME_CERTIFICATE)
        return last_slot is not None and last_slot.value == certificate.id
