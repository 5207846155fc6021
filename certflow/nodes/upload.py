"""Upload node: stores user supplied certificate material."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ..context import ExecutionContext
from ..errors import CertflowError
from ..models import Certificate, CertificateSource
from ..utils import certs
from .base import NodeProcessor


class UploadNodeConfig(BaseModel):
    certificate: str = Field(min_length=1)
    private_key: str = Field(min_length=1)


class UploadNode(NodeProcessor):
    """Validates an uploaded PEM pair and records it as the node output.

    Workflows with an upload node are normally run by hand; a scheduled
    re-run simply saves the same material again over the previous output.
    """

    async def process(self, ctx: ExecutionContext) -> None:
        config = self.load_config(UploadNodeConfig)
        last_output = await self.get_last_output()

        try:
            cert = certs.parse_certificate_from_pem(config.certificate)
        except CertflowError as e:
            self.logger.add_output("failed to parse certificate", str(e))
            raise
        try:
            certs.ensure_not_expired(cert)
        except CertflowError as e:
            self.logger.add_output("certificate has expired", str(e))
            raise

        try:
            certificate = Certificate.from_pem(
                CertificateSource.UPLOADED, config.certificate, config.private_key
            )
        except CertflowError as e:
            self.logger.add_output("failed to load certificate material", str(e))
            raise

        # one output per node; no versioning of earlier outputs
        output = self.build_output(ctx, last_output)
        try:
            await self.deps.outputs.save_with_certificate(output, certificate)
        except CertflowError as e:
            self.logger.add_output("failed to save upload record", str(e))
            raise
        self.logger.add_output("upload record saved")
