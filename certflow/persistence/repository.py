"""Repository abstractions for workflow outputs and certificates."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from ..errors import CertflowError, PersistenceFailed
from ..models import OUTPUT_NAME_CERTIFICATE, Certificate, WorkflowOutput

logger = logging.getLogger(__name__)


class CertificateRepository(Protocol):
    """Protocol for certificate persistence backends."""

    async def save(self, certificate: Certificate) -> Certificate:
        """Insert or update ``certificate``; assigns id and timestamps."""

    async def get_by_id(self, certificate_id: str) -> Certificate:
        """Return the certificate or raise ``RecordNotFound``."""

    async def get_by_workflow_node_id(self, node_id: str) -> Certificate:
        """Return the newest certificate produced by ``node_id``."""

    async def list(self) -> list[Certificate]:
        """Return all stored certificates."""


class WorkflowOutputRepository(Protocol):
    """Protocol for workflow output persistence backends."""

    async def get_by_node_id(self, node_id: str) -> WorkflowOutput:
        """Return the most recent output of a node or raise ``RecordNotFound``."""

    async def save(self, output: WorkflowOutput) -> WorkflowOutput:
        """Upsert ``output`` by id; assigns id and timestamps on insert."""

    async def save_with_certificate(
        self, output: WorkflowOutput, certificate: Optional[Certificate]
    ) -> WorkflowOutput:
        """Save ``output`` then link a freshly saved ``certificate`` to it."""


class OutputRepositoryMixin:
    """Two-phase ``save_with_certificate`` shared by every backend.

    The store has no multi-record transaction, so the write happens in
    three steps: output, certificate, output again with the certificate id
    patched into its ``certificate`` slot, which is added when the node
    does not declare one. If the certificate save fails the
    output stays persisted with an empty slot. Retrying the whole node is
    safe because the output save is an upsert by id.
    """

    certificates: CertificateRepository

    async def save(self, output: WorkflowOutput) -> WorkflowOutput:  # pragma: no cover
        raise NotImplementedError

    async def save_with_certificate(
        self, output: WorkflowOutput, certificate: Optional[Certificate]
    ) -> WorkflowOutput:
        output = await self.save(output)
        if certificate is None:
            return output

        certificate.workflow_id = output.workflow_id
        certificate.workflow_run_id = output.run_id
        certificate.workflow_node_id = output.node_id
        certificate.workflow_output_id = output.id
        try:
            certificate = await self.certificates.save(certificate)
        except CertflowError:
            logger.warning(
                f"Output {output.id} saved without certificate link for node {output.node_id}"
            )
            raise
        except Exception as e:
            logger.warning(
                f"Output {output.id} saved without certificate link for node {output.node_id}"
            )
            raise PersistenceFailed(f"failed to save certificate: {e}") from e

        output.set_output_value(OUTPUT_NAME_CERTIFICATE, certificate.id, type="certificate")
        return await self.save(output)
