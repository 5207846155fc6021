"""In-memory implementation of the output and certificate repositories."""

from __future__ import annotations

import uuid
from typing import Dict, Optional

from ..errors import RecordNotFound
from ..models import Certificate, WorkflowOutput, utcnow
from .repository import CertificateRepository, OutputRepositoryMixin


class InMemoryCertificateRepository:
    """Keep certificates in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._certificates: Dict[str, Certificate] = {}

    async def save(self, certificate: Certificate) -> Certificate:
        now = utcnow()
        if not certificate.id:
            certificate.id = uuid.uuid4().hex
            certificate.created_at = now
        elif certificate.id not in self._certificates:
            raise RecordNotFound(f"certificate {certificate.id} not found")
        certificate.updated_at = now
        self._certificates[certificate.id] = certificate.model_copy(deep=True)
        return certificate

    async def get_by_id(self, certificate_id: str) -> Certificate:
        cert = self._certificates.get(certificate_id)
        if cert is None:
            raise RecordNotFound(f"certificate {certificate_id} not found")
        return cert.model_copy(deep=True)

    async def get_by_workflow_node_id(self, node_id: str) -> Certificate:
        matches = [c for c in self._certificates.values() if c.workflow_node_id == node_id]
        if not matches:
            raise RecordNotFound(f"no certificate for node {node_id}")
        return max(matches, key=lambda c: c.created_at).model_copy(deep=True)

    async def list(self) -> list[Certificate]:
        return [c.model_copy(deep=True) for c in self._certificates.values()]


class InMemoryWorkflowOutputRepository(OutputRepositoryMixin):
    """Keep workflow outputs in local memory."""

    def __init__(self, certificates: Optional[CertificateRepository] = None) -> None:
        self.certificates = certificates or InMemoryCertificateRepository()
        self._outputs: Dict[str, WorkflowOutput] = {}

    async def get_by_node_id(self, node_id: str) -> WorkflowOutput:
        matches = [o for o in self._outputs.values() if o.node_id == node_id]
        if not matches:
            raise RecordNotFound(f"no output for node {node_id}")
        return max(matches, key=lambda o: o.created_at).model_copy(deep=True)

    async def save(self, output: WorkflowOutput) -> WorkflowOutput:
        now = utcnow()
        if not output.id:
            output.id = uuid.uuid4().hex
            output.created_at = now
        elif output.id not in self._outputs:
            raise RecordNotFound(f"workflow output {output.id} not found")
        else:
            output.created_at = self._outputs[output.id].created_at
        output.updated_at = now
        self._outputs[output.id] = output.model_copy(deep=True)
        return output
