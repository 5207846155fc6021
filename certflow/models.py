"""Domain models for workflows, runs, outputs and certificates."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .utils import certs

OUTPUT_NAME_CERTIFICATE = "certificate"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeType(str, Enum):
    START = "start"
    END = "end"
    APPLY = "apply"
    UPLOAD = "upload"
    DEPLOY = "deploy"
    NOTIFY = "notify"
    CONDITION = "condition"


class WorkflowRunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    def can_transition_to(self, target: "WorkflowRunStatus") -> bool:
        """Return ``True`` when moving to ``target`` is allowed."""
        return target in _ALLOWED_RUN_TRANSITIONS[self]


_TERMINAL_STATUSES = {
    WorkflowRunStatus.SUCCEEDED,
    WorkflowRunStatus.FAILED,
    WorkflowRunStatus.CANCELED,
}

_ALLOWED_RUN_TRANSITIONS: dict[WorkflowRunStatus, set[WorkflowRunStatus]] = {
    WorkflowRunStatus.PENDING: {
        WorkflowRunStatus.RUNNING,
        WorkflowRunStatus.CANCELED,
        WorkflowRunStatus.FAILED,
    },
    WorkflowRunStatus.RUNNING: _TERMINAL_STATUSES,
    WorkflowRunStatus.SUCCEEDED: set(),
    WorkflowRunStatus.FAILED: set(),
    WorkflowRunStatus.CANCELED: set(),
}


class WorkflowTrigger(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class CertificateSource(str, Enum):
    UPLOADED = "uploaded"
    ISSUED = "issued"


class WorkflowNodeIOValueSelector(BaseModel):
    """Points a node input at an output slot of another node."""

    id: str
    name: str


class WorkflowNodeIO(BaseModel):
    """A named input or output slot of a node."""

    name: str
    type: str = "string"
    required: bool = False
    label: Optional[str] = None
    value_selector: Optional[WorkflowNodeIOValueSelector] = None
    value: Optional[str] = None


class WorkflowNode(BaseModel):
    """One step of a workflow. Frozen so a running node cannot drift."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: NodeType
    config: Dict[str, Any] = Field(default_factory=dict)
    inputs: List[WorkflowNodeIO] = Field(default_factory=list)
    outputs: List[WorkflowNodeIO] = Field(default_factory=list)


class WorkflowDefinition(BaseModel):
    """A workflow as handed to the executor: nodes in execution order."""

    id: str
    name: str = ""
    nodes: List[WorkflowNode] = Field(default_factory=list)


class LogRecord(BaseModel):
    time: datetime = Field(default_factory=utcnow)
    level: str = "info"
    content: str
    error: Optional[str] = None


class WorkflowRunLog(BaseModel):
    """Log records produced by a single node during a run."""

    node_id: str
    node_name: str
    records: List[LogRecord] = Field(default_factory=list)
    error: Optional[str] = None


class WorkflowRun(BaseModel):
    id: Optional[str] = None
    workflow_id: str
    status: WorkflowRunStatus = WorkflowRunStatus.PENDING
    trigger: WorkflowTrigger = WorkflowTrigger.MANUAL
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    logs: List[WorkflowRunLog] = Field(default_factory=list)
    error: Optional[str] = None


class WorkflowOutput(BaseModel):
    """Persisted result of the most recent execution of a node."""

    id: Optional[str] = None
    workflow_id: str
    run_id: Optional[str] = None
    node_id: str
    node: WorkflowNode
    outputs: List[WorkflowNodeIO] = Field(default_factory=list)
    succeeded: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_output(self, name: str) -> Optional[WorkflowNodeIO]:
        return next((o for o in self.outputs if o.name == name), None)

    def set_output_value(self, name: str, value: str, type: str = "string") -> None:
        """Write ``value`` into slot ``name``, appending the slot if undeclared."""
        slot = self.get_output(name)
        if slot is None:
            self.outputs.append(WorkflowNodeIO(name=name, type=type, value=value))
        else:
            slot.value = value


class Certificate(BaseModel):
    id: Optional[str] = None
    source: CertificateSource
    subject_alt_names: List[str] = Field(default_factory=list)
    serial_number: str = ""
    certificate: str = ""
    private_key: str = ""
    issuer: str = ""
    key_algorithm: str = ""
    effect_at: Optional[datetime] = None
    expire_at: Optional[datetime] = None
    fingerprint_sha256: str = ""
    workflow_id: Optional[str] = None
    workflow_run_id: Optional[str] = None
    workflow_node_id: Optional[str] = None
    workflow_output_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_pem(
        cls, source: CertificateSource, cert_pem: str, key_pem: str
    ) -> "Certificate":
        """Build a certificate entity with fields derived from the PEM.

        Raises:
            CertificateInvalid: If either PEM block cannot be parsed or the
                key does not belong to the certificate.
        """
        cert = certs.parse_certificate_from_pem(cert_pem)
        key = certs.parse_private_key_from_pem(key_pem)
        certs.ensure_key_matches(cert, key)
        return cls(
            source=source,
            subject_alt_names=certs.subject_alt_names(cert),
            serial_number=format(cert.serial_number, "x"),
            certificate=cert_pem,
            private_key=key_pem,
            issuer=certs.issuer_name(cert),
            key_algorithm=certs.key_algorithm(cert),
            effect_at=cert.not_valid_before_utc,
            expire_at=cert.not_valid_after_utc,
            fingerprint_sha256=certs.fingerprint_sha256(cert),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expire_at is None:
            return False
        return (now or utcnow()) > self.expire_at


class DeployResult(BaseModel):
    extra: Dict[str, Any] = Field(default_factory=dict)


class UploadResult(BaseModel):
    """Handle returned by a provider certificate store."""

    cert_id: str
    cert_name: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)
