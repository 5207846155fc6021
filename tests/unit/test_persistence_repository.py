import pytest

from certflow.errors import PersistenceFailed, RecordNotFound
from certflow.models import (
    Certificate,
    CertificateSource,
    NodeType,
    WorkflowNode,
    WorkflowNodeIO,
    WorkflowOutput,
)
from certflow.persistence import (
    InMemoryCertificateRepository,
    InMemoryWorkflowOutputRepository,
    SQLiteCertificateRepository,
    SQLiteWorkflowOutputRepository,
    get_repositories,
)


def _node() -> WorkflowNode:
    return WorkflowNode(
        id="node-1",
        name="Upload",
        type=NodeType.UPLOAD,
        outputs=[WorkflowNodeIO(name="certificate", type="certificate")],
    )


def _output() -> WorkflowOutput:
    node = _node()
    return WorkflowOutput(
        workflow_id="wf-1",
        run_id="run-1",
        node_id=node.id,
        node=node,
        outputs=[o.model_copy() for o in node.outputs],
        succeeded=True,
    )


def _certificate(pem_pair) -> Certificate:
    return Certificate.from_pem(CertificateSource.UPLOADED, *pem_pair)


class FailingCertificateRepository(InMemoryCertificateRepository):
    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures

    async def save(self, certificate: Certificate) -> Certificate:
        if self.failures:
            self.failures -= 1
            raise RuntimeError("disk full")
        return await super().save(certificate)


@pytest.fixture(params=["memory", "sqlite"])
def repos(request, tmp_path):
    if request.param == "memory":
        certificates = InMemoryCertificateRepository()
        return InMemoryWorkflowOutputRepository(certificates), certificates
    db_path = tmp_path / "certflow.db"
    certificates = SQLiteCertificateRepository(db_path)
    return SQLiteWorkflowOutputRepository(db_path, certificates), certificates


@pytest.mark.asyncio
async def test_output_save_is_upsert(repos):
    outputs, _ = repos
    output = await outputs.save(_output())
    assert output.id
    first_created = output.created_at

    output.succeeded = False
    again = await outputs.save(output)
    assert again.id == output.id

    stored = await outputs.get_by_node_id("node-1")
    assert stored.id == output.id
    assert stored.succeeded is False
    assert stored.created_at == first_created
    assert stored.node.id == "node-1"


@pytest.mark.asyncio
async def test_missing_records_raise_not_found(repos):
    outputs, certificates = repos
    with pytest.raises(RecordNotFound):
        await outputs.get_by_node_id("nope")
    with pytest.raises(RecordNotFound):
        await certificates.get_by_id("nope")
    with pytest.raises(RecordNotFound):
        await certificates.get_by_workflow_node_id("nope")

    ghost = _output()
    ghost.id = "does-not-exist"
    with pytest.raises(RecordNotFound):
        await outputs.save(ghost)


@pytest.mark.asyncio
async def test_save_with_certificate_links_both_records(repos, valid_pem):
    outputs, certificates = repos
    output = await outputs.save_with_certificate(_output(), _certificate(valid_pem))

    stored = await outputs.get_by_node_id("node-1")
    cert_id = stored.get_output("certificate").value
    assert cert_id

    cert = await certificates.get_by_id(cert_id)
    assert cert.workflow_output_id == output.id
    assert cert.workflow_node_id == "node-1"
    assert cert.workflow_run_id == "run-1"
    assert cert.workflow_id == "wf-1"
    assert cert.certificate == valid_pem[0]

    latest = await certificates.get_by_workflow_node_id("node-1")
    assert latest.id == cert_id


@pytest.mark.asyncio
async def test_save_with_certificate_without_certificate(repos):
    outputs, certificates = repos
    await outputs.save_with_certificate(_output(), None)
    stored = await outputs.get_by_node_id("node-1")
    assert stored.get_output("certificate").value is None
    assert await certificates.list() == []


@pytest.mark.asyncio
async def test_certificate_failure_leaves_output_with_empty_slot(valid_pem):
    certificates = FailingCertificateRepository()
    outputs = InMemoryWorkflowOutputRepository(certificates)

    output = _output()
    with pytest.raises(PersistenceFailed):
        await outputs.save_with_certificate(output, _certificate(valid_pem))

    stored = await outputs.get_by_node_id("node-1")
    assert stored.get_output("certificate").value is None
    assert await certificates.list() == []

    # Retrying with the same output id must not duplicate the output.
    await outputs.save_with_certificate(output, _certificate(valid_pem))
    assert len(outputs._outputs) == 1
    stored = await outputs.get_by_node_id("node-1")
    assert stored.id == output.id
    assert stored.get_output("certificate").value
    assert len(await certificates.list()) == 1


@pytest.mark.asyncio
async def test_sqlite_persists_across_instances(tmp_path, valid_pem):
    db_path = tmp_path / "certflow.db"
    outputs = SQLiteWorkflowOutputRepository(db_path)
    await outputs.save_with_certificate(_output(), _certificate(valid_pem))
    outputs.close()

    reopened = SQLiteWorkflowOutputRepository(db_path)
    stored = await reopened.get_by_node_id("node-1")
    cert = await reopened.certificates.get_by_id(stored.get_output("certificate").value)
    assert cert.subject_alt_names == ["example.com", "*.example.com"]
    assert cert.expire_at is not None and cert.expire_at.tzinfo is not None


def test_get_repositories_selects_backend(tmp_path, monkeypatch):
    monkeypatch.delenv("CERTFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("CERTFLOW_CONFIG", str(tmp_path / "missing.yaml"))

    repos = get_repositories()
    assert isinstance(repos.outputs, InMemoryWorkflowOutputRepository)
    assert repos.outputs.certificates is repos.certificates

    repos = get_repositories(f"sqlite://{tmp_path / 'x.db'}")
    assert isinstance(repos.outputs, SQLiteWorkflowOutputRepository)
    assert repos.outputs.certificates is repos.certificates

    with pytest.raises(ValueError):
        get_repositories("mysql://localhost/db")


def test_get_repositories_returns_fresh_instances(tmp_path, monkeypatch):
    monkeypatch.delenv("CERTFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("CERTFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    assert get_repositories().outputs is not get_repositories().outputs


@pytest.mark.asyncio
async def test_save_with_certificate_adds_missing_slot(repos, valid_pem):
    outputs, certificates = repos
    node = WorkflowNode(id="node-2", name="Upload", type=NodeType.UPLOAD)
    output = WorkflowOutput(workflow_id="wf-1", node_id=node.id, node=node, succeeded=True)

    await outputs.save_with_certificate(output, _certificate(valid_pem))

    stored = await outputs.get_by_node_id("node-2")
    slot = stored.get_output("certificate")
    assert slot is not None and slot.type == "certificate"
    assert (await certificates.get_by_id(slot.value)).workflow_node_id == "node-2"
