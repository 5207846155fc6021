import json

import httpx
import pytest

from certflow.context import ExecutionContext
from certflow.errors import ConfigurationInvalid, ExternalCallFailed, RecordNotFound
from certflow.models import NodeType, WorkflowNode
from certflow.nodes import NodeDependencies, get_processor
from certflow.persistence import InMemoryCertificateRepository, InMemoryWorkflowOutputRepository
from certflow.providers import ProviderFactory


def _deps(handler) -> NodeDependencies:
    certificates = InMemoryCertificateRepository()
    return NodeDependencies(
        outputs=InMemoryWorkflowOutputRepository(certificates),
        certificates=certificates,
        providers=ProviderFactory(transport=httpx.MockTransport(handler)),
    )


def _notify_node(**config) -> WorkflowNode:
    base = {
        "subject": "Certificate renewed",
        "message": "example.com was renewed",
        "channel_config": {"url": "https://hooks.example.com/certs"},
    }
    base.update(config)
    return WorkflowNode(id="notify-1", name="Notify", type=NodeType.NOTIFY, config=base)


@pytest.mark.asyncio
async def test_notify_sends_and_records_output():
    payloads = []

    def handler(request):
        payloads.append(json.loads(request.content))
        return httpx.Response(204)

    deps = _deps(handler)
    await get_processor(_notify_node(), deps).run(ExecutionContext("wf-1"))

    assert payloads == [{"subject": "Certificate renewed", "message": "example.com was renewed"}]
    output = await deps.outputs.get_by_node_id("notify-1")
    assert output.succeeded is True


@pytest.mark.asyncio
async def test_notify_failure_leaves_no_output():
    deps = _deps(lambda request: httpx.Response(502))
    with pytest.raises(ExternalCallFailed):
        await get_processor(_notify_node(), deps).run(ExecutionContext("wf-1"))
    with pytest.raises(RecordNotFound):
        await deps.outputs.get_by_node_id("notify-1")


@pytest.mark.asyncio
async def test_notify_unknown_channel():
    deps = _deps(lambda request: httpx.Response(200))
    with pytest.raises(ConfigurationInvalid):
        await get_processor(_notify_node(channel="carrier-pigeon"), deps).run(
            ExecutionContext("wf-1")
        )
