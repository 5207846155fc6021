"""Node processors and their type registry."""

from __future__ import annotations

from typing import Dict, Optional, Type

from ..errors import ConfigurationInvalid
from ..logsink import LogSink
from ..models import NodeType, WorkflowNode
from .apply import ApplyNode, ApplyNodeConfig
from .base import NodeDependencies, NodeProcessor, PassThroughNode
from .deploy import DeployNode, DeployNodeConfig
from .notify import NotifyNode, NotifyNodeConfig
from .upload import UploadNode, UploadNodeConfig

NODE_PROCESSORS: Dict[NodeType, Type[NodeProcessor]] = {
    NodeType.START: PassThroughNode,
    NodeType.END: PassThroughNode,
    NodeType.CONDITION: PassThroughNode,
    NodeType.APPLY: ApplyNode,
    NodeType.UPLOAD: UploadNode,
    NodeType.DEPLOY: DeployNode,
    NodeType.NOTIFY: NotifyNode,
}


def get_processor(
    node: WorkflowNode, deps: NodeDependencies, log_sink: Optional[LogSink] = None
) -> NodeProcessor:
    """Return the processor registered for ``node.type``."""
    processor_cls = NODE_PROCESSORS.get(node.type)
    if processor_cls is None:
        raise ConfigurationInvalid(f"unsupported node type: {node.type}")
    return processor_cls(node, deps, log_sink)


__all__ = [
    "ApplyNode",
    "ApplyNodeConfig",
    "DeployNode",
    "DeployNodeConfig",
    "NodeDependencies",
    "NodeProcessor",
    "NotifyNode",
    "NotifyNodeConfig",
    "PassThroughNode",
    "UploadNode",
    "UploadNodeConfig",
    "NODE_PROCESSORS",
    "get_processor",
]
