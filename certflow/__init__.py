"""certflow: workflow execution core for TLS certificate lifecycle automation."""

from .config import CertflowConfig, load_config
from .context import ExecutionContext
from .db import RunDB
from .execute import WorkflowExecutor, load_workflow
from .logsink import LogSink, NodeLogger, NullLogSink
from .nodes import NodeDependencies, get_processor
from .persistence import get_repositories
from .providers import ProviderFactory

__version__ = "0.1.0"
__all__ = [
    "CertflowConfig",
    "ExecutionContext",
    "LogSink",
    "NodeDependencies",
    "NodeLogger",
    "NullLogSink",
    "ProviderFactory",
    "RunDB",
    "WorkflowExecutor",
    "get_processor",
    "get_repositories",
    "load_config",
    "load_workflow",
]
