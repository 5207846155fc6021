"""Base class and shared steps of node processors."""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..context import ExecutionContext
from ..errors import CertflowError, ConfigurationInvalid, RecordNotFound
from ..issuer import CertificateIssuer
from ..logsink import LogSink, NodeLogger
from ..models import WorkflowNode, WorkflowNodeIO, WorkflowOutput
from ..persistence import CertificateRepository, WorkflowOutputRepository
from ..providers import ProviderFactory

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT", bound=BaseModel)


@dataclass
class NodeDependencies:
    """Collaborators handed to every processor at construction."""

    outputs: WorkflowOutputRepository
    certificates: CertificateRepository
    providers: ProviderFactory = field(default_factory=ProviderFactory)
    issuer: Optional[CertificateIssuer] = None


class NodeProcessor(metaclass=abc.ABCMeta):
    """Unit of work for one workflow node.

    ``run`` wraps :meth:`process` with the start and summary log entries.
    A processor only reports failure by raising; it never touches the
    status of the workflow run.
    """

    def __init__(
        self,
        node: WorkflowNode,
        deps: NodeDependencies,
        log_sink: Optional[LogSink] = None,
    ) -> None:
        self.node = node
        self.deps = deps
        self.logger: LogSink = log_sink or NodeLogger(node)

    async def run(self, ctx: ExecutionContext) -> None:
        self.logger.add_output(f"entering {self.node.type.value} node")
        try:
            await self.process(ctx)
        except Exception as e:
            self.logger.add_output(f"{self.node.type.value} node failed", str(e))
            raise
        self.logger.add_output(f"{self.node.type.value} node completed")

    @abc.abstractmethod
    async def process(self, ctx: ExecutionContext) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Shared steps
    def load_config(self, model: Type[ConfigT]) -> ConfigT:
        """Validate the node config against ``model``."""
        try:
            return model.model_validate(self.node.config)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            self.logger.add_output("invalid node config", str(e))
            raise ConfigurationInvalid(
                f"node {self.node.id} has invalid config: {fields}"
            ) from e

    async def get_last_output(self) -> Optional[WorkflowOutput]:
        """Previous output of this node, or ``None`` on first execution."""
        try:
            return await self.deps.outputs.get_by_node_id(self.node.id)
        except RecordNotFound:
            return None
        except CertflowError as e:
            self.logger.add_output("failed to query last execution output", str(e))
            raise

    def build_output(
        self, ctx: ExecutionContext, last_output: Optional[WorkflowOutput]
    ) -> WorkflowOutput:
        """Fresh successful output reusing the id of ``last_output``."""
        return WorkflowOutput(
            id=last_output.id if last_output else None,
            workflow_id=ctx.workflow_id,
            run_id=ctx.run_id,
            node_id=self.node.id,
            node=self.node.model_copy(deep=True),
            outputs=[WorkflowNodeIO.model_validate(o.model_dump()) for o in self.node.outputs],
            succeeded=True,
        )


class PassThroughNode(NodeProcessor):
    """Structural nodes (start, end, condition) that only log."""

    async def process(self, ctx: ExecutionContext) -> None:
        ctx.check(f"{self.node.type.value}.Pass")
