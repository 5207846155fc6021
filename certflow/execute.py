"""Sequential workflow execution for certflow."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import yaml

from .context import ExecutionContext
from .db import RunDB
from .errors import Canceled, CertflowError, ConfigurationInvalid
from .logsink import NodeLogger
from .models import WorkflowDefinition, WorkflowRun, WorkflowRunStatus, WorkflowTrigger
from .nodes import NodeDependencies, get_processor

logger = logging.getLogger(__name__)


def load_workflow(path: str | Path) -> WorkflowDefinition:
    """Load a workflow definition from a YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return WorkflowDefinition.model_validate(data)
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigurationInvalid(f"invalid workflow definition {path}: {e}") from e


class WorkflowExecutor:
    """Runs the nodes of a workflow in declared order and owns run status.

    Each node's log is persisted as soon as that node finishes, whatever
    the outcome, so a failed run always leaves the failing step on record.
    Execution stops at the first failing node. The run always ends in a
    terminal status, including when the calling task is canceled.
    """

    def __init__(self, deps: NodeDependencies, run_db: RunDB) -> None:
        self._deps = deps
        self._run_db = run_db

    async def execute(
        self,
        workflow: WorkflowDefinition,
        trigger: WorkflowTrigger = WorkflowTrigger.MANUAL,
        timeout: Optional[float] = None,
        ctx: Optional[ExecutionContext] = None,
    ) -> WorkflowRun:
        run = await self._run_db.create_run(workflow.id, trigger)
        ctx = ctx or ExecutionContext(workflow.id, timeout=timeout)
        ctx.run_id = run.id
        await self._run_db.update_status(run.id, WorkflowRunStatus.RUNNING)
        logger.info(f"Started run {run.id} for workflow {workflow.id}")

        status = WorkflowRunStatus.SUCCEEDED
        error: Optional[str] = None
        try:
            for node in workflow.nodes:
                node_logger = NodeLogger(node)
                try:
                    processor = get_processor(node, self._deps, node_logger)
                    await processor.run(ctx)
                except Canceled as e:
                    status, error = WorkflowRunStatus.CANCELED, str(e)
                except CertflowError as e:
                    status, error = WorkflowRunStatus.FAILED, str(e)
                except Exception as e:
                    logger.exception(f"Unexpected error in node {node.id}")
                    status, error = WorkflowRunStatus.FAILED, str(e)
                finally:
                    log_error = await self._append_log(run.id, node_logger)

                if log_error and status == WorkflowRunStatus.SUCCEEDED:
                    status = WorkflowRunStatus.FAILED
                    error = f"failed to save node log: {log_error}"
                if status != WorkflowRunStatus.SUCCEEDED:
                    logger.warning(f"Run {run.id} stopped at node {node.id}: {error}")
                    break
        except asyncio.CancelledError:
            status, error = WorkflowRunStatus.CANCELED, "run task was canceled"
            raise
        finally:
            run = await self._run_db.update_status(run.id, status, error)
            logger.info(f"Run {run.id} finished with status {run.status.value}")
        return run

    async def _append_log(self, run_id: str, node_logger: NodeLogger) -> Optional[str]:
        """Persist a node log; return the error message instead of raising."""
        try:
            await self._run_db.append_log(run_id, node_logger.to_run_log())
        except CertflowError as e:
            logger.error(f"Failed to save log of run {run_id}: {e}")
            return str(e)
        return None
