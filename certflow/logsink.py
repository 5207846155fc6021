"""Log sinks shared by node processors and provider adapters."""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Protocol

from .models import LogRecord, WorkflowNode, WorkflowRunLog

logger = logging.getLogger(__name__)


class LogSink(Protocol):
    """Destination for run log entries."""

    def add_output(self, content: str, error: Optional[str] = None) -> None:
        """Append a human readable entry, optionally with raw error detail."""

    def logt(self, message: str, *data: Any) -> None:
        """Append a trace entry with structured payloads."""


class NullLogSink:
    """Sink that discards everything. Default for standalone adapters."""

    def add_output(self, content: str, error: Optional[str] = None) -> None:
        pass

    def logt(self, message: str, *data: Any) -> None:
        pass


def _dump(value: Any) -> str:
    if hasattr(value, "model_dump"):
        value = value.model_dump(mode="json")
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(value)


class NodeLogger:
    """Collects the log records of one node for the run's log stream.

    Records are mirrored to the module logger so provider traces also show
    up in process logs.
    """

    def __init__(self, node: WorkflowNode) -> None:
        self._log = WorkflowRunLog(node_id=node.id, node_name=node.name)

    @property
    def records(self) -> List[LogRecord]:
        return self._log.records

    def add_output(self, content: str, error: Optional[str] = None) -> None:
        level = "error" if error else "info"
        self._log.records.append(LogRecord(level=level, content=content, error=error))
        if error:
            self._log.error = error
            logger.error(f"[{self._log.node_name}] {content}: {error}")
        else:
            logger.info(f"[{self._log.node_name}] {content}")

    def logt(self, message: str, *data: Any) -> None:
        content = " ".join([message, *(_dump(d) for d in data)])
        self._log.records.append(LogRecord(level="debug", content=content))
        logger.debug(f"[{self._log.node_name}] {content}")

    def to_run_log(self) -> WorkflowRunLog:
        return self._log.model_copy(deep=True)
