from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from ..models import utcnow


def _new_id() -> str:
    return uuid4().hex


class WorkflowRunRecord(SQLModel, table=True):
    """Represents one execution of a workflow."""

    __tablename__ = "workflow_runs"

    id: str = Field(default_factory=_new_id, primary_key=True)
    workflow_id: str = Field(index=True)
    status: str = Field(default="pending")
    trigger: str = Field(default="manual")
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class WorkflowRunLogRecord(SQLModel, table=True):
    """Log records of a single node, appended as each node finishes."""

    __tablename__ = "workflow_run_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    run_id: str = Field(foreign_key="workflow_runs.id", index=True)
    node_id: str
    node_name: str
    records: list = Field(default_factory=list, sa_column=Column(JSON))
    error: Optional[str] = None
