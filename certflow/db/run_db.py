from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timezone
from typing import AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlmodel import SQLModel, select

from ..errors import InvalidRunTransition, PersistenceFailed, RecordNotFound
from ..models import (
    LogRecord,
    WorkflowRun,
    WorkflowRunLog,
    WorkflowRunStatus,
    WorkflowTrigger,
    utcnow,
)
from .models import WorkflowRunLogRecord, WorkflowRunRecord

logger = logging.getLogger(__name__)


def _aware(value):
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RunDB:
    """Async store for workflow runs and their per-node logs."""

    def __init__(self, database_url: str) -> None:
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_async_engine(
            database_url, echo=False, future=True, connect_args=connect_args
        )

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with AsyncSession(self.engine, expire_on_commit=False) as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceFailed(str(e)) from e

    async def create_run(
        self, workflow_id: str, trigger: WorkflowTrigger = WorkflowTrigger.MANUAL
    ) -> WorkflowRun:
        row = WorkflowRunRecord(workflow_id=workflow_id, trigger=trigger.value)
        async with self.session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return await self.get_run(row.id)

    async def get_run(self, run_id: str) -> WorkflowRun:
        async with self.session() as session:
            row = await session.get(WorkflowRunRecord, run_id)
            if row is None:
                raise RecordNotFound(f"workflow run {run_id} not found")
            result = await session.execute(
                select(WorkflowRunLogRecord)
                .where(WorkflowRunLogRecord.run_id == run_id)
                .order_by(WorkflowRunLogRecord.id)
            )
            log_rows = result.scalars().all()
        return self._to_model(row, log_rows)

    async def list_runs(self, workflow_id: Optional[str] = None) -> list[WorkflowRun]:
        async with self.session() as session:
            query = select(WorkflowRunRecord).order_by(WorkflowRunRecord.created_at)
            if workflow_id is not None:
                query = query.where(WorkflowRunRecord.workflow_id == workflow_id)
            result = await session.execute(query)
            rows = result.scalars().all()
        return [self._to_model(r, []) for r in rows]

    async def append_log(self, run_id: str, log: WorkflowRunLog) -> None:
        row = WorkflowRunLogRecord(
            run_id=run_id,
            node_id=log.node_id,
            node_name=log.node_name,
            records=[r.model_dump(mode="json") for r in log.records],
            error=log.error,
        )
        async with self.session() as session:
            session.add(row)
            await session.commit()

    async def update_status(
        self, run_id: str, status: WorkflowRunStatus, error: Optional[str] = None
    ) -> WorkflowRun:
        """Move a run to ``status``.

        Raises:
            InvalidRunTransition: If the run already reached a terminal
                status or the move is otherwise not allowed.
        """
        async with self.session() as session:
            row = await session.get(WorkflowRunRecord, run_id)
            if row is None:
                raise RecordNotFound(f"workflow run {run_id} not found")
            current = WorkflowRunStatus(row.status)
            if not current.can_transition_to(status):
                raise InvalidRunTransition(
                    f"run {run_id} cannot move from {current.value} to {status.value}"
                )
            now = utcnow()
            row.status = status.value
            if status == WorkflowRunStatus.RUNNING:
                row.started_at = now
            if status.is_terminal:
                row.ended_at = now
                row.error = error
            session.add(row)
            await session.commit()
        logger.info(f"Run {run_id} moved from {current.value} to {status.value}")
        return await self.get_run(run_id)

    @staticmethod
    def _to_model(
        row: WorkflowRunRecord, log_rows: list[WorkflowRunLogRecord]
    ) -> WorkflowRun:
        return WorkflowRun(
            id=row.id,
            workflow_id=row.workflow_id,
            status=WorkflowRunStatus(row.status),
            trigger=WorkflowTrigger(row.trigger),
            started_at=_aware(row.started_at),
            ended_at=_aware(row.ended_at),
            error=row.error,
            logs=[
                WorkflowRunLog(
                    node_id=log_row.node_id,
                    node_name=log_row.node_name,
                    records=[LogRecord.model_validate(r) for r in log_row.records or []],
                    error=log_row.error,
                )
                for log_row in log_rows
            ],
        )
