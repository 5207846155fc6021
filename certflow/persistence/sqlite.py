"""SQLite implementation of the output and certificate repositories."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..errors import PersistenceFailed, RecordNotFound
from ..models import Certificate, WorkflowNode, WorkflowNodeIO, WorkflowOutput, utcnow
from .repository import CertificateRepository, OutputRepositoryMixin

_CERTIFICATE_COLUMNS = (
    "id",
    "source",
    "subject_alt_names",
    "serial_number",
    "certificate",
    "private_key",
    "issuer",
    "key_algorithm",
    "effect_at",
    "expire_at",
    "fingerprint_sha256",
    "workflow_id",
    "workflow_run_id",
    "workflow_node_id",
    "workflow_output_id",
    "created_at",
    "updated_at",
)


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class SQLiteStore:
    """Connection and schema shared by the SQLite repositories."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_outputs (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                run_id TEXT,
                node_id TEXT NOT NULL,
                node TEXT NOT NULL,
                outputs TEXT NOT NULL,
                succeeded INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS certificates (
                id TEXT PRIMARY KEY,
                source TEXT NOT NULL,
                subject_alt_names TEXT NOT NULL,
                serial_number TEXT,
                certificate TEXT NOT NULL,
                private_key TEXT NOT NULL,
                issuer TEXT,
                key_algorithm TEXT,
                effect_at TEXT,
                expire_at TEXT,
                fingerprint_sha256 TEXT,
                workflow_id TEXT,
                workflow_run_id TEXT,
                workflow_node_id TEXT,
                workflow_output_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_workflow_outputs_node ON workflow_outputs (node_id)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceFailed(str(e)) from e
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def close(self) -> None:
        self._conn.close()


class SQLiteCertificateRepository(SQLiteStore):
    """Persist certificates using SQLite."""

    def _row_to_model(self, row: sqlite3.Row) -> Certificate:
        return Certificate(
            id=row["id"],
            source=row["source"],
            subject_alt_names=json.loads(row["subject_alt_names"]),
            serial_number=row["serial_number"] or "",
            certificate=row["certificate"],
            private_key=row["private_key"],
            issuer=row["issuer"] or "",
            key_algorithm=row["key_algorithm"] or "",
            effect_at=_dt(row["effect_at"]),
            expire_at=_dt(row["expire_at"]),
            fingerprint_sha256=row["fingerprint_sha256"] or "",
            workflow_id=row["workflow_id"],
            workflow_run_id=row["workflow_run_id"],
            workflow_node_id=row["workflow_node_id"],
            workflow_output_id=row["workflow_output_id"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    def _values(self, c: Certificate) -> tuple:
        return (
            c.id,
            c.source.value,
            json.dumps(c.subject_alt_names),
            c.serial_number,
            c.certificate,
            c.private_key,
            c.issuer,
            c.key_algorithm,
            _iso(c.effect_at),
            _iso(c.expire_at),
            c.fingerprint_sha256,
            c.workflow_id,
            c.workflow_run_id,
            c.workflow_node_id,
            c.workflow_output_id,
            _iso(c.created_at),
            _iso(c.updated_at),
        )

    async def save(self, certificate: Certificate) -> Certificate:
        now = utcnow()
        certificate.updated_at = now
        if not certificate.id:
            certificate.id = uuid.uuid4().hex
            certificate.created_at = now
            placeholders = ", ".join("?" for _ in _CERTIFICATE_COLUMNS)
            await asyncio.to_thread(
                self._execute,
                f"INSERT INTO certificates ({', '.join(_CERTIFICATE_COLUMNS)}) VALUES ({placeholders})",
                *self._values(certificate),
            )
            return certificate

        assignments = ", ".join(f"{col} = ?" for col in _CERTIFICATE_COLUMNS[1:] if col != "created_at")
        values = [
            v
            for col, v in zip(_CERTIFICATE_COLUMNS, self._values(certificate))
            if col not in ("id", "created_at")
        ]
        updated = await asyncio.to_thread(
            self._execute,
            f"UPDATE certificates SET {assignments} WHERE id = ?",
            *values,
            certificate.id,
        )
        if not updated:
            raise RecordNotFound(f"certificate {certificate.id} not found")
        return certificate

    async def get_by_id(self, certificate_id: str) -> Certificate:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT * FROM certificates WHERE id = ?", certificate_id
        )
        if not row:
            raise RecordNotFound(f"certificate {certificate_id} not found")
        return self._row_to_model(row)

    async def get_by_workflow_node_id(self, node_id: str) -> Certificate:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT * FROM certificates WHERE workflow_node_id = ? ORDER BY created_at DESC, rowid DESC LIMIT 1",
            node_id,
        )
        if not row:
            raise RecordNotFound(f"no certificate for node {node_id}")
        return self._row_to_model(row)

    async def list(self) -> list[Certificate]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT * FROM certificates ORDER BY created_at"
        )
        return [self._row_to_model(r) for r in rows]


class SQLiteWorkflowOutputRepository(SQLiteStore, OutputRepositoryMixin):
    """Persist workflow outputs using SQLite."""

    def __init__(
        self, db_path: str | Path, certificates: Optional[CertificateRepository] = None
    ):
        super().__init__(db_path)
        self.certificates = certificates or SQLiteCertificateRepository(db_path)

    def _row_to_model(self, row: sqlite3.Row) -> WorkflowOutput:
        return WorkflowOutput(
            id=row["id"],
            workflow_id=row["workflow_id"],
            run_id=row["run_id"],
            node_id=row["node_id"],
            node=WorkflowNode.model_validate_json(row["node"]),
            outputs=[WorkflowNodeIO.model_validate(o) for o in json.loads(row["outputs"])],
            succeeded=bool(row["succeeded"]),
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    async def get_by_node_id(self, node_id: str) -> WorkflowOutput:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT * FROM workflow_outputs WHERE node_id = ? ORDER BY created_at DESC, rowid DESC LIMIT 1",
            node_id,
        )
        if not row:
            raise RecordNotFound(f"no output for node {node_id}")
        return self._row_to_model(row)

    async def save(self, output: WorkflowOutput) -> WorkflowOutput:
        now = utcnow()
        node_json = output.node.model_dump_json()
        outputs_json = json.dumps([o.model_dump(mode="json") for o in output.outputs])
        if not output.id:
            output.id = uuid.uuid4().hex
            output.created_at = now
            output.updated_at = now
            await asyncio.to_thread(
                self._execute,
                """
                INSERT INTO workflow_outputs
                    (id, workflow_id, run_id, node_id, node, outputs, succeeded, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                output.id,
                output.workflow_id,
                output.run_id,
                output.node_id,
                node_json,
                outputs_json,
                int(output.succeeded),
                _iso(now),
                _iso(now),
            )
            return output

        updated = await asyncio.to_thread(
            self._execute,
            """
            UPDATE workflow_outputs
            SET workflow_id = ?, run_id = ?, node_id = ?, node = ?, outputs = ?, succeeded = ?, updated_at = ?
            WHERE id = ?
            """,
            output.workflow_id,
            output.run_id,
            output.node_id,
            node_json,
            outputs_json,
            int(output.succeeded),
            _iso(now),
            output.id,
        )
        if not updated:
            raise RecordNotFound(f"workflow output {output.id} not found")
        output.updated_at = now
        return output
