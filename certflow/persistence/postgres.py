"""PostgreSQL implementation of the output and certificate repositories."""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional

import asyncpg

from ..errors import PersistenceFailed, RecordNotFound
from ..models import Certificate, WorkflowNode, WorkflowNodeIO, WorkflowOutput, utcnow
from .repository import CertificateRepository, OutputRepositoryMixin


class PostgresStore:
    """Connection handling and schema for the PostgreSQL repositories."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_outputs (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                run_id TEXT,
                node_id TEXT NOT NULL,
                node JSONB NOT NULL,
                outputs JSONB NOT NULL,
                succeeded BOOLEAN NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS certificates (
                id TEXT PRIMARY KEY,
                source TEXT NOT NULL,
                subject_alt_names JSONB NOT NULL,
                serial_number TEXT,
                certificate TEXT NOT NULL,
                private_key TEXT NOT NULL,
                issuer TEXT,
                key_algorithm TEXT,
                effect_at TIMESTAMPTZ,
                expire_at TIMESTAMPTZ,
                fingerprint_sha256 TEXT,
                workflow_id TEXT,
                workflow_run_id TEXT,
                workflow_node_id TEXT,
                workflow_output_id TEXT,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    async def _execute(self, query: str, *params: Any) -> str:
        conn = await self._connect()
        try:
            return await conn.execute(query, *params)
        except asyncpg.PostgresError as e:
            raise PersistenceFailed(str(e)) from e
        finally:
            await conn.close()

    async def _fetchrow(self, query: str, *params: Any) -> asyncpg.Record | None:
        conn = await self._connect()
        try:
            return await conn.fetchrow(query, *params)
        finally:
            await conn.close()

    async def _fetch(self, query: str, *params: Any) -> list[asyncpg.Record]:
        conn = await self._connect()
        try:
            return await conn.fetch(query, *params)
        finally:
            await conn.close()


def _updated_rows(status: str) -> int:
    # asyncpg returns command tags such as "UPDATE 1"
    return int(status.split()[-1]) if status else 0


class PostgresCertificateRepository(PostgresStore):
    """Persist certificates using PostgreSQL."""

    def _row_to_model(self, r: asyncpg.Record) -> Certificate:
        return Certificate(
            id=r["id"],
            source=r["source"],
            subject_alt_names=json.loads(r["subject_alt_names"]),
            serial_number=r["serial_number"] or "",
            certificate=r["certificate"],
            private_key=r["private_key"],
            issuer=r["issuer"] or "",
            key_algorithm=r["key_algorithm"] or "",
            effect_at=r["effect_at"],
            expire_at=r["expire_at"],
            fingerprint_sha256=r["fingerprint_sha256"] or "",
            workflow_id=r["workflow_id"],
            workflow_run_id=r["workflow_run_id"],
            workflow_node_id=r["workflow_node_id"],
            workflow_output_id=r["workflow_output_id"],
            created_at=r["created_at"],
            updated_at=r["updated_at"],
        )

    async def save(self, certificate: Certificate) -> Certificate:
        now = utcnow()
        certificate.updated_at = now
        if not certificate.id:
            certificate.id = uuid.uuid4().hex
            certificate.created_at = now
            await self._execute(
                """
                INSERT INTO certificates (
                    id, source, subject_alt_names, serial_number, certificate, private_key,
                    issuer, key_algorithm, effect_at, expire_at, fingerprint_sha256,
                    workflow_id, workflow_run_id, workflow_node_id, workflow_output_id,
                    created_at, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
                """,
                certificate.id,
                certificate.source.value,
                json.dumps(certificate.subject_alt_names),
                certificate.serial_number,
                certificate.certificate,
                certificate.private_key,
                certificate.issuer,
                certificate.key_algorithm,
                certificate.effect_at,
                certificate.expire_at,
                certificate.fingerprint_sha256,
                certificate.workflow_id,
                certificate.workflow_run_id,
                certificate.workflow_node_id,
                certificate.workflow_output_id,
                now,
                now,
            )
            return certificate

        status = await self._execute(
            """
            UPDATE certificates
            SET workflow_id = $1, workflow_run_id = $2, workflow_node_id = $3,
                workflow_output_id = $4, updated_at = $5
            WHERE id = $6
            """,
            certificate.workflow_id,
            certificate.workflow_run_id,
            certificate.workflow_node_id,
            certificate.workflow_output_id,
            now,
            certificate.id,
        )
        if not _updated_rows(status):
            raise RecordNotFound(f"certificate {certificate.id} not found")
        return certificate

    async def get_by_id(self, certificate_id: str) -> Certificate:
        row = await self._fetchrow("SELECT * FROM certificates WHERE id = $1", certificate_id)
        if not row:
            raise RecordNotFound(f"certificate {certificate_id} not found")
        return self._row_to_model(row)

    async def get_by_workflow_node_id(self, node_id: str) -> Certificate:
        row = await self._fetchrow(
            "SELECT * FROM certificates WHERE workflow_node_id = $1 ORDER BY created_at DESC LIMIT 1",
            node_id,
        )
        if not row:
            raise RecordNotFound(f"no certificate for node {node_id}")
        return self._row_to_model(row)

    async def list(self) -> list[Certificate]:
        rows = await self._fetch("SELECT * FROM certificates ORDER BY created_at")
        return [self._row_to_model(r) for r in rows]


class PostgresWorkflowOutputRepository(PostgresStore, OutputRepositoryMixin):
    """Persist workflow outputs using PostgreSQL."""

    def __init__(self, dsn: str, certificates: Optional[CertificateRepository] = None):
        super().__init__(dsn)
        self.certificates = certificates or PostgresCertificateRepository(dsn)

    def _row_to_model(self, r: asyncpg.Record) -> WorkflowOutput:
        return WorkflowOutput(
            id=r["id"],
            workflow_id=r["workflow_id"],
            run_id=r["run_id"],
            node_id=r["node_id"],
            node=WorkflowNode.model_validate_json(r["node"]),
            outputs=[WorkflowNodeIO.model_validate(o) for o in json.loads(r["outputs"])],
            succeeded=r["succeeded"],
            created_at=r["created_at"],
            updated_at=r["updated_at"],
        )

    async def get_by_node_id(self, node_id: str) -> WorkflowOutput:
        row = await self._fetchrow(
            "SELECT * FROM workflow_outputs WHERE node_id = $1 ORDER BY created_at DESC LIMIT 1",
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
            await self._execute(
                """
                INSERT INTO workflow_outputs
                    (id, workflow_id, run_id, node_id, node, outputs, succeeded, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                output.id,
                output.workflow_id,
                output.run_id,
                output.node_id,
                node_json,
                outputs_json,
                output.succeeded,
                now,
                now,
            )
            return output

        status = await self._execute(
            """
            UPDATE workflow_outputs
            SET workflow_id = $1, run_id = $2, node_id = $3, node = $4, outputs = $5,
                succeeded = $6, updated_at = $7
            WHERE id = $8
            """,
            output.workflow_id,
            output.run_id,
            output.node_id,
            node_json,
            outputs_json,
            output.succeeded,
            now,
            output.id,
        )
        if not _updated_rows(status):
            raise RecordNotFound(f"workflow output {output.id} not found")
        output.updated_at = now
        return output
