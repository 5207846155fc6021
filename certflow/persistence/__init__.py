"""Persistence layer for workflow outputs and certificates."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from ..config import CertflowConfig, load_config
from .inmemory import InMemoryCertificateRepository, InMemoryWorkflowOutputRepository
from .repository import (
    CertificateRepository,
    OutputRepositoryMixin,
    WorkflowOutputRepository,
)
from .sqlite import SQLiteCertificateRepository, SQLiteWorkflowOutputRepository


@dataclass
class Repositories:
    """Output and certificate repositories bound to the same backend."""

    outputs: WorkflowOutputRepository
    certificates: CertificateRepository


def get_repositories(
    database_url: Optional[str] = None, config: Optional[CertflowConfig] = None
) -> Repositories:
    """Build the repositories for the configured backend.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``CERTFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, in-memory repositories are returned. Every call builds new
    instances; callers pass them on explicitly.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("CERTFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        certificates = InMemoryCertificateRepository()
        return Repositories(InMemoryWorkflowOutputRepository(certificates), certificates)

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        certificates = SQLiteCertificateRepository(path)
        return Repositories(SQLiteWorkflowOutputRepository(path, certificates), certificates)
    if database_url.startswith("postgres://") or database_url.startswith("postgresql://"):
        from .postgres import PostgresCertificateRepository, PostgresWorkflowOutputRepository

        certificates = PostgresCertificateRepository(database_url)
        return Repositories(
            PostgresWorkflowOutputRepository(database_url, certificates), certificates
        )
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "CertificateRepository",
    "WorkflowOutputRepository",
    "OutputRepositoryMixin",
    "InMemoryCertificateRepository",
    "InMemoryWorkflowOutputRepository",
    "SQLiteCertificateRepository",
    "SQLiteWorkflowOutputRepository",
    "Repositories",
    "get_repositories",
]
