from .models import WorkflowRunLogRecord, WorkflowRunRecord
from .run_db import RunDB

__all__ = [
    "WorkflowRunRecord",
    "WorkflowRunLogRecord",
    "RunDB",
]
