"""Execution context passed to node processors and adapters."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from .errors import Canceled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExecutionContext:
    """Carries run identity plus the cancellation signal and deadline.

    Every blocking external call made on behalf of a node goes through
    :meth:`run_io` so that canceling the context, or reaching its deadline,
    aborts the in-flight call.
    """

    def __init__(
        self,
        workflow_id: str,
        run_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.workflow_id = workflow_id
        self.run_id = run_id
        self._canceled = asyncio.Event()
        self._deadline: Optional[float] = None
        if timeout is not None:
            self._deadline = asyncio.get_running_loop().time() + timeout

    def cancel(self) -> None:
        self._canceled.set()

    @property
    def canceled(self) -> bool:
        return self._canceled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or ``None`` without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    def check(self, operation: str) -> None:
        """Raise ``Canceled`` if the context is already done."""
        if self.canceled:
            raise Canceled(operation)
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise Canceled(operation, "deadline exceeded")

    async def run_io(self, operation: str, call: Awaitable[T]) -> T:
        """Await ``call`` unless the context is canceled or times out first.

        Raises:
            Canceled: When cancellation or the deadline wins the race. The
                in-flight call is canceled and awaited before raising.
        """
        try:
            self.check(operation)
        except Canceled:
            if asyncio.iscoroutine(call):
                call.close()
            raise

        task = asyncio.ensure_future(call)
        waiter = asyncio.ensure_future(self._canceled.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        reason = "canceled" if self.canceled else "deadline exceeded"
        logger.info(f"Aborted in-flight call {operation}: {reason}")
        raise Canceled(operation, reason)
