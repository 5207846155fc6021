"""Webhook notifier."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import AnyHttpUrl, BaseModel

from ..context import ExecutionContext
from ..errors import ExternalCallFailed
from .base import BaseNotifier


class WebhookNotifierConfig(BaseModel):
    url: AnyHttpUrl


class WebhookNotifier(BaseNotifier):
    """POSTs ``{"subject", "message"}`` as JSON to a URL."""

    provider = "webhook"

    def __init__(
        self,
        config: WebhookNotifierConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self.config = config
        self._timeout = timeout
        self._transport = transport

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(str(self.config.url), json=payload)
            resp.raise_for_status()
            return resp

    async def notify(self, ctx: ExecutionContext, subject: str, message: str) -> dict[str, Any]:
        operation = "webhook.Send"
        try:
            resp = await ctx.run_io(operation, self._post({"subject": subject, "message": message}))
        except httpx.HTTPError as e:
            raise ExternalCallFailed(operation, self.provider, str(e), e) from e

        result = {"status_code": resp.status_code, "body": resp.text}
        self.logger.logt("webhook delivered", result)
        return result
