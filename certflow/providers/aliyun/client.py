"""Minimal Aliyun OpenAPI RPC client over httpx.

Implements the RPC signature (version 1.0, HMAC-SHA1) documented at
https://help.aliyun.com/document_detail/315526.html.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field

from ...context import ExecutionContext
from ...errors import ExternalCallFailed

logger = logging.getLogger(__name__)

PROVIDER_NAME = "aliyun"


class AliyunAccessConfig(BaseModel):
    """Aliyun AccessKey pair."""

    access_key_id: str = Field(min_length=1)
    access_key_secret: str = Field(min_length=1)


def _percent_encode(value: str) -> str:
    return quote(value, safe="~")


def _serialize(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


class AliyunRpcClient:
    """Signs and sends RPC style requests to a single product endpoint."""

    def __init__(
        self,
        access: AliyunAccessConfig,
        endpoint: str,
        version: str,
        product: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.access = access
        self.endpoint = endpoint
        self.version = version
        self.product = product
        self._timeout = timeout
        self._transport = transport

    def sign(self, params: Dict[str, str]) -> str:
        canonical = "&".join(
            f"{_percent_encode(k)}={_percent_encode(params[k])}" for k in sorted(params)
        )
        string_to_sign = f"POST&{_percent_encode('/')}&{_percent_encode(canonical)}"
        digest = hmac.new(
            f"{self.access.access_key_secret}&".encode(),
            string_to_sign.encode(),
            hashlib.sha1,
        ).digest()
        return base64.b64encode(digest).decode()

    def build_params(self, action: str, params: Dict[str, Any]) -> Dict[str, str]:
        """Merge common parameters and the signature into ``params``."""
        signed: Dict[str, str] = {
            "Action": action,
            "Format": "JSON",
            "Version": self.version,
            "AccessKeyId": self.access.access_key_id,
            "SignatureMethod": "HMAC-SHA1",
            "SignatureVersion": "1.0",
            "SignatureNonce": uuid.uuid4().hex,
            "Timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        signed.update({k: _serialize(v) for k, v in params.items() if v is not None})
        signed["Signature"] = self.sign(signed)
        return signed

    async def _post(self, data: Dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=f"https://{self.endpoint}",
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            return await client.post("/", data=data)

    async def call(
        self, ctx: ExecutionContext, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Invoke ``action`` and return the decoded response body.

        Raises:
            ExternalCallFailed: On transport errors or an error response.
            Canceled: If ``ctx`` is canceled before the response arrives.
        """
        operation = f"{self.product}.{action}"
        logger.debug(f"Calling {operation} at {self.endpoint}")
        try:
            resp = await ctx.run_io(operation, self._post(self.build_params(action, params)))
        except httpx.HTTPError as e:
            raise ExternalCallFailed(operation, PROVIDER_NAME, str(e), e) from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 400 or not isinstance(body, dict):
            code = body.get("Code", resp.status_code) if isinstance(body, dict) else resp.status_code
            message = body.get("Message", resp.text) if isinstance(body, dict) else resp.text
            raise ExternalCallFailed(operation, PROVIDER_NAME, f"{code}: {message}")
        return body
