"""Aliyun DCDN deployer."""

from __future__ import annotations

import time
from typing import Optional

import httpx
from pydantic import Field

from ...context import ExecutionContext
from ...models import DeployResult
from ...utils.domains import normalize_wildcard_domain
from ..base import BaseDeployer
from .client import AliyunAccessConfig, AliyunRpcClient

DCDN_API_VERSION = "2018-01-15"


class AliyunDCDNDeployerConfig(AliyunAccessConfig):
    domain: str = Field(min_length=1)


class AliyunDCDNDeployer(BaseDeployer):
    provider = "aliyun-dcdn"

    def __init__(
        self,
        config: AliyunDCDNDeployerConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self.config = config
        self.client = AliyunRpcClient(
            config,
            endpoint="dcdn.aliyuncs.com",
            version=DCDN_API_VERSION,
            product="dcdn",
            timeout=timeout,
            transport=transport,
        )

    async def deploy(self, ctx: ExecutionContext, cert_pem: str, key_pem: str) -> DeployResult:
        # DCDN expects "*.example.com" as ".example.com"
        domain = normalize_wildcard_domain(self.config.domain, style="dot")

        # REF: https://help.aliyun.com/zh/edge-security-acceleration/dcdn/developer-reference/api-dcdn-2018-01-15-setdcdndomainsslcertificate
        resp = await self.client.call(
            ctx,
            "SetDcdnDomainSSLCertificate",
            {
                "DomainName": domain,
                "CertName": f"certflow-{int(time.time() * 1000)}",
                "CertType": "upload",
                "SSLProtocol": "on",
                "SSLPub": cert_pem,
                "SSLPri": key_pem,
            },
        )
        self.logger.logt("DCDN domain certificate configured", resp)
        return DeployResult(extra={"domain": domain})
