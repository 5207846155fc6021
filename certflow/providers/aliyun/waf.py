"""Aliyun WAF 3.0 deployer."""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import Field

from ...context import ExecutionContext
from ...models import DeployResult
from ...utils.domains import normalize_wildcard_domain
from ..base import BaseDeployer
from .cas import AliyunCASUploader, AliyunCASUploaderConfig
from .client import AliyunAccessConfig, AliyunRpcClient

WAF_API_VERSION = "2021-10-01"


class AliyunWAFDeployerConfig(AliyunAccessConfig):
    region: str = Field(min_length=1)
    instance_id: str = Field(min_length=1)
    # WAF accepts wildcard domains as-is
    domain: Optional[str] = None


def cas_region_for(region: str) -> str:
    """CAS is served from a fixed region per site, not from the WAF region."""
    if not region:
        return ""
    return "cn-hangzhou" if region.startswith("cn-") else "ap-southeast-1"


class AliyunWAFDeployer(BaseDeployer):
    provider = "aliyun-waf"

    def __init__(
        self,
        config: AliyunWAFDeployerConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self.config = config
        # REF: https://api.aliyun.com/product/waf-openapi
        self.client = AliyunRpcClient(
            config,
            endpoint=f"wafopenapi.{config.region}.aliyuncs.com",
            version=WAF_API_VERSION,
            product="waf",
            timeout=timeout,
            transport=transport,
        )
        self.uploader = AliyunCASUploader(
            AliyunCASUploaderConfig(
                access_key_id=config.access_key_id,
                access_key_secret=config.access_key_secret,
                region=cas_region_for(config.region),
            ),
            timeout=timeout,
            transport=transport,
        )

    def with_logger(self, logger):
        super().with_logger(logger)
        self.uploader.with_logger(logger)
        return self

    async def deploy(self, ctx: ExecutionContext, cert_pem: str, key_pem: str) -> DeployResult:
        upres = await self.uploader.upload(ctx, cert_pem, key_pem)
        self.logger.logt("certificate file uploaded", upres)

        if not self.config.domain:
            await self._replace_default_certificate(ctx, upres.cert_id)
        else:
            await self._replace_domain_certificate(ctx, upres.cert_id)
        return DeployResult(extra={"cert_id": upres.cert_id})

    async def _replace_default_certificate(self, ctx: ExecutionContext, cert_id: str) -> None:
        # REF: https://help.aliyun.com/zh/waf/web-application-firewall-3-0/developer-reference/api-waf-openapi-2021-10-01-describedefaulthttps
        described = await self.client.call(
            ctx,
            "DescribeDefaultHttps",
            {"InstanceId": self.config.instance_id, "RegionId": self.config.region},
        )
        self.logger.logt("default SSL/TLS settings retrieved", described)

        params = {
            "InstanceId": self.config.instance_id,
            "RegionId": self.config.region,
            "CertId": cert_id,
            "TLSVersion": "tlsv1",
            "EnableTLSv3": False,
        }
        current = described.get("DefaultHttps") or {}
        if current:
            params["TLSVersion"] = current.get("TLSVersion", params["TLSVersion"])
            params["EnableTLSv3"] = current.get("EnableTLSv3", params["EnableTLSv3"])

        # REF: https://help.aliyun.com/zh/waf/web-application-firewall-3-0/developer-reference/api-waf-openapi-2021-10-01-modifydefaulthttps
        modified = await self.client.call(ctx, "ModifyDefaultHttps", params)
        self.logger.logt("default SSL/TLS settings modified", modified)

    async def _replace_domain_certificate(self, ctx: ExecutionContext, cert_id: str) -> None:
        domain = normalize_wildcard_domain(self.config.domain, style="keep")

        # REF: https://help.aliyun.com/zh/waf/web-application-firewall-3-0/developer-reference/api-waf-openapi-2021-10-01-describedomaindetail
        described = await self.client.call(
            ctx,
            "DescribeDomainDetail",
            {
                "InstanceId": self.config.instance_id,
                "RegionId": self.config.region,
                "Domain": domain,
            },
        )
        self.logger.logt("CNAME access details retrieved", described)

        listen = {"CertId": cert_id, "TLSVersion": "tlsv1", "EnableTLSv3": False}
        current = described.get("Listen") or {}
        for key in ("TLSVersion", "EnableTLSv3", "FocusHttps"):
            if key in current:
                listen[key] = current[key]

        # REF: https://help.aliyun.com/zh/waf/web-application-firewall-3-0/developer-reference/api-waf-openapi-2021-10-01-modifydomain
        modified = await self.client.call(
            ctx,
            "ModifyDomain",
            {
                "InstanceId": self.config.instance_id,
                "RegionId": self.config.region,
                "Domain": domain,
                "Listen": listen,
                "Redirect": {},
            },
        )
        self.logger.logt("CNAME access resource modified", modified)
