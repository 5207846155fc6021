"""Aliyun Certificate Management Service (CAS) uploader."""

from __future__ import annotations

import time
from typing import Optional

import httpx

from ...context import ExecutionContext
from ...models import UploadResult
from ...utils import certs
from ..base import BaseUploader
from .client import AliyunAccessConfig, AliyunRpcClient

CAS_API_VERSION = "2020-04-07"
_LIST_PAGE_SIZE = 50


class AliyunCASUploaderConfig(AliyunAccessConfig):
    region: str = ""


def cas_endpoint(region: str) -> str:
    """CAS has one endpoint for mainland China and one for all other sites."""
    if not region or region.startswith("cn-"):
        return "cas.aliyuncs.com"
    return "cas.ap-southeast-1.aliyuncs.com"


class AliyunCASUploader(BaseUploader):
    """Uploads a certificate to CAS, reusing an identical existing entry."""

    provider = "aliyun-cas"

    def __init__(
        self,
        config: AliyunCASUploaderConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self.config = config
        self.client = AliyunRpcClient(
            config,
            endpoint=cas_endpoint(config.region),
            version=CAS_API_VERSION,
            product="cas",
            timeout=timeout,
            transport=transport,
        )

    async def _find_existing(self, ctx: ExecutionContext, cert_pem: str) -> Optional[UploadResult]:
        cert = certs.parse_certificate_from_pem(cert_pem)
        names = certs.subject_alt_names(cert)
        keyword = names[0] if names else None
        wanted = cert_pem.strip()

        page = 1
        while True:
            # REF: https://help.aliyun.com/zh/ssl-certificate/developer-reference/api-cas-2020-04-07-listusercertificateorder
            resp = await self.client.call(
                ctx,
                "ListUserCertificateOrder",
                {
                    "Keyword": keyword,
                    "OrderType": "UPLOAD",
                    "CurrentPage": page,
                    "ShowSize": _LIST_PAGE_SIZE,
                },
            )
            orders = resp.get("CertificateOrderList") or []
            for order in orders:
                if order.get("Expired"):
                    continue
                cert_id = str(order.get("CertificateId"))
                # REF: https://help.aliyun.com/zh/ssl-certificate/developer-reference/api-cas-2020-04-07-getusercertificatedetail
                detail = await self.client.call(
                    ctx, "GetUserCertificateDetail", {"CertId": cert_id, "CertFilter": False}
                )
                if (detail.get("Cert") or "").strip() == wanted:
                    return UploadResult(cert_id=cert_id, cert_name=detail.get("Name"))

            total = int(resp.get("TotalCount") or 0)
            if not orders or page * _LIST_PAGE_SIZE >= total:
                return None
            page += 1

    async def upload(self, ctx: ExecutionContext, cert_pem: str, key_pem: str) -> UploadResult:
        existing = await self._find_existing(ctx, cert_pem)
        if existing is not None:
            self.logger.logt("certificate already exists in CAS", existing)
            return existing

        cert_name = f"certflow_{int(time.time() * 1000)}"
        # REF: https://help.aliyun.com/zh/ssl-certificate/developer-reference/api-cas-2020-04-07-uploadusercertificate
        resp = await self.client.call(
            ctx,
            "UploadUserCertificate",
            {"Name": cert_name, "Cert": cert_pem, "Key": key_pem},
        )
        self.logger.logt("certificate uploaded to CAS", resp)
        return UploadResult(cert_id=str(resp.get("CertId")), cert_name=cert_name)
