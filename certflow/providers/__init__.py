"""Provider adapter factory."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple, Type

import httpx
from pydantic import BaseModel, ValidationError

from ..config import HttpConfig
from ..errors import ConfigurationInvalid
from ..logsink import LogSink
from .aliyun import (
    AliyunCASUploader,
    AliyunCASUploaderConfig,
    AliyunDCDNDeployer,
    AliyunDCDNDeployerConfig,
    AliyunWAFDeployer,
    AliyunWAFDeployerConfig,
)
from .base import BaseDeployer, BaseNotifier, BaseUploader
from .webhook import WebhookNotifier, WebhookNotifierConfig

logger = logging.getLogger(__name__)

AdapterEntry = Tuple[Type[BaseModel], Callable[..., Any]]

DEPLOYERS: Dict[str, AdapterEntry] = {
    "aliyun-waf": (AliyunWAFDeployerConfig, AliyunWAFDeployer),
    "aliyun-dcdn": (AliyunDCDNDeployerConfig, AliyunDCDNDeployer),
}

UPLOADERS: Dict[str, AdapterEntry] = {
    "aliyun-cas": (AliyunCASUploaderConfig, AliyunCASUploader),
}

NOTIFIERS: Dict[str, AdapterEntry] = {
    "webhook": (WebhookNotifierConfig, WebhookNotifier),
}


def _describe_validation_error(e: ValidationError) -> str:
    return "; ".join(
        f"config `{'.'.join(str(p) for p in err['loc'])}` {err['msg'].lower()}"
        for err in e.errors()
    )


class ProviderFactory:
    """Builds adapters from provider name plus access and target config.

    Construction validates every field before any adapter exists, so a
    missing identity field never reaches the network.
    """

    def __init__(
        self,
        http: Optional[HttpConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.http = http or HttpConfig()
        self._transport = transport

    def _build(
        self,
        kind: str,
        registry: Dict[str, AdapterEntry],
        provider: str,
        access: Optional[Dict[str, Any]],
        config: Optional[Dict[str, Any]],
        log_sink: Optional[LogSink],
    ):
        entry = registry.get(provider)
        if entry is None:
            raise ConfigurationInvalid(f"unsupported {kind} provider: {provider}")
        config_model, adapter_cls = entry
        try:
            adapter_config = config_model.model_validate({**(access or {}), **(config or {})})
        except ValidationError as e:
            raise ConfigurationInvalid(
                f"invalid {provider} {kind} config: {_describe_validation_error(e)}"
            ) from e

        logger.info(f"Creating {kind} for provider: {provider}")
        adapter = adapter_cls(adapter_config, timeout=self.http.timeout, transport=self._transport)
        return adapter.with_logger(log_sink)

    def deployer(
        self,
        provider: str,
        access: Optional[Dict[str, Any]] = None,
        config: Optional[Dict[str, Any]] = None,
        log_sink: Optional[LogSink] = None,
    ) -> BaseDeployer:
        return self._build("deployer", DEPLOYERS, provider, access, config, log_sink)

    def uploader(
        self,
        provider: str,
        access: Optional[Dict[str, Any]] = None,
        config: Optional[Dict[str, Any]] = None,
        log_sink: Optional[LogSink] = None,
    ) -> BaseUploader:
        return self._build("uploader", UPLOADERS, provider, access, config, log_sink)

    def notifier(
        self,
        provider: str,
        access: Optional[Dict[str, Any]] = None,
        config: Optional[Dict[str, Any]] = None,
        log_sink: Optional[LogSink] = None,
    ) -> BaseNotifier:
        return self._build("notifier", NOTIFIERS, provider, access, config, log_sink)


__all__ = [
    "BaseDeployer",
    "BaseNotifier",
    "BaseUploader",
    "DEPLOYERS",
    "NOTIFIERS",
    "UPLOADERS",
    "ProviderFactory",
]
