"""Aliyun adapters."""

from .cas import AliyunCASUploader, AliyunCASUploaderConfig
from .client import AliyunAccessConfig, AliyunRpcClient
from .dcdn import AliyunDCDNDeployer, AliyunDCDNDeployerConfig
from .waf import AliyunWAFDeployer, AliyunWAFDeployerConfig

__all__ = [
    "AliyunAccessConfig",
    "AliyunRpcClient",
    "AliyunCASUploader",
    "AliyunCASUploaderConfig",
    "AliyunDCDNDeployer",
    "AliyunDCDNDeployerConfig",
    "AliyunWAFDeployer",
    "AliyunWAFDeployerConfig",
]
