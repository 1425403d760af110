"""
Platform adapters.

One adapter per supported publishing target, selected through PlatformRegistry.
"""
from code_deployer.services.platforms.adapter_base import (
    PlatformAdapter,
    PublishRequest,
    PublishResult,
)
from code_deployer.services.platforms.netlify_adapter import NetlifyAdapter
from code_deployer.services.platforms.registry import PlatformRegistry, build_platform_registry
from code_deployer.services.platforms.vercel_adapter import VercelAdapter

__all__ = [
    "PlatformAdapter",
    "PublishRequest",
    "PublishResult",
    "VercelAdapter",
    "NetlifyAdapter",
    "PlatformRegistry",
    "build_platform_registry",
]
