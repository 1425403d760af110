"""
Platform selection.

The registry is the single place a deployment's platform is mapped to the
adapter that publishes it. Adding a platform means adding an adapter and
registering it here.
"""
from typing import Dict, Iterable

from code_deployer.core.exceptions import AdapterError
from code_deployer.services.platforms.adapter_base import PlatformAdapter
from code_deployer.services.platforms.netlify_adapter import NetlifyAdapter
from code_deployer.services.platforms.vercel_adapter import VercelAdapter


class PlatformRegistry:
    """Maps platform names to adapter instances."""

    def __init__(self, adapters: Iterable[PlatformAdapter] = ()):
        self._adapters: Dict[str, PlatformAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: PlatformAdapter) -> None:
        """Register (or replace) the adapter for adapter.platform."""
        self._adapters[adapter.platform] = adapter

    def get(self, platform: str) -> PlatformAdapter:
        """
        Get the adapter for a platform.

        Raises:
            AdapterError: If no adapter serves this platform
        """
        adapter = self._adapters.get(str(platform))
        if adapter is None:
            raise AdapterError(str(platform), "Unsupported platform")
        return adapter

    @property
    def platforms(self) -> list:
        return sorted(self._adapters)


def build_platform_registry(settings) -> PlatformRegistry:
    """Build the registry from application settings at process start."""
    return PlatformRegistry([
        VercelAdapter(
            api_token=settings.VERCEL_API_TOKEN,
            simulated_latency=settings.VERCEL_SIMULATED_LATENCY,
        ),
        NetlifyAdapter(
            api_token=settings.NETLIFY_API_TOKEN,
            simulated_latency=settings.NETLIFY_SIMULATED_LATENCY,
        ),
    ])
