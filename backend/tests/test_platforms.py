"""
Tests for the platform adapters and the platform registry.

Run with: pytest backend/tests/test_platforms.py -v
"""
import re
from types import SimpleNamespace
from uuid import uuid4

import pytest

from code_deployer.core.exceptions import AdapterError
from code_deployer.services.platforms import (
    NetlifyAdapter,
    PlatformRegistry,
    PublishRequest,
    VercelAdapter,
    build_platform_registry,
)


def _request():
    return PublishRequest(
        deployment_id=uuid4(),
        project_name="site",
        source_type="repository",
        source_url="https://github.com/acme/site",
    )


class TestAdapters:
    """Tests for the simulated Vercel and Netlify adapters."""

    @pytest.mark.asyncio
    async def test_vercel_returns_vercel_preview_url(self):
        result = await VercelAdapter(simulated_latency=0).publish(_request())

        assert result.success is True
        assert result.error_message is None
        assert re.fullmatch(r"https://vercel-\d+\.vercel\.app", result.preview_url)

    @pytest.mark.asyncio
    async def test_netlify_returns_netlify_preview_url(self):
        result = await NetlifyAdapter(simulated_latency=0).publish(_request())

        assert result.success is True
        assert re.fullmatch(r"https://netlify-\d+\.netlify\.app", result.preview_url)

    def test_default_latencies(self):
        assert VercelAdapter().simulated_latency == 3.0
        assert NetlifyAdapter().simulated_latency == 4.0


class TestPlatformRegistry:
    """Tests for PlatformRegistry."""

    def test_get_returns_registered_adapter(self):
        vercel = VercelAdapter(simulated_latency=0)
        registry = PlatformRegistry([vercel])

        assert registry.get("vercel") is vercel

    def test_get_unknown_platform_raises_adapter_error(self):
        registry = PlatformRegistry([VercelAdapter()])

        with pytest.raises(AdapterError) as exc_info:
            registry.get("netlify")

        assert exc_info.value.platform == "netlify"
        assert exc_info.value.reason == "Unsupported platform"

    def test_register_replaces_adapter(self):
        registry = PlatformRegistry([VercelAdapter()])
        replacement = VercelAdapter(api_token="new")

        registry.register(replacement)

        assert registry.get("vercel") is replacement

    def test_build_from_settings(self):
        settings = SimpleNamespace(
            VERCEL_API_TOKEN="v-token",
            VERCEL_SIMULATED_LATENCY=0.1,
            NETLIFY_API_TOKEN="n-token",
            NETLIFY_SIMULATED_LATENCY=0.2,
        )

        registry = build_platform_registry(settings)

        assert registry.platforms == ["netlify", "vercel"]
        assert registry.get("vercel").api_token == "v-token"
        assert registry.get("netlify").simulated_latency == 0.2
