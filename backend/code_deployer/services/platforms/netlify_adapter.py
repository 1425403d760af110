"""
Netlify platform adapter (simulated).

No Netlify API calls are made yet: publish() waits for the configured latency
and reports a synthesized *.netlify.app preview URL.
"""
import asyncio
import logging

from code_deployer.services.platforms.adapter_base import (
    PlatformAdapter,
    PublishRequest,
    PublishResult,
)

logger = logging.getLogger(__name__)


class NetlifyAdapter(PlatformAdapter):
    """Publishes deployments to Netlify."""

    platform = "netlify"
    url_prefix = "netlify"
    url_domain = "netlify.app"

    def __init__(self, api_token: str = "", simulated_latency: float = 4.0):
        """
        Args:
            api_token: Netlify personal access token (unused by the simulation)
            simulated_latency: Seconds publish() takes to complete
        """
        self.api_token = api_token
        self.simulated_latency = simulated_latency

    async def publish(self, request: PublishRequest) -> PublishResult:
        """Simulate a Netlify deployment."""
        logger.info(
            f"Publishing {request.project_name} ({request.deployment_id}) to Netlify "
            f"from {request.source_type}"
        )
        await asyncio.sleep(self.simulated_latency)

        return PublishResult(
            success=True,
            preview_url=self.build_preview_url(self.url_prefix, self.url_domain),
        )
