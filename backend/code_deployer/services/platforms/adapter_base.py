"""
Abstract base class for platform adapters.

Defines the interface every publishing target must implement. Adapters are
selected by the deployment's platform and never share state with each other.
"""
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass
class PublishRequest:
    """What an adapter needs to publish one deployment."""

    deployment_id: UUID
    project_name: str
    source_type: str
    source_url: str


@dataclass
class PublishResult:
    """Result of a publish operation."""

    success: bool
    preview_url: Optional[str] = None
    error_message: Optional[str] = None


class PlatformAdapter(ABC):
    """
    Abstract base class for platform adapters.

    Contract:
    - publish() returns PublishResult(success=True, preview_url=...) when the
      site is live.
    - An explicit, user-presentable failure is reported either as
      PublishResult(success=False, error_message=...) or by raising AdapterError.
    - Any other exception is treated by the lifecycle as an internal fault.
    """

    #: Value of Deployment.platform this adapter serves
    platform: str

    @abstractmethod
    async def publish(self, request: PublishRequest) -> PublishResult:
        """
        Publish a deployment's source to the platform.

        Args:
            request: Deployment identity and source reference

        Returns:
            PublishResult with the preview URL or a failure reason
        """
        pass

    @staticmethod
    def build_preview_url(prefix: str, domain: str) -> str:
        """Synthesize https://<prefix>-<epoch_ms>.<domain>."""
        return f"https://{prefix}-{int(time.time() * 1000)}.{domain}"
