"""
Deployment orchestration services.

This package provides the submission handler, the lifecycle driver and the
stuck-deployment sweep for Vercel and Netlify deployments.

The shared service instance lives at
code_deployer.services.deployment.deployment_service.deployment_service; it is
not re-exported here so the submodule name stays importable and patchable.
"""
from code_deployer.services.deployment.deployment_service import (
    DeploymentService,
    validate_submission,
    INTERNAL_ERROR_MESSAGE,
    DEFAULT_FAILURE_MESSAGE,
)

__all__ = [
    "DeploymentService",
    "validate_submission",
    "INTERNAL_ERROR_MESSAGE",
    "DEFAULT_FAILURE_MESSAGE",
]
