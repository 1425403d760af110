"""
Event handlers for domain events.

Default handlers forward deployment events to the log. Additional sinks
(alerting, metrics) register the same way with @handles.
"""
import logging

from code_deployer.core.events import (
    DeploymentCreatedEvent,
    DeploymentFaultEvent,
    DeploymentStatusChangedEvent,
    handles,
)

logger = logging.getLogger(__name__)


@handles(DeploymentCreatedEvent)
def on_deployment_created(event: DeploymentCreatedEvent):
    """Log new submissions."""
    logger.info(
        f"Deployment {event.deployment_id} created for user {event.user_id} "
        f"({event.platform}, {event.source_type})"
    )


@handles(DeploymentStatusChangedEvent)
def on_deployment_status_changed(event: DeploymentStatusChangedEvent):
    """Log every lifecycle transition."""
    logger.info(
        f"Deployment {event.deployment_id}: {event.old_status} -> {event.new_status}"
    )


@handles(DeploymentFaultEvent)
def on_deployment_fault(event: DeploymentFaultEvent):
    """Log swallowed faults with their traceback."""
    logger.error(
        f"Deployment {event.deployment_id} fault during {event.stage}: "
        f"{event.error_type}: {event.error}\n{event.traceback or ''}"
    )


def register_all_handlers():
    """
    Explicitly register all handlers.

    The @handles decorator registers handlers when this module is imported;
    calling this at startup guarantees the import has happened.
    """
    logger.info("Event handlers registered")
