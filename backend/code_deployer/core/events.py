"""
Domain event system for loose coupling between services.

This module provides a simple in-process event dispatcher. The deployment
lifecycle publishes status changes and swallowed faults here; handlers decide
what to do with them (log, alert, forward to an external sink). A failing
handler is logged and never affects the publisher.
"""
import logging
import traceback
from typing import Callable, Dict, List, Any, Optional, Type
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

logger = logging.getLogger(__name__)


# =============================================================================
# Base Event Classes
# =============================================================================

@dataclass
class DomainEvent:
    """Base class for all domain events."""
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def event_type(self) -> str:
        """Return the event type name."""
        return self.__class__.__name__


# =============================================================================
# Deployment Events
# =============================================================================

@dataclass
class DeploymentCreatedEvent(DomainEvent):
    """Emitted when a deployment is submitted and persisted."""
    deployment_id: UUID = None
    user_id: UUID = None
    platform: str = None
    source_type: str = None


@dataclass
class DeploymentStatusChangedEvent(DomainEvent):
    """Emitted when a deployment status changes."""
    deployment_id: UUID = None
    old_status: str = None
    new_status: str = None


@dataclass
class DeploymentFaultEvent(DomainEvent):
    """Emitted when the lifecycle swallows an unexpected fault."""
    deployment_id: Optional[UUID] = None
    stage: str = None
    error: str = None
    error_type: str = None
    traceback: Optional[str] = None


# =============================================================================
# Event Dispatcher
# =============================================================================

class EventDispatcher:
    """
    Simple in-process event dispatcher.

    Handlers are registered per event type and called synchronously
    when events are dispatched.
    """

    def __init__(self):
        self._handlers: Dict[Type[DomainEvent], List[Callable]] = {}

    def register(
        self,
        event_type: Type[DomainEvent],
        handler: Callable[[DomainEvent], Any],
    ) -> None:
        """
        Register a handler for an event type.

        Args:
            event_type: The event class to handle
            handler: Callable that takes the event as argument
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)
        logger.debug(f"Registered handler {handler.__name__} for {event_type.__name__}")

    def unregister(
        self,
        event_type: Type[DomainEvent],
        handler: Callable[[DomainEvent], Any],
    ) -> None:
        """
        Unregister a handler for an event type.

        Args:
            event_type: The event class
            handler: The handler to remove
        """
        if event_type in self._handlers:
            self._handlers[event_type] = [
                h for h in self._handlers[event_type] if h != handler
            ]

    def dispatch(self, event: DomainEvent) -> None:
        """
        Dispatch an event to all registered handlers.

        Args:
            event: The event to dispatch
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type, [])

        logger.debug(f"Dispatching {event_type.__name__} to {len(handlers)} handlers")

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Handler {handler.__name__} failed for {event_type.__name__}: {e}"
                )

    def clear(self) -> None:
        """Clear all registered handlers."""
        self._handlers.clear()


# Global event dispatcher instance
event_dispatcher = EventDispatcher()


def handles(event_type: Type[DomainEvent]):
    """
    Decorator to register a function as an event handler.

    Example:
        @handles(DeploymentStatusChangedEvent)
        def on_status_changed(event: DeploymentStatusChangedEvent):
            ...
    """
    def decorator(func: Callable):
        event_dispatcher.register(event_type, func)
        return func
    return decorator


def report_fault(deployment_id: Optional[UUID], stage: str, exc: BaseException) -> None:
    """
    Report a fault that is about to be swallowed.

    Never raises: reporting must not be able to turn a contained fault
    into a crash of the worker.
    """
    try:
        event_dispatcher.dispatch(
            DeploymentFaultEvent(
                deployment_id=deployment_id,
                stage=stage,
                error=str(exc),
                error_type=type(exc).__name__,
                traceback="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            )
        )
    except Exception as e:
        logger.error(f"Could not report fault for deployment {deployment_id} ({stage}): {e}")
