"""
Custom exception hierarchy for domain-specific errors.

This module provides a clean separation between domain errors and HTTP concerns.
Services raise domain exceptions, and the exception handlers registered in main.py
map them to HTTP responses.
"""
from typing import Optional, Dict, Any


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# Not Found Errors (404)
# =============================================================================

class NotFoundError(DomainException):
    """Base class for resource not found errors."""
    pass


class DeploymentNotFoundError(NotFoundError):
    """Deployment does not exist (or is not visible to the caller)."""

    def __init__(self, identifier: str):
        super().__init__(f"Deployment not found: {identifier}", {"identifier": identifier})


class UserNotFoundError(NotFoundError):
    """User does not exist."""

    def __init__(self, identifier: str):
        super().__init__(f"User not found: {identifier}", {"identifier": identifier})


class ArtifactNotFoundError(NotFoundError):
    """Stored archive does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Artifact not found: {path}", {"path": path})


# =============================================================================
# Conflict Errors (409)
# =============================================================================

class AlreadyExistsError(DomainException):
    """Base class for resource already exists errors."""
    pass


class UserAlreadyExistsError(AlreadyExistsError):
    """User with this email already exists."""

    def __init__(self, email: str):
        super().__init__(f"User already exists: {email}", {"email": email})


# =============================================================================
# Validation Errors (400)
# =============================================================================

class ValidationError(DomainException):
    """Base class for validation errors."""
    pass


class InvalidFieldError(ValidationError):
    """A submitted field failed validation."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(reason, {"field": field})


# =============================================================================
# Authorization Errors (401)
# =============================================================================

class AuthorizationError(DomainException):
    """
    Base class for authorization errors.

    Always reported to the caller as a generic "Unauthorized".
    """

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class MissingCredentialsError(AuthorizationError):
    """No API key was presented."""

    def __init__(self):
        super().__init__("No API key provided")


class InvalidCredentialsError(AuthorizationError):
    """API key is unknown, malformed, revoked or belongs to an inactive user."""

    def __init__(self, reason: str = "Invalid API key"):
        super().__init__(reason)


# =============================================================================
# Operation Errors (500)
# =============================================================================

class OperationError(DomainException):
    """Base class for operation failures."""
    pass


class StorageError(OperationError):
    """Artifact storage operation failed."""

    def __init__(self, operation: str, reason: str):
        super().__init__(f"Storage error during {operation}: {reason}", {"operation": operation, "reason": reason})


class PersistenceError(OperationError):
    """Record store operation failed."""

    def __init__(self, operation: str, reason: str):
        super().__init__(f"Database error during {operation}: {reason}", {"operation": operation, "reason": reason})


class AdapterError(OperationError):
    """
    Platform adapter reported an explicit publish failure.

    The reason is user-facing: it becomes the deployment's error_message.
    """

    def __init__(self, platform: str, reason: str):
        self.platform = platform
        self.reason = reason
        super().__init__(f"{platform}: {reason}", {"platform": platform, "reason": reason})


