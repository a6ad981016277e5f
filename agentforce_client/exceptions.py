"""
Custom exceptions for the Agentforce agent client.

This module defines a hierarchy of domain-specific exceptions that provide
clear error context and enable appropriate retry decisions.

Exception Hierarchy:
    AgentforceError (base)
    ├── MessageValidationError - Bad message text or sequence id (also ValueError)
    ├── AgentforceConfigurationError - Missing agent id or settings
    ├── AgentforceAuthenticationError - Credential exchange / broker failures
    ├── AgentforceSessionError - Session lifecycle failures
    └── AgentforceDispatchError - Message send failures

Every error carries an optional FailureReason and the HTTP status code
(when the failure came from an HTTP response). The retry predicate in
retry.py only looks at these attributes.

Security:
    - Messages never include access tokens or client secrets
    - Errors are designed for safe logging and display to end users
"""

from __future__ import annotations

from ._constants import AuthMode, FailureReason


class AgentforceError(Exception):
    """
    Base exception for all Agentforce client errors.

    Attributes:
        reason: Classification of the failure, None if unclassified.
        status_code: HTTP status of the failing response, None when the
                     failure did not come from an HTTP response.

    Example:
        try:
            stream = await client.send_streaming_message("Hi", 1)
        except AgentforceError as e:
            logger.error(f"Agent call failed: {e}")
    """

    def __init__(
        self,
        message: str,
        reason: FailureReason | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code

    @property
    def is_client_error(self) -> bool:
        """True when the failure came from a 4xx response."""
        return self.status_code is not None and 400 <= self.status_code < 500


class MessageValidationError(AgentforceError, ValueError):
    """
    Raised when a message fails validation before any network call.

    Example:
        raise MessageValidationError("Message text cannot be empty")
    """

    def __init__(self, message: str):
        super().__init__(message)


class AgentforceConfigurationError(AgentforceError):
    """
    Raised when required configuration is missing.

    Example:
        raise AgentforceConfigurationError(
            "No agent ID provided and no default agent configured"
        )
    """

    def __init__(self, message: str):
        super().__init__(message)


class AgentforceAuthenticationError(AgentforceError):
    """
    Raised when a credential provider cannot produce a bearer token.

    Attributes:
        mode: The authentication strategy that failed.
    """

    def __init__(
        self,
        message: str,
        mode: AuthMode,
        reason: FailureReason | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, reason=reason, status_code=status_code)
        self.mode = mode


class AgentforceSessionError(AgentforceError):
    """
    Raised when an agent session cannot be created or ended.

    Example:
        raise AgentforceSessionError(
            "Session creation failed: Agentforce agent not found",
            reason=FailureReason.NOT_FOUND,
            status_code=404,
        )
    """

    pass


class AgentforceDispatchError(AgentforceError):
    """
    Raised when a chat message cannot be delivered to a session.

    Rate limiting is reported here with reason RATE_LIMITED and, when the
    platform sent one, the Retry-After value in seconds.

    Attributes:
        retry_after: Suggested wait in seconds before retrying, or None.
    """

    def __init__(
        self,
        message: str,
        reason: FailureReason | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, reason=reason, status_code=status_code)
        self.retry_after = retry_after
