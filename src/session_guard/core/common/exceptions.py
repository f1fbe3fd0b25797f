"""
Common exception classes for session-guard.

Detected loops and exhausted turn budgets are reported as stream events, not
exceptions. The classes below cover configuration problems and give callers a
typed error to raise when they prefer failing over consuming control events.
"""

from __future__ import annotations


class SessionGuardError(Exception):
    """Base exception class for all session-guard errors."""

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        **kwargs,
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        for key, value in (kwargs or {}).items():
            setattr(self, key, value)

    def to_dict(self) -> dict:
        error_dict = {
            "message": self.message,
            "type": self.__class__.__name__,
            "details": self.details,
        }

        for attr_name in dir(self):
            if (
                not attr_name.startswith("_")
                and attr_name not in ["message", "details", "args"]
                and not callable(getattr(self, attr_name))
            ):
                error_dict[attr_name] = getattr(self, attr_name)

        return {"error": error_dict}


class ConfigurationError(SessionGuardError):
    """Raised when there's a configuration issue."""

    def __init__(
        self,
        message: str = "Configuration error",
        details: dict | None = None,
        **kwargs,
    ):
        super().__init__(message, details, **kwargs)


class LoopDetectionError(SessionGuardError):
    """Raised by callers that turn a loop detection event into a failure."""

    def __init__(
        self,
        message: str = "Loop detected in response",
        details: dict | None = None,
        **kwargs,
    ):
        super().__init__(message, details, **kwargs)


class MaxSessionTurnsError(SessionGuardError):
    """Raised by callers that turn an exhausted turn budget into a failure."""

    def __init__(
        self,
        message: str = "Maximum session turns reached",
        details: dict | None = None,
        **kwargs,
    ):
        super().__init__(message, details, **kwargs)


class ProviderStreamError(SessionGuardError):
    """Raised when a provider stream reports an error event."""

    def __init__(
        self,
        message: str = "Provider stream error",
        provider: str | None = None,
        details: dict | None = None,
        **kwargs,
    ):
        super().__init__(message, details, **kwargs)
        self.provider = provider
