"""
Timeline Exceptions - Error taxonomy for the timeline pipeline.

Partial data is never returned: any of these raised inside a request
aborts the whole derivation for that request.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class TimelineError(Exception):
    """Base exception for all timeline pipeline errors."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class InvalidInput(TimelineError):
    """Neither a usable wallet nor any contract address was supplied."""


class ResolutionFailed(TimelineError):
    """No resolver endpoint produced a valid address for a name."""

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        attempted: Optional[list[str]] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, original_error, context)
        self.name = name
        self.attempted = attempted or []

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "name": self.name,
            "attempted": self.attempted,
        })
        return data


class UpstreamError(TimelineError):
    """Non-transient or retry-exhausted failure from the data provider."""

    MAX_BODY_LENGTH = 500

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, original_error, context)
        self.status = status
        self.body = body[: self.MAX_BODY_LENGTH] if body else body
        self.url = url

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "status": self.status,
            "body": self.body,
            "url": self.url,
        })
        return data

    def __str__(self) -> str:
        text = super().__str__()
        if self.status is not None:
            text = f"{text} [status={self.status}]"
        if self.body:
            text = f"{text} {self.body}"
        return text


class ConfigurationError(TimelineError):
    """Invalid or missing pipeline configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, original_error, context)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data
