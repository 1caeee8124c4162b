"""toolmesh error types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error source categories."""

    TOOL = "TOOL"
    CONNECTION = "CONNECTION"
    VALIDATION = "VALIDATION"
    SYSTEM = "SYSTEM"


@dataclass
class MeshError(Exception):
    """Structured error with context. Base exception for all toolmesh errors."""

    # Identity
    code: str  # e.g., "SERVER_NOT_FOUND"
    category: ErrorCategory

    # Messages
    message: str  # Human-readable summary
    detail: str | None = None  # Extended explanation
    suggestion: str | None = None  # Actionable fix

    # Context
    retryable: bool = False
    server_name: str | None = None
    tool_name: str | None = None

    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Set Exception message."""
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses.

        Returns:
            Dictionary representation of the error
        """
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "detail": self.detail,
            "suggestion": self.suggestion,
            "retryable": self.retryable,
            "server_name": self.server_name,
            "tool_name": self.tool_name,
            "timestamp": self.timestamp.isoformat(),
        }

    def with_context(
        self,
        server_name: str | None = None,
        tool_name: str | None = None,
    ) -> "MeshError":
        """Return copy with additional context.

        Args:
            server_name: Optional server name
            tool_name: Optional tool name

        Returns:
            New MeshError instance with updated context
        """
        return MeshError(
            code=self.code,
            category=self.category,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            retryable=self.retryable,
            server_name=server_name or self.server_name,
            tool_name=tool_name or self.tool_name,
            timestamp=self.timestamp,
        )


@dataclass
class ErrorTemplate:
    """Template for creating errors."""

    code: str
    category: ErrorCategory
    message_template: str  # "Server not found: {server_name}"
    detail_template: str | None = None
    suggestion_template: str | None = None
    default_retryable: bool = False


@dataclass
class MatchResult:
    """Result of matching an exception."""

    code: str
    context: dict[str, Any]
    retryable: bool | None = None  # None = use template default


class ErrorMatcher(ABC):
    """Base class for exception matchers."""

    @abstractmethod
    def matches(self, error: Exception) -> bool:
        """Check if this matcher handles the error."""

    @abstractmethod
    def extract(self, error: Exception) -> MatchResult:
        """Extract error code and context from the exception."""
