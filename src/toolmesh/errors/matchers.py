"""Error matchers for converting exceptions to MeshErrors."""

import asyncio
from typing import Any

from .errors import ErrorMatcher, MatchResult


class TimeoutErrorMatcher(ErrorMatcher):
    """Matches timeout errors."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, (asyncio.TimeoutError, TimeoutError))

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="TOOL_TIMEOUT",
            context={"timeout_ms": "unknown"},
            retryable=True,
        )


class ConnectionErrorMatcher(ErrorMatcher):
    """Matches transport-level failures (refused sockets, missing executables)."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, (ConnectionError, OSError))

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="CONNECTION_FAILED",
            context={"detail": str(error), "error_type": type(error).__name__},
        )


class GenericErrorMatcher(ErrorMatcher):
    """Fallback matcher for any exception.

    Errors raised by a tool are surfaced with their own message.
    """

    def matches(self, error: Exception) -> bool:
        return True

    def extract(self, error: Exception) -> MatchResult:
        context: dict[str, Any] = {
            "message": str(error) or type(error).__name__,
            "error_type": type(error).__name__,
        }
        return MatchResult(code="TOOL_FAILED", context=context, retryable=False)


class ErrorMatcherChain:
    """Ordered chain of matchers. First match wins."""

    def __init__(self) -> None:
        """Initialize matcher chain with built-in matchers."""
        self.matchers: list[ErrorMatcher] = []
        self._load_builtin_matchers()

    def match(self, error: Exception) -> MatchResult:
        """Find first matching matcher and extract result.

        Args:
            error: Exception to match

        Returns:
            MatchResult from first matching matcher
        """
        for matcher in self.matchers:
            if matcher.matches(error):
                return matcher.extract(error)

        return MatchResult(code="INTERNAL_ERROR", context={"detail": str(error)})

    def _load_builtin_matchers(self) -> None:
        """Load built-in matchers in priority order."""
        # TimeoutError is an OSError subclass, so it must come first
        self.matchers = [
            TimeoutErrorMatcher(),
            ConnectionErrorMatcher(),
            GenericErrorMatcher(),  # Fallback - must be last
        ]


