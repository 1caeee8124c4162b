"""Error factory for creating MeshErrors from any exception type."""

from typing import Any

from .errors import MeshError
from .matchers import ErrorMatcherChain
from .registry import ErrorRegistry


class ErrorFactory:
    """Creates MeshErrors from any exception type."""

    def __init__(
        self,
        registry: ErrorRegistry | None = None,
        matcher_chain: ErrorMatcherChain | None = None,
    ):
        """Initialize error factory.

        Args:
            registry: Error registry (defaults to new ErrorRegistry())
            matcher_chain: Matcher chain (defaults to new ErrorMatcherChain())
        """
        self.registry = registry or ErrorRegistry()
        self.matcher_chain = matcher_chain or ErrorMatcherChain()

    def from_exception(
        self,
        error: Exception,
        server_name: str | None = None,
        tool_name: str | None = None,
    ) -> MeshError:
        """Convert any exception to MeshError.

        Args:
            error: Exception to convert
            server_name: Optional server name
            tool_name: Optional tool name

        Returns:
            MeshError instance
        """
        if isinstance(error, MeshError):
            return error.with_context(server_name=server_name, tool_name=tool_name)

        match_result = self.matcher_chain.match(error)

        context = match_result.context.copy()
        if server_name:
            context["server_name"] = server_name
        if tool_name:
            context["tool_name"] = tool_name

        mesh_error = self.registry.create(code=match_result.code, context=context)

        if match_result.retryable is not None:
            mesh_error.retryable = match_result.retryable

        return mesh_error

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> MeshError:
        """Create MeshError directly from code.

        Args:
            code: Error code
            context: Context variables for template interpolation
            **kwargs: Additional context variables

        Returns:
            MeshError instance
        """
        merged_context = dict(context or {})
        merged_context.update(kwargs)

        return self.registry.create(code=code, context=merged_context)


# Convenience singleton
_default_factory: ErrorFactory | None = None


def get_error_factory() -> ErrorFactory:
    """Get default error factory singleton."""
    global _default_factory  # noqa: PLW0603
    if _default_factory is None:
        _default_factory = ErrorFactory()
    return _default_factory


def create_error(code: str, **context: Any) -> MeshError:
    """Convenience function to create error.

    Args:
        code: Error code
        **context: Context variables for template interpolation

    Returns:
        MeshError instance
    """
    return get_error_factory().create(code, context)


def describe_exception(error: BaseException) -> str:
    """One-line description of any exception for status fields and tool results."""
    if isinstance(error, MeshError):
        return f"{error.message}: {error.detail}" if error.detail else error.message
    return str(error) or type(error).__name__
