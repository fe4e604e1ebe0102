from __future__ import annotations


class DocuChatError(Exception):
    """Base error for request-level failures.

    Attributes:
        message: Human-readable text, safe to show in the chat UI
        status_code: HTTP status the endpoint maps this error to
    """

    status_code = 500
    error_type = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DocuChatError):
    status_code = 400
    error_type = "validation_error"


class IngestionError(DocuChatError):
    status_code = 400
    error_type = "ingestion_error"


class DuplicateToolError(DocuChatError):
    error_type = "duplicate_tool"

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool already registered: {tool_name}")
        self.tool_name = tool_name


class ToolNotFoundError(DocuChatError):
    error_type = "tool_not_found"

    def __init__(self, tool_name: str) -> None:
        super().__init__(f'Unknown tool "{tool_name}"')
        self.tool_name = tool_name


class SchemaValidationError(DocuChatError):
    """Tool arguments did not match the tool's input schema. The tool was not invoked."""

    status_code = 400
    error_type = "schema_validation_error"

    def __init__(self, tool_name: str, details: str) -> None:
        super().__init__(f'Invalid arguments for tool "{tool_name}": {details}')
        self.tool_name = tool_name
        self.details = details


class ToolExecutionError(DocuChatError):
    """A tool's external dependency failed.

    Raised inside tools and converted to a text result at the registry boundary.
    """

    error_type = "tool_execution_error"


class CalendarNotConnectedError(ToolExecutionError):
    def __init__(self) -> None:
        super().__init__("User not authenticated. Please connect your Google Calendar first.")


class ModelInvocationError(DocuChatError):
    error_type = "model_invocation_error"

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        upstream_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_message = upstream_message


class RateLimitOrPayloadTooLargeError(ModelInvocationError):
    status_code = 429
    error_type = "rate_limit_or_payload_too_large"


class OrchestrationLimitError(DocuChatError):
    error_type = "orchestration_limit"

    def __init__(self, max_cycles: int, partial_answer: str | None = None) -> None:
        super().__init__(f"Stopped after {max_cycles} model/tool cycles without a final answer")
        self.max_cycles = max_cycles
        self.partial_answer = partial_answer


class OrchestrationTimeoutError(DocuChatError):
    status_code = 504
    error_type = "orchestration_timeout"

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Request did not complete within {timeout_seconds:g} seconds")
        self.timeout_seconds = timeout_seconds
