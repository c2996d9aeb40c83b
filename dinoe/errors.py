"""
Error Taxonomy
==============

Every failure the runtime knows about is one of four exception families,
each tagged with a `kind`:

    ProviderError   the model backend failed; ends the turn
    ToolError       a tool failed; becomes a failure result for the model
    ProtocolError   the model sent something structurally invalid
    AgentError      the loop itself refused or gave up

Callers branch on `kind`, not on message text:

    try:
        answer = await agent.run("hello")
    except ProviderError as e:
        if e.kind is ProviderErrorKind.AUTH:
            ...
"""

from enum import Enum


class ProviderErrorKind(str, Enum):
    NETWORK = "network"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    MALFORMED_RESPONSE = "malformed_response"
    INCOMPLETE_STREAM = "incomplete_stream"


class ToolErrorKind(str, Enum):
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"
    TIMEOUT = "timeout"
    SPAWN_ERROR = "spawn_error"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    NOT_UTF8 = "not_utf8"


class ProtocolErrorKind(str, Enum):
    MALFORMED_TOOL_ARGUMENTS = "malformed_tool_arguments"


class AgentErrorKind(str, Enum):
    ITERATION_LIMIT_REACHED = "iteration_limit_reached"
    BUSY = "busy"


class DinoeError(Exception):
    """Base class for all runtime errors."""

    def __init__(self, kind: Enum, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return self.message


class ProviderError(DinoeError):
    """The model backend could not produce a usable response."""

    def __init__(self, kind: ProviderErrorKind, message: str):
        super().__init__(kind, message)


class ToolError(DinoeError):
    """A tool could not be found, validated or executed."""

    def __init__(self, kind: ToolErrorKind, message: str):
        super().__init__(kind, message)


class ProtocolError(DinoeError):
    """Structurally invalid model output (e.g. tool arguments that are not JSON)."""

    def __init__(self, kind: ProtocolErrorKind, message: str):
        super().__init__(kind, message)


class AgentError(DinoeError):
    """The agent loop refused a request or could not complete it."""

    def __init__(self, kind: AgentErrorKind, message: str):
        super().__init__(kind, message)


class AgentBusyError(AgentError):
    """run() was called while another turn on the same agent was in progress."""

    def __init__(self, message: str = "A turn is already in progress on this agent"):
        super().__init__(AgentErrorKind.BUSY, message)
