"""
kube_assistant/utils/exceptions.py

Custom exceptions for the project.
"""


class KubeAssistantError(Exception):
    """
    Base class for all kube_assistant errors.
    """
    pass


class CancellationError(KubeAssistantError):
    """
    Raised when the user aborts an in-flight turn.
    """
    pass


class ModelInvocationError(KubeAssistantError):
    """
    Raised when a model round fails for a network or provider reason.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ToolExecutionError(KubeAssistantError):
    """
    Raised by a tool handler when a single tool call cannot be executed.
    """

    def __init__(self, message: str, tool_name: str | None = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class UnknownToolError(ToolExecutionError):
    """
    Raised when a tool call names a tool that is not registered.
    """
    pass


class ToolApprovalDeniedError(KubeAssistantError):
    """
    Raised when the human denies a pending batch of tool calls.
    """
    pass


class ApprovalSupersededError(ToolApprovalDeniedError):
    """
    Raised for a pending approval batch that was replaced by a newer one.
    """
    pass


class TurnInProgressError(KubeAssistantError):
    """
    Raised when a second turn is started on a conversation whose turn is still running.
    """
    pass


class DeferredToolResponseError(KubeAssistantError):
    """
    Raised when a deferred tool response cannot be matched to an unanswered tool call.
    """
    pass
