"""
kube_assistant/data_models/llms/interaction.py

Data models exchanged with LLM vendor clients and emitted to the host UI.

Contains:
- LLMToolCall, LLMChatResponse: what a model round returns
- EmittedMessage union: notifications pushed to the host while a turn runs
"""

from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from kube_assistant.data_models.approval import ApprovalRequest
from kube_assistant.data_models.conversation import ToolCallRef


class LLMToolCall(BaseModel):
    """A tool call as returned by a vendor client."""
    tool_name: str
    tool_arguments: dict[str, Any] | str = Field(default_factory=dict)
    call_id: str | None = None


class LLMChatResponse(BaseModel):
    """Normalized response of one model invocation."""
    content: str | None = None
    tool_calls: list[LLMToolCall] = Field(default_factory=list)


class EmittedMessageType(StrEnum):
    """Kinds of messages the orchestrator emits to the host."""
    CHAT_RESPONSE = "chat_response"
    TOOL_APPROVAL_REQUEST = "tool_approval_request"
    TOOL_INVOCATION_RESULT = "tool_invocation_result"
    ERROR = "error"


class ChatResponseEmittedMessage(BaseModel):
    """An assistant message was added to the history."""
    type: Literal[EmittedMessageType.CHAT_RESPONSE] = EmittedMessageType.CHAT_RESPONSE
    content: str
    is_error: bool = False


class ToolApprovalRequestEmittedMessage(BaseModel):
    """The turn is suspended until the human decides on a batch of tool calls."""
    type: Literal[EmittedMessageType.TOOL_APPROVAL_REQUEST] = EmittedMessageType.TOOL_APPROVAL_REQUEST
    request: ApprovalRequest


class ToolInvocationResultEmittedMessage(BaseModel):
    """A tool call finished executing."""
    type: Literal[EmittedMessageType.TOOL_INVOCATION_RESULT] = EmittedMessageType.TOOL_INVOCATION_RESULT
    tool_call: ToolCallRef
    content: str
    is_error: bool = False


class ErrorEmittedMessage(BaseModel):
    """A turn ended with an error."""
    type: Literal[EmittedMessageType.ERROR] = EmittedMessageType.ERROR
    error: str
    category: str | None = None


EmittedMessage = Annotated[
    Union[
        ChatResponseEmittedMessage,
        ToolApprovalRequestEmittedMessage,
        ToolInvocationResultEmittedMessage,
        ErrorEmittedMessage,
    ],
    Field(discriminator="type"),
]
