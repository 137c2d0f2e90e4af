"""
kube_assistant/data_models/approval.py

Data models for human approval of tool calls.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from kube_assistant.data_models.tools import ToolCall


class ApprovalState(StrEnum):
    """State of the approval gate."""
    IDLE = "idle"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    DENIED = "denied"


class SessionPolicy(BaseModel):
    """Auto-approval choices remembered for the lifetime of one conversation session."""
    session_auto_approve: bool = False
    per_tool_auto_approve: set[str] = Field(default_factory=set)

    def is_auto_approved(self, tool_name: str) -> bool:
        return self.session_auto_approve or tool_name in self.per_tool_auto_approve

    def clear(self) -> None:
        self.session_auto_approve = False
        self.per_tool_auto_approve = set()


class ApprovalContext(BaseModel):
    """Contextual snapshot shown next to a pending approval request."""
    user_message: str | None = None
    conversation_history: list[dict[str, str]] = Field(default_factory=list)
    kubernetes_context: dict[str, Any] | None = None


class ApprovalRequest(BaseModel):
    """A batch of tool calls waiting for a human decision."""
    request_id: str
    tool_calls: list[ToolCall]
    context: ApprovalContext = Field(default_factory=ApprovalContext)

    @property
    def tool_call_ids(self) -> list[str]:
        return [tool_call.id for tool_call in self.tool_calls]
