"""
kube_assistant/data_models/tools.py

Runtime tool data models.

Contains:
- ToolType: built-in vs external (MCP) tools
- ToolCall: a ToolCallRef enriched for approval and execution
- ToolResult: the normalized outcome of a single tool execution
- KubernetesToolContext: ambient cluster context passed to tool executions
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kube_assistant.data_models.conversation import ToolCallRef


class ToolType(StrEnum):
    """Where a tool comes from."""
    BUILTIN = "builtin"     # shipped with the assistant (e.g. kubernetes_api_request)
    EXTERNAL = "external"   # provided by an external tool server (MCP)


class ToolCall(ToolCallRef):
    """A tool call as seen by the approval gate and the executor."""
    type: ToolType = ToolType.BUILTIN
    description: str | None = None

    @classmethod
    def from_ref(
        cls,
        ref: ToolCallRef,
        tool_type: ToolType,
        description: str | None = None,
        arguments: dict[str, Any] | str | None = None,
    ) -> "ToolCall":
        """Build a runtime ToolCall from the ref recorded in history."""
        return cls(
            id=ref.id,
            name=ref.name,
            arguments=ref.arguments if arguments is None else arguments,
            type=tool_type,
            description=description,
        )


class ToolResult(BaseModel):
    """
    Normalized result of one tool execution.

    `is_error` marks logical failures detected in an otherwise successful response
    (e.g. an upstream API returning an error payload with HTTP 200).
    """
    content: str
    should_add_to_history: bool = True
    should_process_follow_up: bool = True
    is_error: bool = False
    error_message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class KubernetesToolContext(BaseModel):
    """
    Cluster context the host UI hands to tool executions.

    Only the API server location and credentials are needed to execute requests;
    the remaining fields are informational and surface in approval requests.
    """
    model_config = ConfigDict(frozen=True)

    api_server: str | None = Field(default=None, description="Base URL of the Kubernetes API server")
    token: str | None = Field(default=None, description="Bearer token for the API server", repr=False)
    verify_ssl: bool = True
    timeout: float = 30.0
    selected_clusters: list[str] = Field(default_factory=list)
    namespace: str | None = None
    current_resource: str | None = None

    def summary(self) -> dict[str, Any]:
        """Return the non-secret parts of the context for approval snapshots."""
        return {
            "selected_clusters": list(self.selected_clusters),
            "namespace": self.namespace,
            "current_resource": self.current_resource,
        }
