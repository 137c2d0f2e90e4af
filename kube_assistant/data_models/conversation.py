"""
kube_assistant/data_models/conversation.py

Typed entries of a conversation history.

Contains:
- ToolCallRef: a tool call requested by the model (ID, name, arguments)
- UserEntry, AssistantEntry, ToolEntry, SystemEntry: the Entry union
- ENTRY_LIST_ADAPTER: validation and JSON dumping of whole histories
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ToolCallRef(BaseModel):
    """
    A single tool call requested by the model.

    `arguments` is the JSON object produced by the model. A raw string is kept
    as-is when the provider returned arguments that could not be decoded, so the
    orchestrator can fail that one call.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Call ID, unique within its batch")
    name: str = Field(description="Name of the requested tool")
    arguments: dict[str, Any] | str = Field(default_factory=dict)


class _BaseEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str = ""


class UserEntry(_BaseEntry):
    """A message typed by the user."""
    role: Literal["user"] = "user"


class AssistantEntry(_BaseEntry):
    """
    A message authored by the assistant.

    Carries the tool calls requested in the same model round, if any. Entries with
    `is_display_only` are rendered by the UI but never sent to the model.
    """
    role: Literal["assistant"] = "assistant"
    tool_calls: list[ToolCallRef] = Field(default_factory=list)
    error: bool = False
    is_display_only: bool = False

    @property
    def tool_call_ids(self) -> list[str]:
        return [tool_call.id for tool_call in self.tool_calls]


class ToolEntry(_BaseEntry):
    """
    The recorded response to one tool call.

    `is_deferred` marks a placeholder for a call whose outcome is decided later
    (e.g. a write awaiting the user's confirmation); it is replaced once recorded.
    """
    role: Literal["tool"] = "tool"
    tool_call_id: str
    name: str
    success: bool | None = None
    error: bool = False
    is_deferred: bool = False


class SystemEntry(_BaseEntry):
    """A corrective or error-alert notice injected by the orchestrator."""
    role: Literal["system"] = "system"
    name: str | None = None


Entry = Annotated[
    Union[UserEntry, AssistantEntry, ToolEntry, SystemEntry],
    Field(discriminator="role"),
]

ENTRY_LIST_ADAPTER: TypeAdapter[list[Entry]] = TypeAdapter(list[Entry])
