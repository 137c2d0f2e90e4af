"""
kube_assistant/llms/model_invoker.py

The capability the orchestrator needs from a chat model.
"""

from typing import Any, Protocol, runtime_checkable

from kube_assistant.data_models.llms.interaction import LLMChatResponse


@runtime_checkable
class ModelInvoker(Protocol):
    """
    One model round: messages in, text and/or tool calls out.

    `messages` are the provider-neutral dicts produced by
    ConversationHistory.prepare_for_model(). `tools` are function definitions
    ({"name", "description", "parameters"}); an empty list means plain completion.
    Cancellation is driven by the caller cancelling the awaiting task.
    """

    @property
    def supports_tool_messages(self) -> bool:
        """False when tool results must be folded into assistant text for this provider."""
        ...

    async def invoke(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> LLMChatResponse:
        ...
