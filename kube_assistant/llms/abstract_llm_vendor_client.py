"""
kube_assistant/llms/abstract_llm_vendor_client.py

Abstract base class for LLM vendor clients.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from kube_assistant.data_models.llms.interaction import LLMChatResponse
from kube_assistant.data_models.llms.vendors import LLMModel, LLMVendor


class AbstractLLMVendorClient(ABC):
    """
    Abstract base class defining the interface for LLM vendor clients.

    Each concrete client declares the vendor it serves through `_vendor`;
    `get_llm_vendor_client` picks the matching subclass for a model.
    """

    # Class attributes ____________________________________________________________________________________________________

    _vendor: ClassVar[LLMVendor]
    DEFAULT_MAX_TOKENS: ClassVar[int] = 4_096
    DEFAULT_TEMPERATURE: ClassVar[float] = 0.2

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, "_vendor"):
            raise TypeError(f"{cls.__name__} must define _vendor class attribute")

    @classmethod
    def get_llm_vendor_client(cls, model: LLMModel) -> AbstractLLMVendorClient:
        """Create the appropriate vendor client for the given model."""
        for subclass in cls.__subclasses__():
            if subclass._vendor == model.vendor:
                return subclass(model=model)
        raise ValueError(f"No client found for vendor: {model.vendor}")

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, model: LLMModel) -> None:
        """
        Initialize the vendor client.

        Args:
            model: The LLM model to use.
        """
        self.model = model
        self._tools: list[dict[str, Any]] = []

    # Protected methods ____________________________________________________________________________________________________

    def _resolve_max_tokens(self, max_tokens: int | None) -> int:
        """Resolve max_tokens, using default if None."""
        return max_tokens if max_tokens is not None else self.DEFAULT_MAX_TOKENS

    def _resolve_temperature(self, temperature: float | None) -> float:
        """Resolve temperature, using default if None."""
        return temperature if temperature is not None else self.DEFAULT_TEMPERATURE

    # Tool management ______________________________________________________________________________________________________

    @abstractmethod
    def register_tool(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any],
    ) -> None:
        """
        Register a tool for function calling.

        Args:
            name: The name of the tool/function.
            description: Description of what the tool does.
            parameters: JSON Schema describing the tool's parameters.
        """
        pass

    def clear_tools(self) -> None:
        """Clear all registered tools."""
        self._tools = []

    @property
    def tools(self) -> list[dict[str, Any]]:
        """Return the list of registered tools."""
        return self._tools

    # Unified API methods __________________________________________________________________________________________________

    @abstractmethod
    async def call_async(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tool_choice: str | None = None,
    ) -> LLMChatResponse:
        """
        Unified async call to the LLM.

        Args:
            messages: Provider-neutral message dicts ('role', 'content', and for
                tool rounds 'tool_calls' / 'tool_call_id').
            system_prompt: Optional system prompt for context.
            max_tokens: Maximum tokens in the response.
            temperature: Sampling temperature (0.0-1.0).
            tool_choice: Tool selection mode ("auto", "none", "required", or specific tool).

        Returns:
            LLMChatResponse with content and/or tool calls.
        """
        pass
