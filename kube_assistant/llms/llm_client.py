"""
kube_assistant/llms/llm_client.py

Vendor-agnostic model client used by the orchestrator.
"""

from typing import Any

import anthropic
import openai

from kube_assistant.data_models.llms.interaction import LLMChatResponse
from kube_assistant.data_models.llms.vendors import LLMModel, get_model_by_value
# vendor modules must be imported so their clients register as subclasses
from kube_assistant.llms import anthropic_client, openai_client  # noqa: F401
from kube_assistant.llms.abstract_llm_vendor_client import AbstractLLMVendorClient
from kube_assistant.utils.exceptions import ModelInvocationError
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


class LLMClient:
    """
    ModelInvoker backed by one vendor client.

    The vendor client is picked from the model's vendor at construction time.
    Tools are re-registered on every invocation so the bound set always matches
    the orchestrator's currently enabled tools.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, llm_model: LLMModel) -> None:
        self.llm_model = llm_model
        self._vendor_client = AbstractLLMVendorClient.get_llm_vendor_client(llm_model)
        logger.info("LLMClient ready: model=%s vendor=%s", llm_model.value, llm_model.vendor)

    def __repr__(self) -> str:
        return f"LLMClient(model={self.llm_model.value!r})"

    # Public methods _______________________________________________________________________________________________________

    @classmethod
    def from_model_name(cls, model_name: str) -> "LLMClient":
        """Build a client from a model value string such as "gpt-5.1"."""
        model = get_model_by_value(model_name)
        if model is None:
            raise ValueError(f"Unknown model: {model_name}")
        return cls(model)

    @property
    def supports_tool_messages(self) -> bool:
        return self.llm_model.vendor.supports_tool_messages

    async def invoke(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> LLMChatResponse:
        """
        Run one model round.

        Args:
            messages: Provider-neutral message dicts.
            system_prompt: System prompt for this round.
            tools: Function definitions to bind; None or empty for plain completion.

        Returns:
            The normalized chat response.

        Raises:
            ModelInvocationError: If the provider SDK reports a failure; carries the
                provider's HTTP status code when there is one.
        """
        self._vendor_client.clear_tools()
        for tool in tools or []:
            self._vendor_client.register_tool(
                name=tool["name"],
                description=tool.get("description", ""),
                parameters=tool.get("parameters", {"type": "object", "properties": {}}),
            )

        logger.debug("Invoking %s with %d messages and %d tools", self.llm_model.value, len(messages), len(tools or []))
        try:
            return await self._vendor_client.call_async(
                messages=messages,
                system_prompt=system_prompt,
                tool_choice="auto" if tools else None,
            )
        except (openai.APIError, anthropic.APIError) as e:
            status_code = getattr(e, "status_code", None)
            logger.debug("%s invocation failed (status=%s): %s", self.llm_model.value, status_code, e)
            raise ModelInvocationError(str(e), status_code=status_code) from e
