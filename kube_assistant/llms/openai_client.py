"""
kube_assistant/llms/openai_client.py

OpenAI-specific LLM client implementation using the Responses API.
"""

import json
from typing import Any

from openai import AsyncOpenAI

from kube_assistant.config import Config
from kube_assistant.data_models.llms.interaction import LLMChatResponse, LLMToolCall
from kube_assistant.data_models.llms.vendors import LLMVendor, OpenAIModel
from kube_assistant.llms.abstract_llm_vendor_client import AbstractLLMVendorClient
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


def _decode_arguments(tool_name: str, raw_arguments: Any) -> dict[str, Any] | str:
    """Decode function-call arguments, keeping the raw string if it is not a JSON object."""
    if not isinstance(raw_arguments, str):
        return raw_arguments or {}
    if not raw_arguments.strip():
        return {}
    try:
        decoded = json.loads(raw_arguments)
    except json.JSONDecodeError as e:
        logger.warning("Could not decode arguments for tool %s: %s. Raw args: %s", tool_name, e, raw_arguments[:500])
        return raw_arguments
    if not isinstance(decoded, dict):
        logger.warning("Arguments for tool %s are not a JSON object: %s", tool_name, raw_arguments[:500])
        return raw_arguments
    return decoded


class OpenAIClient(AbstractLLMVendorClient):
    """
    OpenAI-specific LLM client using the Responses API.
    """

    _vendor = LLMVendor.OPENAI

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, model: OpenAIModel) -> None:
        super().__init__(model)
        self._async_client = AsyncOpenAI(api_key=Config.OPENAI_API_KEY)
        logger.debug("Initialized OpenAIClient with model: %s", model)

    # Private methods ______________________________________________________________________________________________________

    def _convert_messages_for_responses_api(
        self,
        messages: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """
        Convert messages to Responses API format.

        - Tool messages (role "tool" with tool_call_id) become function_call_output items
        - Assistant tool_calls become separate function_call items

        Args:
            messages: Provider-neutral messages

        Returns:
            Messages converted to Responses API format
        """
        converted: list[dict[str, Any]] = []
        for msg in messages:
            role = msg.get("role")
            if role == "tool":
                call_id = msg.get("tool_call_id")
                if call_id:
                    converted.append({
                        "type": "function_call_output",
                        "call_id": call_id,
                        "output": msg.get("content", ""),
                    })
                else:
                    logger.warning("Tool message without call_id, converting to user message")
                    converted.append({
                        "role": "user",
                        "content": f"[Tool result]: {msg.get('content', '')}",
                    })
            elif role == "assistant" and msg.get("tool_calls"):
                if msg.get("content"):
                    converted.append({
                        "role": "assistant",
                        "content": msg["content"],
                    })
                for tc in msg["tool_calls"]:
                    arguments = tc.get("arguments", {})
                    converted.append({
                        "type": "function_call",
                        "call_id": tc["call_id"],
                        "name": tc.get("name", ""),
                        "arguments": json.dumps(arguments) if isinstance(arguments, dict) else arguments,
                    })
            else:
                converted.append({k: v for k, v in msg.items() if k != "tool_calls"})
        return converted

    def _build_responses_api_kwargs(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None,
        max_tokens: int | None,
        tool_choice: str | None,
    ) -> dict[str, Any]:
        """Build kwargs for Responses API call."""
        if not messages:
            raise ValueError("At least one message must be provided")

        kwargs: dict[str, Any] = {
            "model": self.model.value,
            "max_output_tokens": self._resolve_max_tokens(max_tokens),
            "input": self._convert_messages_for_responses_api(messages),
        }
        if system_prompt:
            kwargs["instructions"] = system_prompt
        if self._tools:
            kwargs["tools"] = list(self._tools)
            if tool_choice:
                kwargs["tool_choice"] = tool_choice
        return kwargs

    def _parse_responses_api_response(self, response: Any) -> LLMChatResponse:
        """Parse response from Responses API. Reasoning items are not kept."""
        content: str | None = None
        tool_calls: list[LLMToolCall] = []

        for item in response.output or []:
            if item.type == "message" and getattr(item, "content", None):
                text_parts = [block.text for block in item.content if block.type == "output_text"]
                if text_parts:
                    content = "".join(text_parts)

            elif item.type == "function_call":
                tool_calls.append(LLMToolCall(
                    tool_name=item.name,
                    tool_arguments=_decode_arguments(item.name, item.arguments),
                    call_id=getattr(item, "call_id", None),
                ))

        return LLMChatResponse(content=content, tool_calls=tool_calls)

    # Public methods _______________________________________________________________________________________________________

    ## Tool management

    def register_tool(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any],
    ) -> None:
        """Register a tool in the Responses API function format."""
        logger.debug("Registering OpenAI tool: %s", name)
        self._tools.append({
            "type": "function",
            "name": name,
            "description": description,
            "parameters": parameters,
        })

    ## Unified API methods

    async def call_async(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,  # noqa: ARG002 - not accepted by reasoning models
        tool_choice: str | None = None,
    ) -> LLMChatResponse:
        """
        Async call to OpenAI using the Responses API.

        Args:
            messages: Provider-neutral message dicts.
            system_prompt: Optional system prompt, sent as `instructions`.
            max_tokens: Maximum tokens in the response.
            temperature: Ignored.
            tool_choice: Tool choice for the API call (e.g., "auto", "required", or specific tool).

        Returns:
            LLMChatResponse.
        """
        kwargs = self._build_responses_api_kwargs(messages, system_prompt, max_tokens, tool_choice)
        response = await self._async_client.responses.create(**kwargs)
        return self._parse_responses_api_response(response)
