"""
kube_assistant/llms/anthropic_client.py

Anthropic-specific LLM client implementation using the Messages API.
"""

from typing import Any

from anthropic import AsyncAnthropic

from kube_assistant.config import Config
from kube_assistant.data_models.llms.interaction import LLMChatResponse, LLMToolCall
from kube_assistant.data_models.llms.vendors import AnthropicModel, LLMVendor
from kube_assistant.llms.abstract_llm_vendor_client import AbstractLLMVendorClient
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


def _clean_schema_for_anthropic(schema: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively clean a JSON schema for Anthropic's tool parameters.
    Removes '$defs' and resolves local $ref references.
    """
    schema = schema.copy()
    defs = schema.pop("$defs", {})

    def resolve_refs(obj: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(obj, dict):
            return obj

        obj = obj.copy()
        if "$ref" in obj:
            ref_path = obj["$ref"]
            if ref_path.startswith("#/$defs/"):
                def_name = ref_path[len("#/$defs/"):]
                if def_name in defs:
                    return resolve_refs(defs[def_name].copy())
            return {"type": "object"}

        if "properties" in obj:
            obj["properties"] = {k: resolve_refs(v) for k, v in obj["properties"].items()}
        if "items" in obj:
            obj["items"] = resolve_refs(obj["items"])
        for key in ("anyOf", "oneOf", "allOf"):
            if key in obj:
                obj[key] = [resolve_refs(s) for s in obj[key]]
        return obj

    resolved = resolve_refs(schema)
    resolved.setdefault("type", "object")
    return resolved


class AnthropicClient(AbstractLLMVendorClient):
    """
    Anthropic-specific LLM client using the Messages API.

    Tool results normally reach this client folded into assistant text (see
    LLMVendor.supports_tool_messages), but native tool messages are converted too.
    """

    _vendor = LLMVendor.ANTHROPIC

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, model: AnthropicModel) -> None:
        super().__init__(model)
        self._async_client = AsyncAnthropic(api_key=Config.ANTHROPIC_API_KEY)
        logger.debug("Initialized AnthropicClient with model: %s", model)

    # Private methods ______________________________________________________________________________________________________

    def _convert_messages_for_anthropic(
        self,
        messages: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """
        Convert messages from generic format to Anthropic Messages API format.

        Handles:
        - System messages are filtered out (passed separately to API)
        - Assistant messages with tool_calls become content with tool_use blocks
        - Tool role messages become user messages with tool_result content
        - Consecutive messages of the same role are merged into one turn

        Args:
            messages: Messages in generic format

        Returns:
            Messages converted to Anthropic format
        """
        converted: list[dict[str, Any]] = []

        for msg in messages:
            role = msg.get("role")
            if role == "system":
                continue

            if role == "tool":
                role = "user"
                blocks = [{
                    "type": "tool_result",
                    "tool_use_id": msg.get("tool_call_id"),
                    "content": msg.get("content", ""),
                }]
            elif role == "assistant" and msg.get("tool_calls"):
                blocks = []
                if msg.get("content"):
                    blocks.append({"type": "text", "text": msg["content"]})
                for tc in msg["tool_calls"]:
                    arguments = tc.get("arguments")
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.get("call_id"),
                        "name": tc.get("name"),
                        "input": arguments if isinstance(arguments, dict) else {},
                    })
            else:
                content = msg.get("content", "")
                if not content:
                    continue
                blocks = [{"type": "text", "text": content}]

            if converted and converted[-1]["role"] == role:
                converted[-1]["content"].extend(blocks)
            else:
                converted.append({"role": role, "content": blocks})

        return converted

    def _extract_system_prompt(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None,
    ) -> str | None:
        """
        Combine the given system prompt with any system messages in the list.

        Anthropic expects the system prompt as a separate parameter, not in messages.
        """
        parts = [system_prompt] if system_prompt else []
        parts.extend(msg["content"] for msg in messages if msg.get("role") == "system" and msg.get("content"))
        return "\n\n".join(parts) if parts else None

    def _build_messages_api_kwargs(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None,
        max_tokens: int | None,
        temperature: float | None,
        tool_choice: str | None,
    ) -> dict[str, Any]:
        """Build kwargs for Anthropic Messages API call."""
        converted_messages = self._convert_messages_for_anthropic(messages)
        if not converted_messages:
            raise ValueError("At least one non-system message must be provided")

        kwargs: dict[str, Any] = {
            "model": self.model.value,
            "messages": converted_messages,
            "max_tokens": self._resolve_max_tokens(max_tokens),
            "temperature": self._resolve_temperature(temperature),
        }

        resolved_system = self._extract_system_prompt(messages, system_prompt)
        if resolved_system:
            kwargs["system"] = resolved_system

        if self._tools:
            kwargs["tools"] = self._tools.copy()
            if tool_choice in ("auto", "any"):
                kwargs["tool_choice"] = {"type": tool_choice}
            elif tool_choice == "required":
                kwargs["tool_choice"] = {"type": "any"}
            elif tool_choice and tool_choice != "none":
                kwargs["tool_choice"] = {"type": "tool", "name": tool_choice}

        return kwargs

    def _parse_response(self, response: Any) -> LLMChatResponse:
        """Parse response from Anthropic Messages API. Thinking blocks are not kept."""
        text_parts: list[str] = []
        tool_calls: list[LLMToolCall] = []

        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(LLMToolCall(
                    tool_name=block.name,
                    tool_arguments=block.input if isinstance(block.input, dict) else {},
                    call_id=block.id,
                ))

        return LLMChatResponse(
            content="".join(text_parts) if text_parts else None,
            tool_calls=tool_calls,
        )

    # Public methods _______________________________________________________________________________________________________

    ## Tool management

    def register_tool(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any],
    ) -> None:
        """Register a tool in Anthropic's tool format."""
        logger.debug("Registering Anthropic tool: %s", name)
        self._tools.append({
            "name": name,
            "description": description,
            "input_schema": _clean_schema_for_anthropic(parameters),
        })

    ## Unified API methods

    async def call_async(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tool_choice: str | None = None,
    ) -> LLMChatResponse:
        """
        Async call to Anthropic.

        Args:
            messages: Provider-neutral message dicts.
            system_prompt: Optional system prompt for context.
            max_tokens: Maximum tokens in the response.
            temperature: Sampling temperature (0.0-1.0).
            tool_choice: "auto", "required", "none", or a tool name.

        Returns:
            LLMChatResponse.
        """
        kwargs = self._build_messages_api_kwargs(messages, system_prompt, max_tokens, temperature, tool_choice)
        response = await self._async_client.messages.create(**kwargs)
        return self._parse_response(response)
