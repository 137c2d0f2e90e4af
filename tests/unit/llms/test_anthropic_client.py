"""
tests/unit/llms/test_anthropic_client.py

Unit tests for the Anthropic Messages API client.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from kube_assistant.data_models.llms.vendors import AnthropicModel
from kube_assistant.llms.anthropic_client import AnthropicClient, _clean_schema_for_anthropic


@pytest.fixture
def client() -> AnthropicClient:
    return AnthropicClient(model=AnthropicModel.CLAUDE_SONNET_4_5)


def _block(block_type: str, **kwargs: Any) -> MagicMock:
    block = MagicMock()
    block.type = block_type
    for key, value in kwargs.items():
        setattr(block, key, value)
    return block


# --- Schema cleaning ---


class TestCleanSchema:

    def test_resolves_local_refs(self) -> None:
        schema = {
            "type": "object",
            "properties": {"target": {"$ref": "#/$defs/Target"}, "items": {"type": "array", "items": {"$ref": "#/x"}}},
            "$defs": {"Target": {"type": "object", "properties": {"name": {"type": "string"}}}},
        }

        cleaned = _clean_schema_for_anthropic(schema)

        assert "$defs" not in cleaned
        assert cleaned["properties"]["target"] == {"type": "object", "properties": {"name": {"type": "string"}}}
        assert cleaned["properties"]["items"]["items"] == {"type": "object"}

    def test_defaults_to_object(self) -> None:
        assert _clean_schema_for_anthropic({"properties": {}}) == {"properties": {}, "type": "object"}


# --- Message conversion ---


class TestConvertMessages:

    def test_system_messages_are_extracted(self, client: AnthropicClient) -> None:
        messages = [{"role": "system", "content": "notice"}, {"role": "user", "content": "hi"}]

        assert client._convert_messages_for_anthropic(messages) == [
            {"role": "user", "content": [{"type": "text", "text": "hi"}]},
        ]
        assert client._extract_system_prompt(messages, "base") == "base\n\nnotice"
        assert client._extract_system_prompt([], None) is None

    def test_consecutive_roles_are_merged(self, client: AnthropicClient) -> None:
        messages = [
            {"role": "user", "content": "list pods"},
            {"role": "user", "content": "in default"},
            {"role": "assistant", "content": ""},
        ]

        assert client._convert_messages_for_anthropic(messages) == [
            {"role": "user", "content": [{"type": "text", "text": "list pods"}, {"type": "text", "text": "in default"}]},
        ]

    def test_native_tool_round(self, client: AnthropicClient) -> None:
        messages = [
            {"role": "user", "content": "list pods"},
            {"role": "assistant", "content": "", "tool_calls": [
                {"call_id": "c1", "name": "k8s_get", "arguments": {"url": "/api/v1/pods"}},
                {"call_id": "c2", "name": "k8s_get", "arguments": "{oops"},
            ]},
            {"role": "tool", "tool_call_id": "c1", "content": "3 items"},
            {"role": "tool", "tool_call_id": "c2", "content": "Error: bad arguments"},
        ]

        converted = client._convert_messages_for_anthropic(messages)

        assert [message["role"] for message in converted] == ["user", "assistant", "user"]
        assert converted[1]["content"] == [
            {"type": "tool_use", "id": "c1", "name": "k8s_get", "input": {"url": "/api/v1/pods"}},
            {"type": "tool_use", "id": "c2", "name": "k8s_get", "input": {}},
        ]
        assert [block["tool_use_id"] for block in converted[2]["content"]] == ["c1", "c2"]


# --- Request building ---


class TestBuildKwargs:

    @pytest.mark.parametrize(
        ("tool_choice", "expected"),
        [
            ("auto", {"type": "auto"}),
            ("required", {"type": "any"}),
            ("k8s_get", {"type": "tool", "name": "k8s_get"}),
        ],
    )
    def test_tool_choice(self, client: AnthropicClient, tool_choice: str, expected: dict[str, Any]) -> None:
        client.register_tool("k8s_get", "Read resources", {"type": "object", "properties": {}})
        kwargs = client._build_messages_api_kwargs([{"role": "user", "content": "hi"}], None, None, None, tool_choice)
        assert kwargs["tool_choice"] == expected

    def test_no_tool_choice_for_none(self, client: AnthropicClient) -> None:
        client.register_tool("k8s_get", "Read resources", {"type": "object", "properties": {}})
        kwargs = client._build_messages_api_kwargs([{"role": "user", "content": "hi"}], "base", 50, 0.5, "none")

        assert "tool_choice" not in kwargs
        assert kwargs["tools"][0]["input_schema"] == {"type": "object", "properties": {}}
        assert kwargs["system"] == "base"
        assert kwargs["max_tokens"] == 50
        assert kwargs["temperature"] == 0.5

    def test_without_tools(self, client: AnthropicClient) -> None:
        kwargs = client._build_messages_api_kwargs([{"role": "user", "content": "hi"}], None, None, None, "auto")
        assert "tools" not in kwargs
        assert "system" not in kwargs
        assert kwargs["temperature"] == AnthropicClient.DEFAULT_TEMPERATURE

    def test_requires_non_system_message(self, client: AnthropicClient) -> None:
        with pytest.raises(ValueError, match="non-system message"):
            client._build_messages_api_kwargs([{"role": "system", "content": "x"}], None, None, None, None)


# --- Response parsing ---


class TestParseResponse:

    def test_blocks(self, client: AnthropicClient) -> None:
        response = MagicMock()
        response.content = [
            _block("thinking", thinking="hmm"),
            _block("text", text="Checking "),
            _block("text", text="pods."),
            _block("tool_use", name="k8s_get", input={"url": "/api/v1/pods"}, id="toolu_1"),
        ]

        parsed = client._parse_response(response)

        assert parsed.content == "Checking pods."
        assert set(parsed.model_dump()) == {"content", "tool_calls"}
        assert parsed.tool_calls[0].call_id == "toolu_1"
        assert parsed.tool_calls[0].tool_arguments == {"url": "/api/v1/pods"}

    async def test_call_async(self, client: AnthropicClient) -> None:
        response = MagicMock()
        response.content = [_block("text", text="hello")]
        client._async_client.messages.create = AsyncMock(return_value=response)

        parsed = await client.call_async([{"role": "user", "content": "hi"}], system_prompt="base")

        assert parsed.content == "hello"
        assert client._async_client.messages.create.await_args.kwargs["system"] == "base"
