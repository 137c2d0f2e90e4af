"""
tests/unit/llms/test_openai_client.py

Unit tests for the OpenAI Responses API client.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from kube_assistant.data_models.llms.vendors import OpenAIModel
from kube_assistant.llms.openai_client import OpenAIClient, _decode_arguments


@pytest.fixture
def client() -> OpenAIClient:
    return OpenAIClient(model=OpenAIModel.GPT_5_1)


def _item(item_type: str, **kwargs: Any) -> MagicMock:
    item = MagicMock()
    item.type = item_type
    for key, value in kwargs.items():
        setattr(item, key, value)
    return item


# =============================================================================
# Message conversion
# =============================================================================

class TestConvertMessages:
    """Tests for provider-neutral to Responses API conversion."""

    def test_plain_messages_pass_through(self, client: OpenAIClient) -> None:
        messages = [{"role": "user", "content": "list pods"}, {"role": "assistant", "content": "3 pods"}]
        assert client._convert_messages_for_responses_api(messages) == messages

    def test_tool_round(self, client: OpenAIClient) -> None:
        messages = [
            {
                "role": "assistant",
                "content": "Checking.",
                "tool_calls": [{"call_id": "c1", "name": "k8s_get", "arguments": {"url": "/api/v1/pods"}}],
            },
            {"role": "tool", "tool_call_id": "c1", "content": "3 items"},
        ]

        assert client._convert_messages_for_responses_api(messages) == [
            {"role": "assistant", "content": "Checking."},
            {"type": "function_call", "call_id": "c1", "name": "k8s_get", "arguments": '{"url": "/api/v1/pods"}'},
            {"type": "function_call_output", "call_id": "c1", "output": "3 items"},
        ]

    def test_raw_string_arguments_are_kept(self, client: OpenAIClient) -> None:
        messages = [{"role": "assistant", "tool_calls": [{"call_id": "c1", "name": "k8s_get", "arguments": "{oops"}]}]
        assert client._convert_messages_for_responses_api(messages)[0]["arguments"] == "{oops"

    def test_tool_message_without_call_id(self, client: OpenAIClient) -> None:
        converted = client._convert_messages_for_responses_api([{"role": "tool", "content": "3 items"}])
        assert converted == [{"role": "user", "content": "[Tool result]: 3 items"}]


# =============================================================================
# Request building and response parsing
# =============================================================================

class TestBuildKwargs:

    def test_without_tools(self, client: OpenAIClient) -> None:
        kwargs = client._build_responses_api_kwargs([{"role": "user", "content": "hi"}], "be brief", None, "auto")
        assert kwargs == {
            "model": "gpt-5.1",
            "max_output_tokens": OpenAIClient.DEFAULT_MAX_TOKENS,
            "input": [{"role": "user", "content": "hi"}],
            "instructions": "be brief",
        }

    def test_with_tools(self, client: OpenAIClient) -> None:
        client.register_tool("k8s_get", "Read resources", {"type": "object", "properties": {}})
        kwargs = client._build_responses_api_kwargs([{"role": "user", "content": "hi"}], None, 100, "auto")

        assert kwargs["tools"] == [{
            "type": "function",
            "name": "k8s_get",
            "description": "Read resources",
            "parameters": {"type": "object", "properties": {}},
        }]
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["max_output_tokens"] == 100
        assert "instructions" not in kwargs

    def test_requires_messages(self, client: OpenAIClient) -> None:
        with pytest.raises(ValueError):
            client._build_responses_api_kwargs([], None, None, None)


class TestParseResponse:

    def test_text_and_tool_calls(self, client: OpenAIClient) -> None:
        response = MagicMock()
        response.output = [
            _item("reasoning", summary=[MagicMock(text="thinking")]),
            _item("message", content=[_item("output_text", text="Let me check.")]),
            _item("function_call", name="k8s_get", arguments='{"url": "/api/v1/pods"}', call_id="c1"),
            _item("function_call", name="k8s_get", arguments="{oops", call_id="c2"),
        ]

        parsed = client._parse_responses_api_response(response)

        assert parsed.content == "Let me check."
        assert set(parsed.model_dump()) == {"content", "tool_calls"}
        assert [call.call_id for call in parsed.tool_calls] == ["c1", "c2"]
        assert parsed.tool_calls[0].tool_arguments == {"url": "/api/v1/pods"}
        assert parsed.tool_calls[1].tool_arguments == "{oops"

    async def test_call_async(self, client: OpenAIClient) -> None:
        response = MagicMock()
        response.id = "resp_2"
        response.output = [_item("message", content=[_item("output_text", text="hello")])]
        client._async_client.responses.create = AsyncMock(return_value=response)

        parsed = await client.call_async([{"role": "user", "content": "hi"}])

        assert parsed.content == "hello"
        assert parsed.tool_calls == []
        client._async_client.responses.create.assert_awaited_once()


class TestDecodeArguments:

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ('{"a": 1}', {"a": 1}),
            ("", {}),
            ("   ", {}),
            (None, {}),
            ({"a": 1}, {"a": 1}),
            ("[1, 2]", "[1, 2]"),
            ("{oops", "{oops"),
        ],
    )
    def test_decode(self, raw: Any, expected: Any) -> None:
        assert _decode_arguments("k8s_get", raw) == expected
