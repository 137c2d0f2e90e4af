"""
tests/conftest.py

Configuration for pytest.
"""

import asyncio
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from kube_assistant.agent.approval_gate import ApprovalGate
from kube_assistant.agent.orchestrator import AgentOrchestrator
from kube_assistant.data_models.approval import SessionPolicy
from kube_assistant.data_models.llms.interaction import EmittedMessage, LLMChatResponse
from kube_assistant.data_models.tools import KubernetesToolContext, ToolResult
from kube_assistant.tools.abstract_tool import AbstractTool
from kube_assistant.tools.tool_registry import ToolRegistry


class ScriptedModelInvoker:
    """
    ModelInvoker returning scripted responses and recording every invocation.

    A scripted Exception is raised; a scripted None blocks until the invocation is cancelled.
    """

    def __init__(self, responses: list[Any], supports_tool_messages: bool = True) -> None:
        self._responses = list(responses)
        self._supports_tool_messages = supports_tool_messages
        self.calls: list[dict[str, Any]] = []
        self.started = asyncio.Event()

    @property
    def supports_tool_messages(self) -> bool:
        return self._supports_tool_messages

    async def invoke(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> LLMChatResponse:
        self.calls.append({"messages": messages, "system_prompt": system_prompt, "tools": tools})
        self.started.set()
        if not self._responses:
            raise AssertionError("ScriptedModelInvoker ran out of responses")
        response = self._responses.pop(0)
        if response is None:
            await asyncio.sleep(3600)
        if isinstance(response, Exception):
            raise response
        return response


class RecordingTool(AbstractTool):
    """Tool answering from a fixed result (or a callable) and recording its calls."""

    def __init__(
        self,
        name: str,
        result: ToolResult | str | Exception | Callable[[dict[str, Any]], ToolResult] = "ok",
        properties: dict[str, Any] | None = None,
        required: list[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.description = f"Test tool {name}"
        self.parameters = {
            "type": "object",
            "properties": properties if properties is not None else {"url": {"type": "string"}},
            "required": required or [],
        }
        self.result = result
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    def execute(
        self,
        arguments: dict[str, Any],
        call_id: str,
        context: KubernetesToolContext | None,
    ) -> ToolResult:
        self.calls.append({"arguments": arguments, "call_id": call_id, "context": context})
        if self.delay:
            time.sleep(self.delay)
        if isinstance(self.result, Exception):
            raise self.result
        if isinstance(self.result, ToolResult):
            return self.result
        if isinstance(self.result, str):
            return ToolResult(content=self.result)
        return self.result(arguments)


@pytest.fixture(autouse=True)
def mock_vendor_clients() -> dict[str, MagicMock]:
    """
    Mock the OpenAI and Anthropic SDK clients to avoid needing real API keys in tests.

    Patches AsyncOpenAI and AsyncAnthropic wherever the vendor client modules
    import them, so tests can instantiate vendor clients freely.
    """
    with (
        patch("kube_assistant.llms.openai_client.AsyncOpenAI") as mock_async_openai,
        patch("kube_assistant.llms.anthropic_client.AsyncAnthropic") as mock_async_anthropic,
    ):
        mock_async_openai.return_value = MagicMock()
        mock_async_anthropic.return_value = MagicMock()
        yield {"async_openai": mock_async_openai, "async_anthropic": mock_async_anthropic}


@pytest.fixture(scope="session")
def tests_root() -> Path:
    """
    Root directory for tests.
    Returns:
        Path to the tests directory.
    """
    return Path(__file__).parent.resolve()


@pytest.fixture
def emitted() -> list[EmittedMessage]:
    """List collecting every message the orchestrator emits."""
    return []


@pytest.fixture
def make_orchestrator(emitted: list[EmittedMessage]) -> Callable[..., AgentOrchestrator]:
    """
    Factory fixture building an AgentOrchestrator around a ScriptedModelInvoker.

    Tools default to a single RecordingTool named "k8s_get"; the gate auto-approves
    every call unless `auto_approve=False` (then `request_callable` answers requests).

    Usage:
        orchestrator = make_orchestrator([LLMChatResponse(tool_calls=[...]), LLMChatResponse(content="done")])
        orchestrator.model_invoker.calls  # recorded invocations
    """
    def factory(
        responses: list[Any],
        tools: list[AbstractTool] | None = None,
        auto_approve: bool = True,
        request_callable: Callable[[Any], None] | None = None,
        supports_tool_messages: bool = True,
        **kwargs: Any,
    ) -> AgentOrchestrator:
        registry = ToolRegistry(tools if tools is not None else [RecordingTool("k8s_get", result="3 items")])
        gate = ApprovalGate(
            request_callable=request_callable,
            auto_approve_builtin=False,
            policy=SessionPolicy(session_auto_approve=auto_approve),
        )
        return AgentOrchestrator(
            model_invoker=ScriptedModelInvoker(responses, supports_tool_messages=supports_tool_messages),
            tool_registry=registry,
            approval_gate=gate,
            emit_message_callable=emitted.append,
            **kwargs,
        )

    return factory


@pytest.fixture
def make_tool() -> Callable[..., RecordingTool]:
    """
    Factory fixture creating RecordingTool instances.

    Usage:
        tool = make_tool("k8s_get", result="3 items")
        tool = make_tool("flaky", result=RuntimeError("timeout"), delay=0.05)
    """
    def factory(name: str, **kwargs: Any) -> RecordingTool:
        return RecordingTool(name, **kwargs)

    return factory
