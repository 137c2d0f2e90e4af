"""
kube_assistant/tools/tool_executor.py

Execution of a single tool call.

Contains:
- ToolExecutor: the protocol the orchestrator depends on
- RegistryToolExecutor: dispatches to tools held by a ToolRegistry
- detect_embedded_failure: spots failures reported inside a successful response
"""

from typing import Any, Protocol

from kube_assistant.data_models.tools import KubernetesToolContext, ToolResult
from kube_assistant.tools.tool_registry import ToolRegistry
from kube_assistant.utils.content_utils import parse_json_object
from kube_assistant.utils.exceptions import UnknownToolError
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


class ToolExecutor(Protocol):
    """
    Executes exactly one tool call.

    Returns a ToolResult or raises; thrown errors are recorded by the orchestrator.
    Called from worker threads.
    """

    def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        call_id: str,
        context: KubernetesToolContext | None,
    ) -> ToolResult:
        ...


def detect_embedded_failure(content: str) -> str | None:
    """
    Return an error message if `content` reports a failure, otherwise None.

    Recognized forms: a JSON object with `"error": true`, a Kubernetes Status
    object with `"status": "Failure"`, and non-JSON text mentioning an error.
    """
    parsed = parse_json_object(content)
    if parsed is not None:
        if parsed.get("error") is True:
            return str(parsed.get("message") or "Unknown error")
        if parsed.get("kind") == "Status" and parsed.get("status") == "Failure":
            return str(parsed.get("message") or parsed.get("reason") or "Kubernetes request failed")
        return None

    stripped = content.strip()
    if stripped.startswith(("{", "[")):
        return None
    lowered = stripped.lower()
    if "error" in lowered or "failed" in lowered:
        return stripped
    return None


class RegistryToolExecutor:
    """ToolExecutor dispatching to the tools registered in a ToolRegistry."""

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    # Public methods _______________________________________________________________________________________________________

    def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        call_id: str,
        context: KubernetesToolContext | None,
    ) -> ToolResult:
        """
        Validate arguments, run the tool and classify embedded failures.

        Raises:
            UnknownToolError: If no tool with this name is registered.
            ToolExecutionError: If validation or execution fails.
        """
        tool = self.registry.get(name)
        if tool is None:
            logger.warning("Unknown tool: %s", name)
            raise UnknownToolError(f"Unknown tool: {name}", tool_name=name)

        prepared = tool.prepare_arguments(arguments)
        logger.debug("Executing tool %s (call %s) with arguments: %s", name, call_id, prepared)
        result = tool.execute(prepared, call_id, context)

        if not result.is_error:
            error_message = detect_embedded_failure(result.content)
            if error_message is not None:
                logger.warning("Tool %s reported a failure: %s", name, error_message[:200])
                result = result.model_copy(update={"is_error": True, "error_message": error_message})
        return result
