"""
kube_assistant/tools/external_tool.py

Adapter for tools served by an external Model-Context-Protocol server.

The assistant does not talk to MCP servers itself; the host hands in a callable
that executes a tool by name and returns its raw result.
"""

import json
from collections.abc import Callable
from typing import Any

from kube_assistant.data_models.tools import KubernetesToolContext, ToolResult, ToolType
from kube_assistant.tools.abstract_tool import AbstractTool
from kube_assistant.utils.exceptions import ToolExecutionError
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


ExternalToolCallable = Callable[[str, dict[str, Any]], Any]

_TYPE_DEFAULTS: dict[str, Any] = {
    "string": "",
    "number": 0,
    "integer": 0,
    "boolean": False,
    "array": [],
    "object": {},
}


def _has_value(value: Any) -> bool:
    if value is None or value == "":
        return False
    if isinstance(value, (list, dict)):
        return len(value) > 0
    return True


def filter_arguments(arguments: dict[str, Any], input_schema: dict[str, Any]) -> dict[str, Any]:
    """
    Fit model-produced arguments to an MCP tool's input schema.

    Required properties are always present (missing ones get the schema default or a
    type default). Optional properties are kept only when they carry a value.
    Properties unknown to the schema are dropped.
    """
    properties: dict[str, Any] = input_schema.get("properties") or {}
    if not properties:
        return arguments

    # some models wrap everything in a single "input" object
    if "input" in arguments and "input" not in properties and isinstance(arguments["input"], dict):
        if not any(key in properties for key in arguments):
            arguments = arguments["input"]

    required: list[str] = input_schema.get("required") or []
    filtered: dict[str, Any] = {}
    for prop in required:
        if prop in arguments:
            filtered[prop] = arguments[prop]
        elif prop in properties:
            prop_schema = properties[prop]
            default = prop_schema.get("default")
            if default is None:
                default = _TYPE_DEFAULTS.get(prop_schema.get("type"), {})
            filtered[prop] = default

    for key, value in arguments.items():
        if key in required or key not in properties:
            continue
        if _has_value(value):
            filtered[key] = value
    return filtered


class ExternalTool(AbstractTool):
    """A tool whose execution is delegated to the host's MCP client."""

    tool_type = ToolType.EXTERNAL

    # Magic methods ________________________________________________________________________________________________________

    def __init__(
        self,
        name: str,
        description: str,
        input_schema: dict[str, Any] | None,
        execute_callable: ExternalToolCallable,
        server_name: str | None = None,
    ) -> None:
        """
        Initialize the external tool.

        Args:
            name: Tool name as exposed by the MCP server.
            description: Tool description shown to the model.
            input_schema: JSON Schema of the tool's arguments.
            execute_callable: Host callable `(tool_name, arguments) -> result`.
            server_name: Name of the MCP server providing the tool.
        """
        self.name = name
        self.description = description or f"External tool {name}"
        self.parameters = input_schema or {"type": "object", "properties": {}}
        self.server_name = server_name
        self._execute_callable = execute_callable

    # Public methods _______________________________________________________________________________________________________

    def prepare_arguments(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """External tools are lenient: arguments are fitted to the schema instead of rejected."""
        return filter_arguments(arguments, self.parameters)

    def execute(
        self,
        arguments: dict[str, Any],
        call_id: str,
        context: KubernetesToolContext | None,
    ) -> ToolResult:
        logger.info("Executing external tool %s (call %s)", self.name, call_id)
        try:
            result = self._execute_callable(self.name, arguments)
        except ToolExecutionError:
            raise
        except Exception as e:
            logger.error("External tool %s failed: %s", self.name, e)
            raise ToolExecutionError(str(e), tool_name=self.name) from e

        if isinstance(result, dict) and "result" in result:
            result = result["result"]
        content = result if isinstance(result, str) else json.dumps(result, default=str)
        return ToolResult(content=content, metadata={"server_name": self.server_name})
