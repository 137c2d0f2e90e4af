"""
kube_assistant/tools/abstract_tool.py

Abstract base class for tools the model can call.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from kube_assistant.data_models.tools import KubernetesToolContext, ToolResult, ToolType
from kube_assistant.utils.exceptions import ToolExecutionError


class AbstractTool(ABC):
    """
    A named, schema-described operation the model can request.

    Subclasses provide `name`, `description` and `parameters` (JSON Schema of the
    arguments object) and implement `execute`. `execute` runs on a worker thread,
    so implementations must not touch the event loop.
    """

    # Class attributes ____________________________________________________________________________________________________

    tool_type: ClassVar[ToolType] = ToolType.BUILTIN

    name: str
    description: str
    parameters: dict[str, Any]

    # Magic methods ________________________________________________________________________________________________________

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    # Public methods _______________________________________________________________________________________________________

    def definition(self) -> dict[str, Any]:
        """Function definition handed to the model invoker."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def prepare_arguments(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """
        Validate arguments against the schema before dispatch.

        Raises:
            ToolExecutionError: On missing required or unknown parameters.
        """
        required = self.parameters.get("required", [])
        missing = [p for p in required if p not in arguments or arguments[p] is None]
        if missing:
            raise ToolExecutionError(
                f"Missing required parameter(s): {', '.join(missing)}",
                tool_name=self.name,
            )

        valid_params = set(self.parameters.get("properties", {}).keys())
        extra = set(arguments.keys()) - valid_params
        if extra:
            raise ToolExecutionError(
                f"Unknown parameter(s) for '{self.name}': {', '.join(sorted(extra))}",
                tool_name=self.name,
            )
        return arguments

    @abstractmethod
    def execute(
        self,
        arguments: dict[str, Any],
        call_id: str,
        context: KubernetesToolContext | None,
    ) -> ToolResult:
        """
        Execute one call.

        Args:
            arguments: Validated arguments.
            call_id: ID of the tool call being answered.
            context: Ambient cluster context configured on the orchestrator.

        Returns:
            The normalized result.
        """
        pass
