"""
kube_assistant/tools/tool_registry.py

Registry of the tools the assistant knows about and which of them are enabled.
"""

from typing import Any

from kube_assistant.data_models.tools import ToolType
from kube_assistant.tools.abstract_tool import AbstractTool
from kube_assistant.tools.kubernetes_tool import KubernetesApiTool
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


class ToolRegistry:
    """
    Tools by name, plus the enabled subset.

    Newly registered tools are enabled unless the registry was told otherwise.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, tools: list[AbstractTool] | None = None) -> None:
        self._tools: dict[str, AbstractTool] = {}
        self._enabled: set[str] = set()
        for tool in tools or []:
            self.register(tool)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    # Public methods _______________________________________________________________________________________________________

    @classmethod
    def with_builtin_tools(cls) -> "ToolRegistry":
        """Registry holding the built-in tools only."""
        return cls([KubernetesApiTool()])

    def register(self, tool: AbstractTool, enabled: bool = True) -> None:
        if tool.name in self._tools:
            logger.warning("Replacing already registered tool %s", tool.name)
        self._tools[tool.name] = tool
        if enabled:
            self._enabled.add(tool.name)
        logger.debug("Registered %s tool %s", tool.tool_type, tool.name)

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)
        self._enabled.discard(name)

    def get(self, name: str) -> AbstractTool | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def enabled_names(self) -> list[str]:
        """Enabled tool names, in registration order."""
        return [name for name in self._tools if name in self._enabled]

    def set_enabled(self, names: list[str]) -> None:
        """Replace the enabled set. Names of unregistered tools are ignored."""
        unknown = [name for name in names if name not in self._tools]
        if unknown:
            logger.warning("Ignoring unknown tools in enabled set: %s", ", ".join(unknown))
        self._enabled = {name for name in names if name in self._tools}

    def is_enabled(self, name: str) -> bool:
        return name in self._enabled and name in self._tools

    def tool_type(self, name: str) -> ToolType:
        tool = self._tools.get(name)
        return tool.tool_type if tool is not None else ToolType.EXTERNAL

    def definitions(self) -> list[dict[str, Any]]:
        """Function definitions of the enabled tools, for binding to the model."""
        return [self._tools[name].definition() for name in self.enabled_names]
