"""
kube_assistant/config.py

Environment variable configuration.

Contains:
- Config: Centralized settings from environment variables
- OPENAI_API_KEY, LOG_LEVEL, DEFAULT_MODEL, agent limits, Kubernetes API access
"""

import logging
import os
from typing import Any

from dotenv import load_dotenv

load_dotenv()

# configure httpx logger to suppress verbose HTTP logs
logging.getLogger("httpx").setLevel(logging.WARNING)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config():
    """
    Centralized configuration for environment variables.
    """

    # logging configuration
    LOG_LEVEL: int = logging.getLevelNamesMapping().get(
        os.getenv("LOG_LEVEL", "INFO").upper(),
        logging.INFO
    )
    LOG_DATE_FORMAT: str = os.getenv("LOG_DATE_FORMAT", "%Y-%m-%d %H:%M:%S")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "[%(asctime)s] %(levelname)s:%(name)s:%(message)s")

    # API keys
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    DEFAULT_MODEL: str = os.getenv("KUBE_ASSISTANT_DEFAULT_MODEL", "gpt-5.1")

    # Agent orchestration limits
    AGENT_MAX_ROUNDS: int = int(os.getenv("KUBE_ASSISTANT_MAX_ROUNDS", "10"))
    TOOL_RESPONSE_MAX_BYTES: int = int(os.getenv("KUBE_ASSISTANT_TOOL_RESPONSE_MAX_BYTES", "500000"))
    TOOL_EXECUTION_MAX_WORKERS: int = int(os.getenv("KUBE_ASSISTANT_TOOL_MAX_WORKERS", "8"))
    AUTO_APPROVE_BUILTIN_TOOLS: bool = _env_bool("KUBE_ASSISTANT_AUTO_APPROVE_BUILTIN_TOOLS", False)

    # Kubernetes API access for the built-in tool
    KUBERNETES_API_SERVER: str | None = os.getenv("KUBERNETES_API_SERVER")
    KUBERNETES_TOKEN: str | None = os.getenv("KUBERNETES_TOKEN")
    KUBERNETES_VERIFY_SSL: bool = _env_bool("KUBERNETES_VERIFY_SSL", True)
    KUBERNETES_REQUEST_TIMEOUT: float = float(os.getenv("KUBERNETES_REQUEST_TIMEOUT", "30"))

    @classmethod
    def as_dict(cls) -> dict[str, Any]:
        """
        Return a dictionary of all UPPERCASE class attributes and their values.
        Return:
            dict[str, str | None]: A dictionary of all UPPERCASE class attributes and their values.
        """
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if key.isupper()
        }
