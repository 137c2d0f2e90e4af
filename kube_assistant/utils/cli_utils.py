"""
kube_assistant/utils/cli_utils.py

Utility functions for CLI argument parsing.
"""

import sys
from argparse import ArgumentParser

from rich.console import Console

from kube_assistant.config import Config
from kube_assistant.data_models.llms.vendors import (
    LLMModel,
    get_all_model_values,
    get_model_by_value,
)


def add_model_argument(parser: ArgumentParser) -> None:
    """
    Add the --model argument to an ArgumentParser.

    Args:
        parser: The ArgumentParser to add the argument to
    """
    parser.add_argument(
        "--model",
        type=str,
        default=Config.DEFAULT_MODEL,
        help=f"LLM model to use (default: {Config.DEFAULT_MODEL}). Options: {', '.join(get_all_model_values())}",
    )


def parse_tool_names(value: str | None) -> list[str] | None:
    """Split a comma-separated tool list; None keeps the default set."""
    if value is None:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


def resolve_model(model_str: str, console: Console) -> LLMModel:
    """
    Resolve a model string to an LLMModel enum value.

    Exits with error if the model string is invalid.
    """
    model_result = get_model_by_value(model_str)
    if model_result is None:
        console.print(f"[bold red]Error: Unknown model '{model_str}'[/bold red]")
        console.print(f"[dim]Available models: {', '.join(get_all_model_values())}[/dim]")
        sys.exit(1)
    return model_result
