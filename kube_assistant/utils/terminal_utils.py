"""
kube_assistant/utils/terminal_utils.py

Utility functions for terminal input/output.
"""

import json
from typing import Any

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from kube_assistant.data_models.approval import ApprovalRequest
from kube_assistant.data_models.conversation import ToolCallRef

MAX_RESULT_LINES = 150


class SlashCommandLexer(Lexer):
    """
    Highlight slash commands (e.g., /help, /quit) in bold.

    The slash command is the text from '/' until the first space (or end of line).
    """

    def lex_document(self, document: Document) -> Any:
        """Return a callable that returns styled tokens for a given line."""
        def get_line(lineno: int) -> StyleAndTextTuples:
            line = document.lines[lineno]
            if line.startswith("/"):
                space_idx = line.find(" ")
                if space_idx == -1:
                    return [("bold", line)]
                return [("bold", line[:space_idx]), ("", line[space_idx:])]
            return [("", line)]

        return get_line


class SlashCommandCompleter(Completer):
    """
    Show slash command suggestions when the input starts with '/'.

    Args:
        commands: List of (command, description) tuples.
    """

    def __init__(self, commands: list[tuple[str, str]]) -> None:
        self._commands = commands

    def get_completions(self, document: Document, complete_event: Any) -> Any:
        text = document.text_before_cursor
        if not text.startswith("/"):
            return
        for cmd, desc in self._commands:
            if cmd.startswith(text):
                yield Completion(
                    cmd,
                    start_position=-len(text),
                    display=cmd,
                    display_meta=desc,
                )


def _format_arguments(arguments: dict[str, Any] | str) -> str:
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments, indent=2)


def _clip_lines(text: str, max_lines: int = MAX_RESULT_LINES) -> str:
    lines = text.split("\n")
    if len(lines) <= max_lines:
        return text
    return "\n".join(lines[:max_lines]) + f"\n... ({len(lines) - max_lines} more lines)"


def print_assistant_message(content: str, console: Console) -> None:
    """Print an assistant response using markdown rendering."""
    console.print()
    console.print("[bold cyan]Assistant[/bold cyan]")
    console.print()
    console.print(Markdown(content))
    console.print()


def print_suggestions(suggestions: list[str], console: Console) -> None:
    """Print numbered follow-up suggestions below an assistant response."""
    if not suggestions:
        return
    console.print("[dim]Suggestions:[/dim]")
    for index, suggestion in enumerate(suggestions, start=1):
        console.print(f"  [cyan]{index}.[/cyan] {escape(suggestion)}")
    console.print()


def print_error(error: str, console: Console) -> None:
    """Print an error message."""
    console.print()
    console.print(f"[bold red]Error:[/bold red] [red]{escape(error)}[/red]")
    console.print()


def print_tool_call(tool_call: ToolCallRef, console: Console) -> None:
    """Print a tool call with formatted arguments."""
    content = Text()
    content.append("Tool: ", style="dim")
    content.append(tool_call.name, style="bold white")
    content.append(f"  ({tool_call.id})", style="dim")
    content.append("\n\n")
    content.append("Arguments:\n", style="dim")
    content.append(_format_arguments(tool_call.arguments), style="white")

    console.print()
    console.print(Panel(
        content,
        title="[bold yellow]TOOL CALL[/bold yellow]",
        style="yellow",
        box=box.ROUNDED,
    ))


def print_tool_result(content: str, is_error: bool, console: Console) -> None:
    """Print the outcome of a tool call."""
    try:
        display = json.dumps(json.loads(content), indent=2)
    except json.JSONDecodeError:
        display = content

    if is_error:
        console.print("[bold red]Tool execution failed[/bold red]")
        console.print(Panel(escape(_clip_lines(display)), title="Error", style="red", box=box.ROUNDED))
    else:
        console.print("[bold green]Tool executed[/bold green]")
        console.print(Panel(escape(_clip_lines(display)), title="Result", style="green", box=box.ROUNDED))
    console.print()


def print_approval_request(request: ApprovalRequest, console: Console) -> None:
    """Print a pending approval request, one numbered line per tool call."""
    content = Text()
    if request.context.user_message:
        content.append("Request: ", style="dim")
        content.append(request.context.user_message + "\n\n", style="white")
    for index, tool_call in enumerate(request.tool_calls, start=1):
        content.append(f"{index}. ", style="bold")
        content.append(tool_call.name, style="bold white")
        content.append(f" [{tool_call.type}]\n", style="dim")
        content.append(_format_arguments(tool_call.arguments) + "\n", style="white")

    console.print()
    console.print(Panel(
        content,
        title="[bold magenta]APPROVAL REQUIRED[/bold magenta]",
        style="magenta",
        box=box.ROUNDED,
    ))
