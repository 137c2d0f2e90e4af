"""
kube_assistant/scripts/run_assistant_chat.py

Interactive terminal chat with the Kubernetes assistant.

Usage:
    kube-assistant-chat
    kube-assistant-chat --model claude-sonnet-4-5 --tools kubernetes_api_request
    kube-assistant-chat --context "Viewing Deployment default/web"
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from rich.console import Console

from kube_assistant.agent.orchestrator import AgentOrchestrator
from kube_assistant.config import Config
from kube_assistant.data_models.approval import ApprovalRequest
from kube_assistant.data_models.conversation import ToolCallRef
from kube_assistant.data_models.llms.interaction import (
    ChatResponseEmittedMessage,
    EmittedMessage,
    ErrorEmittedMessage,
    ToolApprovalRequestEmittedMessage,
    ToolInvocationResultEmittedMessage,
)
from kube_assistant.data_models.llms.vendors import LLMModel
from kube_assistant.tools.kubernetes_tool import KUBERNETES_API_TOOL_NAME, KubernetesApiTool
from kube_assistant.utils.cli_utils import add_model_argument, parse_tool_names, resolve_model
from kube_assistant.utils.content_utils import parse_suggestions
from kube_assistant.utils.exceptions import DeferredToolResponseError, KubeAssistantError
from kube_assistant.utils.logger import get_logger, set_log_level
from kube_assistant.utils.terminal_utils import (
    SlashCommandCompleter,
    SlashCommandLexer,
    print_approval_request,
    print_assistant_message,
    print_error,
    print_suggestions,
    print_tool_call,
    print_tool_result,
)

logger = get_logger(name=__name__)


SLASH_COMMANDS = [
    ("/tools", "List tools, or enable a comma-separated set: /tools a,b"),
    ("/autoapprove", "Toggle auto-approval of every tool call for this session"),
    ("/reset", "Clear the conversation and remembered approvals"),
    ("/help", "Show help"),
    ("/quit", "Exit"),
]

HELP_TEXT = """
[bold]Commands:[/bold]
  [cyan]/tools[/cyan]          List tools and whether they are enabled
  [cyan]/tools a,b[/cyan]      Enable exactly the named tools (empty list disables all)
  [cyan]/autoapprove[/cyan]    Toggle auto-approval for this session
  [cyan]/reset[/cyan]          Start a fresh conversation
  [cyan]/help[/cyan]           Show this help
  [cyan]/quit[/cyan]           Exit

When the assistant wants to run tools you are asked to approve them:
  [cyan]y[/cyan] approve all, [cyan]n[/cyan] deny, [cyan]a[/cyan] approve all and remember,
  [cyan]1,3[/cyan] approve only the listed calls, [cyan]c[/cyan] cancel the request.
"""


class AssistantTerminalChat:
    """Terminal front-end driving one AgentOrchestrator."""

    # Magic methods ________________________________________________________________________________________________________

    def __init__(
        self,
        llm_model: LLMModel,
        console: Console,
        enabled_tools: list[str] | None = None,
        current_context: str | None = None,
    ) -> None:
        self.console = console
        self.llm_model = llm_model
        self.orchestrator = AgentOrchestrator.from_config(
            model_name=llm_model.value,
            emit_message_callable=self._handle_message,
        )
        if enabled_tools is not None:
            self.orchestrator.configure_tools(enabled_tools, self.orchestrator.tool_context)
        self.orchestrator.set_current_context(current_context)

        self._session: PromptSession[str] = PromptSession(
            completer=SlashCommandCompleter(SLASH_COMMANDS),
            lexer=SlashCommandLexer(),
            complete_while_typing=True,
        )
        self._approval_tasks: set[asyncio.Task[None]] = set()
        self._pending_writes: list[tuple[ToolCallRef, dict[str, Any]]] = []

    # Private methods ______________________________________________________________________________________________________

    ## Emitted messages

    def _handle_message(self, message: EmittedMessage) -> None:
        """Handle messages emitted by the orchestrator."""
        if isinstance(message, ChatResponseEmittedMessage):
            if message.is_error:
                print_error(message.content, self.console)
            else:
                content, suggestions = parse_suggestions(message.content)
                print_assistant_message(content, self.console)
                print_suggestions(suggestions, self.console)

        elif isinstance(message, ToolApprovalRequestEmittedMessage):
            task = asyncio.get_running_loop().create_task(self._ask_for_approval(message.request))
            self._approval_tasks.add(task)
            task.add_done_callback(self._approval_tasks.discard)

        elif isinstance(message, ToolInvocationResultEmittedMessage):
            print_tool_call(message.tool_call, self.console)
            print_tool_result(message.content, message.is_error, self.console)
            self._collect_pending_write(message)

        elif isinstance(message, ErrorEmittedMessage):
            print_error(message.error, self.console)

    def _collect_pending_write(self, message: ToolInvocationResultEmittedMessage) -> None:
        if message.tool_call.name != KUBERNETES_API_TOOL_NAME or message.is_error:
            return
        try:
            payload = json.loads(message.content)
        except json.JSONDecodeError:
            return
        if isinstance(payload, dict) and payload.get("status") == "pending_confirmation":
            self._pending_writes.append((message.tool_call, payload.get("request") or {}))

    ## Approval

    @staticmethod
    def _parse_selection(answer: str, request: ApprovalRequest) -> list[str] | None:
        """Map "1,3" to call IDs; None if the answer is not a valid selection."""
        ids: list[str] = []
        for part in answer.split(","):
            part = part.strip()
            if not part.isdigit():
                return None
            index = int(part) - 1
            if not 0 <= index < len(request.tool_calls):
                return None
            ids.append(request.tool_calls[index].id)
        return ids

    async def _ask_for_approval(self, request: ApprovalRequest) -> None:
        print_approval_request(request, self.console)
        gate = self.orchestrator.approval_gate
        while True:
            try:
                answer = await self._session.prompt_async(
                    HTML("<b><ansimagenta>Approve? [y/n/a/1,2,.../c]&gt;</ansimagenta></b> ")
                )
            except (KeyboardInterrupt, EOFError):
                answer = "c"
            answer = answer.strip().lower()

            if answer in ("y", "yes"):
                gate.approve_tools(request.request_id, request.tool_call_ids)
            elif answer == "a":
                gate.approve_tools(request.request_id, request.tool_call_ids, remember_choice=True)
            elif answer in ("n", "no"):
                gate.deny_tools(request.request_id)
            elif answer == "c":
                self.console.print("[dim]Cancelling request...[/dim]")
                self.orchestrator.abort()
            else:
                selection = self._parse_selection(answer, request)
                if selection is None:
                    self.console.print("[yellow]Answer y, n, a, c or a list of call numbers.[/yellow]")
                    continue
                gate.approve_tools(request.request_id, selection)
            return

    ## Deferred writes

    async def _confirm_pending_writes(self) -> None:
        """Ask about each write request deferred during the last turn and record the outcome."""
        pending, self._pending_writes = self._pending_writes, []
        tool = self.orchestrator.tool_registry.get(KUBERNETES_API_TOOL_NAME)
        for tool_call, request in pending:
            method = str(request.get("method", "")).upper()
            url = request.get("url", "")
            self.console.print(f"[bold yellow]Confirm {method} {url}?[/bold yellow]")
            if request.get("body"):
                self.console.print(f"[dim]{request['body']}[/dim]")
            try:
                answer = await self._session.prompt_async(HTML("<b>Apply? [y/n]&gt;</b> "))
            except (KeyboardInterrupt, EOFError):
                answer = "n"

            if answer.strip().lower() in ("y", "yes") and isinstance(tool, KubernetesApiTool):
                try:
                    result = await asyncio.to_thread(
                        tool.apply_confirmed_request,
                        method,
                        url,
                        request.get("body"),
                        self.orchestrator.tool_context,
                    )
                    content, success = result.content, not result.is_error
                except KubeAssistantError as e:
                    content, success = json.dumps({"error": True, "message": str(e)}), False
            else:
                content = json.dumps({"error": True, "message": "User cancelled the request"})
                success = False

            print_tool_result(content, not success, self.console)
            try:
                self.orchestrator.record_deferred_tool_response(tool_call.id, content, success=success)
            except DeferredToolResponseError as e:
                logger.warning("Could not record deferred response: %s", e)

    ## Slash commands

    def _show_tools(self) -> None:
        registry = self.orchestrator.tool_registry
        for name in registry.names:
            marker = "[green]on [/green]" if registry.is_enabled(name) else "[dim]off[/dim]"
            self.console.print(f"  {marker} {name} [dim]({registry.tool_type(name)})[/dim]")

    def _handle_command(self, command: str) -> bool:
        """Run a slash command. Returns False when the chat should exit."""
        name, separator, argument = command.partition(" ")
        if name in ("/quit", "/exit", "/q"):
            return False
        if name == "/reset":
            self.orchestrator.reset()
            self._pending_writes = []
            self.console.print("[yellow]Conversation reset[/yellow]")
        elif name == "/tools":
            if separator:
                self.orchestrator.configure_tools(parse_tool_names(argument) or [], self.orchestrator.tool_context)
            self._show_tools()
        elif name == "/autoapprove":
            gate = self.orchestrator.approval_gate
            enabled = not gate.policy.session_auto_approve
            gate.set_session_auto_approval(enabled)
            self.console.print(f"[yellow]Auto-approval {'enabled' if enabled else 'disabled'}[/yellow]")
        elif name == "/help":
            self.console.print(HELP_TEXT)
        else:
            self.console.print(f"[yellow]Unknown command: {name}[/yellow]")
        return True

    # Public methods _______________________________________________________________________________________________________

    def print_welcome(self) -> None:
        registry = self.orchestrator.tool_registry
        context = self.orchestrator.tool_context
        self.console.print()
        self.console.print("[bold cyan]Kubernetes Assistant[/bold cyan]")
        self.console.print(f"[dim]Model: {self.llm_model.value}[/dim]")
        self.console.print(f"[dim]Tools: {', '.join(registry.enabled_names) or '(none)'}[/dim]")
        self.console.print(f"[dim]API server: {context.api_server if context else '(not configured)'}[/dim]")
        self.console.print("[dim]Type /help for commands.[/dim]")
        self.console.print()

    async def run(self) -> None:
        """Run the interactive chat loop."""
        self.print_welcome()
        while True:
            try:
                user_input = await self._session.prompt_async(HTML("<b><ansicyan>You&gt;</ansicyan></b> "))
            except (KeyboardInterrupt, EOFError):
                self.console.print()
                break

            user_input = user_input.strip()
            if not user_input:
                continue
            if user_input.startswith("/"):
                if not self._handle_command(user_input):
                    break
                continue

            await self.orchestrator.user_send(user_input)
            if self._pending_writes:
                await self._confirm_pending_writes()

        self.console.print("[dim]Goodbye![/dim]")


def main() -> None:
    parser = argparse.ArgumentParser(description="Kubernetes assistant terminal chat")
    add_model_argument(parser)
    parser.add_argument(
        "--tools",
        type=str,
        default=None,
        help="Comma-separated list of enabled tools (default: all registered tools)",
    )
    parser.add_argument(
        "--context",
        type=str,
        default=None,
        help="Description of what the user is currently looking at",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    args = parser.parse_args()
    if args.quiet:
        set_log_level("WARNING")

    console = Console()
    llm_model = resolve_model(args.model, console)
    if Config.KUBERNETES_API_SERVER is None:
        console.print("[yellow]KUBERNETES_API_SERVER is not set; Kubernetes requests will fail.[/yellow]")

    chat = AssistantTerminalChat(
        llm_model=llm_model,
        console=console,
        enabled_tools=parse_tool_names(args.tools),
        current_context=args.context,
    )
    try:
        asyncio.run(chat.run())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
