"""
kube_assistant/agent/orchestrator.py

Agent orchestrator: turns one user utterance into zero or more tool rounds and
a final assistant entry.

Contains:
- AgentOrchestrator: user_send / abort / configure_tools / reset
- OrchestratorState: what the orchestrator is currently waiting on
"""

import asyncio
import json
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from kube_assistant.agent.approval_gate import ApprovalGate, ApprovalRequestCallable
from kube_assistant.agent.cancellation import CancellationToken
from kube_assistant.agent.conversation_history import AWAITING_CONFIRMATION_CONTENT, ConversationHistory
from kube_assistant.agent.error_messages import CANCELLED_MESSAGE, ModelErrorCategory, format_model_error
from kube_assistant.agent.prompts import (
    DISABLED_TOOLS_TEMPLATE,
    TOO_MANY_ROUNDS_MESSAGE,
    TOOLS_DISABLED_APOLOGY,
    build_failure_digest,
    build_system_prompt,
)
from kube_assistant.config import Config
from kube_assistant.data_models.approval import ApprovalContext, ApprovalRequest
from kube_assistant.data_models.conversation import (
    AssistantEntry,
    Entry,
    SystemEntry,
    ToolCallRef,
    ToolEntry,
    UserEntry,
)
from kube_assistant.data_models.llms.interaction import (
    ChatResponseEmittedMessage,
    EmittedMessage,
    ErrorEmittedMessage,
    LLMChatResponse,
    LLMToolCall,
    ToolApprovalRequestEmittedMessage,
    ToolInvocationResultEmittedMessage,
)
from kube_assistant.data_models.tools import KubernetesToolContext, ToolCall, ToolResult, ToolType
from kube_assistant.llms.llm_client import LLMClient
from kube_assistant.llms.model_invoker import ModelInvoker
from kube_assistant.tools.tool_executor import RegistryToolExecutor, ToolExecutor
from kube_assistant.tools.tool_registry import ToolRegistry
from kube_assistant.utils.exceptions import (
    CancellationError,
    DeferredToolResponseError,
    ToolApprovalDeniedError,
    TurnInProgressError,
)
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


FAILURE_DIGEST_NAME = "error_handler"


class OrchestratorState(StrEnum):
    """What the orchestrator is doing right now."""
    IDLE = "idle"
    INVOKING_MODEL = "invoking_model"
    AWAITING_APPROVAL = "awaiting_approval"
    EXECUTING_TOOLS = "executing_tools"


class _ToolOutcome(BaseModel):
    """Outcome of one approved tool call: a result, or the error that replaced it."""
    tool_call: ToolCallRef
    arguments: dict[str, Any] | str
    result: ToolResult | None = None
    error: str | None = None


class AgentOrchestrator:
    """
    State machine coordinating the model, the approval gate and tool execution.

    Turns are strictly sequential: a second `user_send` while one is running raises
    TurnInProgressError. Every other failure ends the turn with a terminal entry.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(
        self,
        model_invoker: ModelInvoker,
        tool_registry: ToolRegistry | None = None,
        tool_executor: ToolExecutor | None = None,
        approval_gate: ApprovalGate | None = None,
        emit_message_callable: Callable[[EmittedMessage], None] | None = None,
        tool_context: KubernetesToolContext | None = None,
        max_rounds: int = Config.AGENT_MAX_ROUNDS,
        max_tool_workers: int = Config.TOOL_EXECUTION_MAX_WORKERS,
        history: ConversationHistory | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            model_invoker: Model used for every round.
            tool_registry: Known tools and the enabled subset. Defaults to the built-in tools.
            tool_executor: Executes single tool calls. Defaults to dispatching through the registry.
            approval_gate: Gate for tool-call batches. Defaults to one that forwards
                interactive requests as ToolApprovalRequestEmittedMessage.
            emit_message_callable: Callback to emit messages to the host.
            tool_context: Cluster context handed to tool executions.
            max_rounds: Maximum model rounds per turn.
            max_tool_workers: Maximum tool calls executed concurrently.
            history: Existing history to continue.
        """
        self.model_invoker = model_invoker
        self.tool_registry = tool_registry if tool_registry is not None else ToolRegistry.with_builtin_tools()
        self.tool_executor = tool_executor or RegistryToolExecutor(self.tool_registry)
        self.approval_gate = approval_gate or ApprovalGate(
            request_callable=self._emit_approval_request if emit_message_callable else None,
        )
        self.tool_context = tool_context
        self.max_rounds = max_rounds
        self.max_tool_workers = max_tool_workers

        self._emit_message_callable = emit_message_callable
        self._history = history or ConversationHistory()
        self._current_context: str | None = None
        self._state = OrchestratorState.IDLE
        self._turn_active = False
        self._cancellation_token: CancellationToken | None = None

    def __repr__(self) -> str:
        return f"AgentOrchestrator(model_invoker={self.model_invoker!r}, entries={len(self._history)})"

    # Private methods ______________________________________________________________________________________________________

    ## Emission

    def _emit_message(self, message: EmittedMessage) -> None:
        """Emit a message via the callback."""
        if self._emit_message_callable is not None:
            self._emit_message_callable(message)

    def _emit_approval_request(self, request: ApprovalRequest) -> None:
        self._emit_message(ToolApprovalRequestEmittedMessage(request=request))

    def _append_assistant(self, entry: AssistantEntry) -> AssistantEntry:
        self._history.append(entry)
        if entry.content:
            self._emit_message(ChatResponseEmittedMessage(content=entry.content, is_error=entry.error))
        return entry

    def _finish_with_model_error(self, error: Exception) -> AssistantEntry:
        category, text = format_model_error(error)
        if category == ModelErrorCategory.CANCELLED:
            logger.info("Turn cancelled")
        else:
            logger.error("Model round failed (%s): %s", category, error, exc_info=error)
        entry = AssistantEntry(content=text, error=True)
        self._history.append(entry)
        self._emit_message(ErrorEmittedMessage(error=text, category=category))
        return entry

    def _finish_cancelled(self) -> AssistantEntry:
        return self._finish_with_model_error(CancellationError(CANCELLED_MESSAGE))

    ## Model rounds

    def _build_system_prompt(self, round_index: int) -> str:
        enabled = self.tool_registry.enabled_names
        has_external = any(self.tool_registry.tool_type(name) == ToolType.EXTERNAL for name in enabled)
        return build_system_prompt(
            tools_enabled=bool(enabled),
            has_external_tools=has_external,
            current_context=self._current_context,
            tool_response_round=round_index > 0,
        )

    async def _invoke_model(self, round_index: int, token: CancellationToken) -> LLMChatResponse:
        if round_index > 0:
            self._history.validate_alignment()

        system_prompt = self._build_system_prompt(round_index)
        fold = not getattr(self.model_invoker, "supports_tool_messages", True)
        messages = self._history.prepare_for_model(system_prompt=system_prompt, fold_tool_results=fold)
        tools = self.tool_registry.definitions()

        self._state = OrchestratorState.INVOKING_MODEL
        logger.debug("Round %d: invoking model with %d messages", round_index + 1, len(messages))
        return await token.run(self.model_invoker.invoke(messages, system_prompt=system_prompt, tools=tools))

    ## Tool rounds

    @staticmethod
    def _normalize_tool_calls(tool_calls: list[LLMToolCall], round_index: int) -> list[ToolCallRef]:
        """Turn provider tool calls into refs with unique, deterministic IDs."""
        refs: list[ToolCallRef] = []
        seen: set[str] = set()
        for index, tool_call in enumerate(tool_calls):
            call_id = tool_call.call_id
            if not call_id or call_id in seen:
                replacement = f"call_{round_index}_{index}"
                suffix = 0
                while replacement in seen:
                    suffix += 1
                    replacement = f"call_{round_index}_{index}_{suffix}"
                logger.warning("Tool call %r has a missing or duplicate ID; using %s", tool_call.call_id, replacement)
                call_id = replacement
            seen.add(call_id)
            refs.append(ToolCallRef(id=call_id, name=tool_call.tool_name, arguments=tool_call.tool_arguments))
        return refs

    def _to_runtime_call(self, ref: ToolCallRef) -> ToolCall:
        tool = self.tool_registry.get(ref.name)
        return ToolCall.from_ref(
            ref,
            tool_type=self.tool_registry.tool_type(ref.name),
            description=tool.description if tool is not None else None,
        )

    def _approval_context(self) -> ApprovalContext:
        return ApprovalContext(
            user_message=self._history.last_user_message(),
            conversation_history=self._history.recent_messages(limit=5),
            kubernetes_context=self.tool_context.summary() if self.tool_context else None,
        )

    def _execute_one(self, ref: ToolCallRef, context: KubernetesToolContext | None) -> _ToolOutcome:
        """Run one call on a worker thread. Never raises."""
        arguments = ref.arguments
        if isinstance(arguments, str):
            try:
                decoded = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                return _ToolOutcome(tool_call=ref, arguments=arguments, error=f"Invalid JSON arguments: {e}")
            if not isinstance(decoded, dict):
                return _ToolOutcome(tool_call=ref, arguments=arguments, error="Tool arguments must be a JSON object")
            arguments = decoded

        try:
            result = self.tool_executor.execute(ref.name, arguments, ref.id, context)
        except Exception as e:
            logger.warning("Tool %s (call %s) failed: %s", ref.name, ref.id, e)
            return _ToolOutcome(tool_call=ref, arguments=arguments, error=str(e) or e.__class__.__name__)
        return _ToolOutcome(tool_call=ref, arguments=arguments, result=result)

    async def _execute_batch(self, refs: list[ToolCallRef]) -> list[_ToolOutcome]:
        """Execute calls concurrently; outcomes come back in batch order."""
        if not refs:
            return []
        context = self.tool_context
        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=min(len(refs), self.max_tool_workers)) as executor:
            futures = [loop.run_in_executor(executor, self._execute_one, ref, context) for ref in refs]
            return list(await asyncio.gather(*futures))

    def _record_outcomes(self, outcomes: list[_ToolOutcome]) -> list[str]:
        """
        Append tool entries in batch order and return the failed operations.

        Thrown errors are always recorded. Results that opt out of history are
        recorded as a deferred placeholder, settled later by record_deferred_tool_response().
        """
        failed_operations: list[str] = []
        for outcome in outcomes:
            ref = outcome.tool_call
            if outcome.error is not None:
                content = json.dumps({
                    "error": True,
                    "message": outcome.error,
                    "toolName": ref.name,
                    "request": outcome.arguments,
                    "userFriendlyMessage": f"Failed to execute {ref.name}: {outcome.error}",
                })
                self._history.append(ToolEntry(
                    content=content,
                    tool_call_id=ref.id,
                    name=ref.name,
                    success=False,
                    error=True,
                ))
                failed_operations.append(f"{ref.name}: {outcome.error}")
                self._emit_message(ToolInvocationResultEmittedMessage(tool_call=ref, content=content, is_error=True))
                continue

            result = outcome.result
            if result.is_error:
                failed_operations.append(f"{ref.name}: {result.error_message or result.content}")
            if result.should_add_to_history:
                self._history.append(ToolEntry(
                    content=result.content,
                    tool_call_id=ref.id,
                    name=ref.name,
                    success=not result.is_error,
                    error=result.is_error,
                ))
            else:
                logger.debug("Tool %s (call %s) deferred its response", ref.name, ref.id)
                self._history.append(ToolEntry(
                    content=AWAITING_CONFIRMATION_CONTENT,
                    tool_call_id=ref.id,
                    name=ref.name,
                    is_deferred=True,
                ))
            self._emit_message(ToolInvocationResultEmittedMessage(
                tool_call=ref,
                content=result.content,
                is_error=result.is_error,
            ))
        return failed_operations

    async def _run_tool_round(
        self,
        response: LLMChatResponse,
        round_index: int,
        token: CancellationToken,
    ) -> Entry | None:
        """
        Handle the tool calls of one model round.

        Returns:
            The terminal entry of the turn, or None to run another model round.
        """
        enabled = set(self.tool_registry.enabled_names)
        if not enabled:
            logger.warning("Model requested %d tool call(s) but no tools are enabled", len(response.tool_calls))
            return self._append_assistant(AssistantEntry(content=TOOLS_DISABLED_APOLOGY))

        refs = self._normalize_tool_calls(response.tool_calls, round_index)
        allowed = [ref for ref in refs if ref.name in enabled]
        dropped = [ref for ref in refs if ref.name not in enabled]
        if dropped:
            logger.warning("Dropping calls to disabled tools: %s", ", ".join(ref.name for ref in dropped))
        if not allowed:
            tool_names = ", ".join(dict.fromkeys(ref.name for ref in dropped))
            return self._append_assistant(AssistantEntry(content=DISABLED_TOOLS_TEMPLATE.format(tool_names=tool_names)))

        assistant_entry = self._append_assistant(AssistantEntry(content=response.content or "", tool_calls=allowed))

        self._state = OrchestratorState.AWAITING_APPROVAL
        try:
            approved_ids = await token.run(self.approval_gate.request(
                [self._to_runtime_call(ref) for ref in allowed],
                self._approval_context(),
            ))
        except ToolApprovalDeniedError as e:
            logger.info("Tool batch denied: %s", e)
            return assistant_entry
        except CancellationError:
            return self._finish_cancelled()
        except Exception as e:
            logger.error("Approval of tool batch failed: %s", e, exc_info=e)
            return assistant_entry

        approved = [ref for ref in allowed if ref.id in set(approved_ids)]
        if len(approved) < len(allowed):
            logger.info("Approved %d of %d tool call(s)", len(approved), len(allowed))
            self._history.retain_tool_calls([ref.id for ref in approved])

        self._state = OrchestratorState.EXECUTING_TOOLS
        outcomes = await self._execute_batch(approved)
        failed_operations = self._record_outcomes(outcomes)
        if failed_operations:
            logger.warning("Tool execution failures: %s", "; ".join(failed_operations))
            self._history.append(SystemEntry(
                content=build_failure_digest(failed_operations),
                name=FAILURE_DIGEST_NAME,
            ))

        if token.is_cancelled:
            return self._finish_cancelled()

        follow_up = any(outcome.error is not None or outcome.result.should_process_follow_up for outcome in outcomes)
        if not follow_up:
            logger.debug("All tool responses opted out of follow-up")
            return self._history.last_assistant_entry()

        self._history.trim_after_last_tool_round()
        return None

    async def _run_turn(self, token: CancellationToken) -> Entry:
        for round_index in range(self.max_rounds):
            try:
                response = await self._invoke_model(round_index, token)
            except Exception as e:
                return self._finish_with_model_error(e)

            if not response.tool_calls:
                return self._append_assistant(AssistantEntry(content=response.content or ""))

            terminal = await self._run_tool_round(response, round_index, token)
            if terminal is not None:
                return terminal

        logger.warning("Turn hit the maximum number of rounds (%d)", self.max_rounds)
        text = TOO_MANY_ROUNDS_MESSAGE.format(max_rounds=self.max_rounds)
        entry = AssistantEntry(content=text, error=True)
        self._history.append(entry)
        self._emit_message(ErrorEmittedMessage(error=text, category="too_many_rounds"))
        return entry

    # Public methods _______________________________________________________________________________________________________

    @classmethod
    def from_config(
        cls,
        model_name: str | None = None,
        emit_message_callable: Callable[[EmittedMessage], None] | None = None,
        approval_request_callable: ApprovalRequestCallable | None = None,
        tool_context: KubernetesToolContext | None = None,
    ) -> "AgentOrchestrator":
        """
        Wire the reference collaborators from Config.

        Args:
            model_name: Model value such as "gpt-5.1"; defaults to Config.DEFAULT_MODEL.
            emit_message_callable: Callback to emit messages to the host.
            approval_request_callable: Host callback for interactive approval requests;
                defaults to emitting them through `emit_message_callable`.
            tool_context: Cluster context; defaults to the KUBERNETES_* settings.
        """
        if tool_context is None and Config.KUBERNETES_API_SERVER:
            tool_context = KubernetesToolContext(
                api_server=Config.KUBERNETES_API_SERVER,
                token=Config.KUBERNETES_TOKEN,
                verify_ssl=Config.KUBERNETES_VERIFY_SSL,
                timeout=Config.KUBERNETES_REQUEST_TIMEOUT,
            )
        orchestrator = cls(
            model_invoker=LLMClient.from_model_name(model_name or Config.DEFAULT_MODEL),
            emit_message_callable=emit_message_callable,
            tool_context=tool_context,
        )
        if approval_request_callable is not None:
            orchestrator.approval_gate.request_callable = approval_request_callable
        return orchestrator

    ## State

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._turn_active

    @property
    def history(self) -> list[Entry]:
        """Snapshot of the full history."""
        return self._history.entries

    def get_entries(self) -> list[Entry]:
        return self._history.entries

    ## Configuration

    def configure_tools(
        self,
        enabled_tool_names: list[str],
        context: KubernetesToolContext | dict[str, Any] | None = None,
    ) -> None:
        """
        Replace the enabled-tool set and the context passed to tool executions.

        Args:
            enabled_tool_names: Names of the tools to enable; unregistered names are ignored.
            context: Cluster context (model or plain dict).
        """
        self.tool_registry.set_enabled(enabled_tool_names)
        if isinstance(context, dict):
            context = KubernetesToolContext.model_validate(context)
        self.tool_context = context
        logger.info("Enabled tools: %s", ", ".join(self.tool_registry.enabled_names) or "(none)")

    def set_current_context(self, context: str | None) -> None:
        """Set the description of what the user currently sees, embedded in the system prompt."""
        self._current_context = context

    def add_display_message(self, content: str) -> AssistantEntry:
        """Append an assistant entry shown to the user but never sent to the model."""
        entry = AssistantEntry(content=content, is_display_only=True)
        self._history.append(entry)
        return entry

    ## Turns

    async def user_send(self, text: str) -> Entry:
        """
        Run one turn.

        Args:
            text: The user's message.

        Returns:
            The terminal entry of the turn.

        Raises:
            TurnInProgressError: If a turn is already running.
        """
        if self._turn_active:
            raise TurnInProgressError("A turn is already in progress for this conversation")

        self._turn_active = True
        token = CancellationToken()
        self._cancellation_token = token
        try:
            healed = self._history.validate_alignment()
            if healed:
                logger.info("Healed %d unanswered tool call(s) from the previous turn", len(healed))
            self._history.append(UserEntry(content=text))
            return await self._run_turn(token)
        finally:
            self._turn_active = False
            self._cancellation_token = None
            self._state = OrchestratorState.IDLE

    def abort(self) -> None:
        """Cancel the in-flight turn. Idempotent; no-op when idle."""
        token = self._cancellation_token
        if token is None or token.is_cancelled:
            return
        logger.info("Aborting current turn (state=%s)", self._state)
        token.cancel()

    def reset(self) -> None:
        """Clear the history and the session approval policy."""
        self.abort()
        self._history.clear()
        self.approval_gate.clear_session()
        logger.info("Conversation reset")

    def record_deferred_tool_response(self, tool_call_id: str, content: str, success: bool = True) -> ToolEntry:
        """
        Record the response of a tool call whose execution was deferred (e.g. a write
        request confirmed later in the UI).

        The call's "awaiting confirmation" placeholder is replaced wherever its batch
        sits in the history. A call of the latest batch with no entry at all is answered
        directly.

        Raises:
            DeferredToolResponseError: If a turn is running, the call was never issued,
                or it already has a final response.
        """
        if self._turn_active:
            raise DeferredToolResponseError("Cannot record a deferred tool response while a turn is running")

        tool_call = self._history.find_tool_call(tool_call_id)
        if tool_call is None:
            raise DeferredToolResponseError(f"Tool call {tool_call_id} was never issued in this conversation")

        entry = ToolEntry(
            content=content,
            tool_call_id=tool_call_id,
            name=tool_call.name,
            success=success,
            error=not success,
        )
        if self._history.has_deferred_response(tool_call_id):
            entry = self._history.replace_deferred_response(entry)
        else:
            last_batch = self._history.last_tool_call_entry()
            unanswered = (
                last_batch is not None
                and tool_call_id in last_batch.tool_call_ids
                and tool_call_id not in self._history.answered_tool_call_ids()
            )
            if not unanswered:
                raise DeferredToolResponseError(f"Tool call {tool_call_id} already has a response")
            entry = self._history.insert_tool_response(entry)
        logger.info("Recorded deferred response for %s (call %s)", tool_call.name, tool_call_id)
        return entry
