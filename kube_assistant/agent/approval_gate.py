"""
kube_assistant/agent/approval_gate.py

Human approval of tool-call batches.

The gate decides per call whether it is auto-approved (session flag, per-tool
set, built-in tools when configured). The remaining calls go to the host as one
ApprovalRequest through `request_callable`; the host answers by calling
`approve_tools()` or `deny_tools()` with the request ID.
"""

import asyncio
from collections.abc import Callable
from uuid import uuid4

from kube_assistant.config import Config
from kube_assistant.data_models.approval import (
    ApprovalContext,
    ApprovalRequest,
    ApprovalState,
    SessionPolicy,
)
from kube_assistant.data_models.tools import ToolCall, ToolType
from kube_assistant.utils.exceptions import ApprovalSupersededError, ToolApprovalDeniedError
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


ApprovalRequestCallable = Callable[[ApprovalRequest], None]


class ApprovalGate:
    """
    Approval state machine: idle -> awaiting_approval -> approved | denied -> idle.

    Only one batch can await approval at a time; a newer interactive batch
    supersedes the pending one, which fails with ApprovalSupersededError.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(
        self,
        request_callable: ApprovalRequestCallable | None = None,
        auto_approve_builtin: bool = Config.AUTO_APPROVE_BUILTIN_TOOLS,
        policy: SessionPolicy | None = None,
    ) -> None:
        """
        Initialize the gate.

        Args:
            request_callable: Host callback receiving interactive approval requests.
                It may answer synchronously (approve_tools/deny_tools) or later.
            auto_approve_builtin: Approve built-in tools without asking.
            policy: Session policy to start from.
        """
        self.request_callable = request_callable
        self.auto_approve_builtin = auto_approve_builtin
        self._policy = policy or SessionPolicy()
        self._state = ApprovalState.IDLE
        self._last_decision: ApprovalState | None = None
        self._pending: ApprovalRequest | None = None
        self._pending_future: asyncio.Future[list[str]] | None = None

    # Private methods ______________________________________________________________________________________________________

    def _is_auto_approved(self, tool_call: ToolCall) -> bool:
        if self._policy.is_auto_approved(tool_call.name):
            return True
        return self.auto_approve_builtin and tool_call.type == ToolType.BUILTIN

    def _lookup_pending(self, request_id: str) -> asyncio.Future[list[str]] | None:
        if self._pending is None or self._pending.request_id != request_id or self._pending_future is None:
            logger.warning("Ignoring decision for unknown approval request %s", request_id)
            return None
        if self._pending_future.done():
            logger.warning("Approval request %s was already decided", request_id)
            return None
        return self._pending_future

    @staticmethod
    def _settle(future: asyncio.Future[list[str]], result: list[str] | None, error: Exception | None) -> None:
        """Resolve `future` on its own loop, whichever thread the host calls from."""
        def settle() -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result or [])

        loop = future.get_loop()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            settle()
        else:
            loop.call_soon_threadsafe(settle)

    # Public methods _______________________________________________________________________________________________________

    ## State

    @property
    def state(self) -> ApprovalState:
        return self._state

    @property
    def last_decision(self) -> ApprovalState | None:
        """APPROVED or DENIED for the most recently resolved batch."""
        return self._last_decision

    @property
    def pending_request(self) -> ApprovalRequest | None:
        return self._pending

    @property
    def policy(self) -> SessionPolicy:
        return self._policy

    ## Policy

    def set_session_auto_approval(self, enabled: bool) -> None:
        self._policy.session_auto_approve = enabled
        logger.info("Session auto-approval %s", "enabled" if enabled else "disabled")

    def set_tool_auto_approval(self, tool_name: str, enabled: bool) -> None:
        if enabled:
            self._policy.per_tool_auto_approve.add(tool_name)
        else:
            self._policy.per_tool_auto_approve.discard(tool_name)
        logger.info("Auto-approval for tool %s %s", tool_name, "enabled" if enabled else "disabled")

    def clear_session(self) -> None:
        """Forget remembered choices and deny any pending request."""
        self._policy.clear()
        if self._pending is not None and self._pending_future is not None:
            self._settle(self._pending_future, None, ToolApprovalDeniedError("Approval session was reset"))
        logger.info("Approval session cleared")

    ## Requests

    async def request(self, batch: list[ToolCall], context: ApprovalContext | None = None) -> list[str]:
        """
        Decide on a batch of tool calls.

        Args:
            batch: The tool calls of one model round.
            context: Snapshot shown next to the interactive request.

        Returns:
            IDs of the approved calls, in batch order.

        Raises:
            ToolApprovalDeniedError: The batch was denied (or superseded).
        """
        if not batch:
            return []

        auto_approved = [call.id for call in batch if self._is_auto_approved(call)]
        interactive = [call for call in batch if call.id not in auto_approved]
        if not interactive:
            logger.info("Auto-approved all %d tool call(s)", len(batch))
            self._last_decision = ApprovalState.APPROVED
            return [call.id for call in batch]

        if self.request_callable is None:
            self._last_decision = ApprovalState.DENIED
            raise ToolApprovalDeniedError("No approval handler is configured for interactive tool calls")

        if self._pending is not None and self._pending_future is not None:
            logger.info("Superseding pending approval request %s", self._pending.request_id)
            self._settle(
                self._pending_future,
                None,
                ApprovalSupersededError(f"Approval request {self._pending.request_id} was superseded"),
            )

        request = ApprovalRequest(
            request_id=f"approval_{uuid4().hex[:12]}",
            tool_calls=interactive,
            context=context or ApprovalContext(),
        )
        future: asyncio.Future[list[str]] = asyncio.get_running_loop().create_future()
        self._pending = request
        self._pending_future = future
        self._state = ApprovalState.AWAITING_APPROVAL
        logger.info(
            "Awaiting approval %s for %s",
            request.request_id,
            ", ".join(call.name for call in interactive),
        )

        try:
            self.request_callable(request)
            approved_interactive = await future
        except ToolApprovalDeniedError:
            self._last_decision = ApprovalState.DENIED
            raise
        finally:
            if self._pending is request:
                self._pending = None
                self._pending_future = None
                self._state = ApprovalState.IDLE

        self._last_decision = ApprovalState.APPROVED
        approved = set(auto_approved) | set(approved_interactive)
        return [call.id for call in batch if call.id in approved]

    def approve_tools(self, request_id: str, approved_ids: list[str], remember_choice: bool = False) -> bool:
        """
        Approve some or all calls of a pending request.

        Approving none of them denies the request.

        Args:
            request_id: ID of the pending request.
            approved_ids: IDs of the approved calls.
            remember_choice: Remember the decision for the rest of the session: all
                calls approved sets the session flag, a subset adds each approved tool's name.

        Returns:
            False if the request ID is not pending.
        """
        future = self._lookup_pending(request_id)
        if future is None:
            return False

        request = self._pending
        requested_ids = request.tool_call_ids
        approved = [call_id for call_id in requested_ids if call_id in set(approved_ids)]
        ignored = set(approved_ids) - set(requested_ids)
        if ignored:
            logger.warning("Ignoring approvals for calls outside request %s: %s", request_id, ", ".join(sorted(ignored)))

        if not approved:
            self._settle(future, None, ToolApprovalDeniedError("User approved none of the requested tool calls"))
            return True

        if remember_choice:
            if len(approved) == len(requested_ids):
                self._policy.session_auto_approve = True
                logger.info("Remembering approval for all tools in this session")
            else:
                names = {call.name for call in request.tool_calls if call.id in approved}
                self._policy.per_tool_auto_approve.update(names)
                logger.info("Remembering approval for tools: %s", ", ".join(sorted(names)))

        logger.info("Approved %d/%d call(s) of request %s", len(approved), len(requested_ids), request_id)
        self._settle(future, approved, None)
        return True

    def deny_tools(self, request_id: str) -> bool:
        """
        Deny a pending request as a whole.

        Returns:
            False if the request ID is not pending.
        """
        future = self._lookup_pending(request_id)
        if future is None:
            return False
        logger.info("Denied approval request %s", request_id)
        self._settle(future, None, ToolApprovalDeniedError("User denied tool execution"))
        return True
