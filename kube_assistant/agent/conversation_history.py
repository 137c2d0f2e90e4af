"""
kube_assistant/agent/conversation_history.py

Ordered log of conversation entries and the single source of truth for what the
model sees next.

Every tool call recorded on an assistant entry is answered by exactly one tool
entry before the next tool-call round. `validate_alignment()` restores that
pairing when a round ended without answering some calls.
"""

import json
from collections.abc import Iterator
from typing import Any

from kube_assistant.config import Config
from kube_assistant.data_models.conversation import (
    AssistantEntry,
    Entry,
    SystemEntry,
    ToolCallRef,
    ToolEntry,
    UserEntry,
)
from kube_assistant.utils.content_utils import sanitize, truncate_content
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


NO_RESPONSE_RECORDED_CONTENT = json.dumps({"error": True, "message": "no response recorded"})
AWAITING_CONFIRMATION_CONTENT = json.dumps({
    "status": "awaiting_user_confirmation",
    "message": "The request was handed to the user for confirmation. Its outcome is recorded once they decide.",
})


class ConversationHistory:
    """
    Typed, append-mostly history of one conversation.

    The only edits besides appending are `trim_after_last_tool_round()` (removal of
    stale entries), `retain_tool_calls()` (narrowing a batch to its approved calls),
    `replace_deferred_response()` (settling a deferred placeholder) and the insertion
    of tool entries answering the latest tool-call batch (`validate_alignment()`,
    `insert_tool_response()`). Deferred placeholders count as answers.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, max_tool_content_bytes: int = Config.TOOL_RESPONSE_MAX_BYTES) -> None:
        """
        Initialize an empty history.

        Args:
            max_tool_content_bytes: Cap for a single tool entry's content, and the
                aggregated tool-content budget of one model round.
        """
        self.max_tool_content_bytes = max_tool_content_bytes
        self._entries: list[Entry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(list(self._entries))

    def __getitem__(self, index: int) -> Entry:
        return self._entries[index]

    # Private methods ______________________________________________________________________________________________________

    def _cap_tool_entry(self, entry: ToolEntry) -> ToolEntry:
        capped = truncate_content(entry.content, self.max_tool_content_bytes)
        if capped is entry.content:
            return entry
        logger.warning(
            "Truncated response of tool call %s (%s) to %d bytes",
            entry.tool_call_id,
            entry.name,
            self.max_tool_content_bytes,
        )
        return entry.model_copy(update={"content": capped})

    def _last_tool_call_index(self) -> int | None:
        for index in range(len(self._entries) - 1, -1, -1):
            entry = self._entries[index]
            if isinstance(entry, AssistantEntry) and entry.tool_calls:
                return index
        return None

    def _last_user_index(self) -> int:
        for index in range(len(self._entries) - 1, -1, -1):
            if isinstance(self._entries[index], UserEntry):
                return index
        return -1

    def _deferred_response_index(self, tool_call_id: str) -> int | None:
        for index in range(len(self._entries) - 1, -1, -1):
            entry = self._entries[index]
            if isinstance(entry, ToolEntry) and entry.is_deferred and entry.tool_call_id == tool_call_id:
                return index
        return None

    def _tool_block_end(self, assistant_index: int) -> int:
        """Index right after the contiguous tool entries following `assistant_index`."""
        index = assistant_index + 1
        while index < len(self._entries) and isinstance(self._entries[index], ToolEntry):
            index += 1
        return index

    def _budget_tool_contents(self, budget: int) -> dict[int, str]:
        """
        Sanitize all tool contents and fit them into one aggregated byte budget.

        The budget is spent from the newest tool entry backwards, so older results are
        the ones truncated first.
        """
        contents: dict[int, str] = {}
        remaining = budget
        for index in range(len(self._entries) - 1, -1, -1):
            entry = self._entries[index]
            if not isinstance(entry, ToolEntry):
                continue
            content = sanitize(entry.content)
            size = len(content.encode("utf-8"))
            if size > remaining:
                content = truncate_content(content, remaining)
                remaining = 0
            else:
                remaining -= size
            contents[index] = content
        return contents

    # Public methods _______________________________________________________________________________________________________

    ## Reads

    @property
    def entries(self) -> list[Entry]:
        """Snapshot of the full history, display-only entries included."""
        return list(self._entries)

    def last_assistant_entry(self) -> AssistantEntry | None:
        for entry in reversed(self._entries):
            if isinstance(entry, AssistantEntry):
                return entry
        return None

    def last_user_message(self) -> str | None:
        index = self._last_user_index()
        return self._entries[index].content if index >= 0 else None

    def last_tool_call_entry(self) -> AssistantEntry | None:
        """The latest assistant entry that carries tool calls."""
        index = self._last_tool_call_index()
        return self._entries[index] if index is not None else None

    def find_tool_call(self, tool_call_id: str) -> ToolCallRef | None:
        """The most recent recorded tool call with this ID, from any batch."""
        for entry in reversed(self._entries):
            if isinstance(entry, AssistantEntry):
                for tool_call in entry.tool_calls:
                    if tool_call.id == tool_call_id:
                        return tool_call
        return None

    def has_deferred_response(self, tool_call_id: str) -> bool:
        return self._deferred_response_index(tool_call_id) is not None

    def answered_tool_call_ids(self) -> set[str]:
        """IDs of the latest tool-call batch that already have a tool entry."""
        index = self._last_tool_call_index()
        if index is None:
            return set()
        batch_ids = set(self._entries[index].tool_call_ids)
        return {
            entry.tool_call_id
            for entry in self._entries[index + 1:]
            if isinstance(entry, ToolEntry) and entry.tool_call_id in batch_ids
        }

    def recent_messages(self, limit: int = 5) -> list[dict[str, str]]:
        """The last `limit` model-visible entries as role/content pairs."""
        visible = [
            entry for entry in self._entries
            if not (isinstance(entry, AssistantEntry) and entry.is_display_only)
        ]
        return [{"role": entry.role, "content": entry.content} for entry in visible[-limit:]]

    ## Writes

    def append(self, entry: Entry) -> Entry:
        """
        Append an entry. Tool entries are capped to `max_tool_content_bytes`.

        Returns:
            The entry as stored (possibly truncated).
        """
        if isinstance(entry, ToolEntry):
            entry = self._cap_tool_entry(entry)
        self._entries.append(entry)
        return entry

    def insert_tool_response(self, entry: ToolEntry) -> ToolEntry:
        """
        Record a tool entry answering the latest tool-call batch.

        The entry is placed right after the batch's existing tool entries, ahead of
        anything appended later (e.g. a failure digest).

        Raises:
            ValueError: If there is no tool-call batch or the call is not part of it.
        """
        index = self._last_tool_call_index()
        if index is None or entry.tool_call_id not in self._entries[index].tool_call_ids:
            raise ValueError(f"Tool call {entry.tool_call_id} is not part of the latest tool-call batch")
        entry = self._cap_tool_entry(entry)
        self._entries.insert(self._tool_block_end(index), entry)
        return entry

    def replace_deferred_response(self, entry: ToolEntry) -> ToolEntry:
        """
        Replace the deferred placeholder answering `entry.tool_call_id`, in whichever batch it is.

        Raises:
            ValueError: If the call has no deferred placeholder.
        """
        index = self._deferred_response_index(entry.tool_call_id)
        if index is None:
            raise ValueError(f"Tool call {entry.tool_call_id} has no deferred response to replace")
        entry = self._cap_tool_entry(entry)
        self._entries[index] = entry
        return entry

    def retain_tool_calls(self, call_ids: list[str]) -> AssistantEntry | None:
        """
        Drop the calls outside `call_ids` from the latest tool-call batch.

        Returns:
            The batch's assistant entry as stored afterwards, or None without a batch.
        """
        index = self._last_tool_call_index()
        if index is None:
            return None
        entry = self._entries[index]
        keep = set(call_ids)
        kept = [tool_call for tool_call in entry.tool_calls if tool_call.id in keep]
        if len(kept) == len(entry.tool_calls):
            return entry
        dropped = [tool_call.id for tool_call in entry.tool_calls if tool_call.id not in keep]
        logger.info("Dropping unapproved tool call(s) from the batch: %s", ", ".join(dropped))
        updated = entry.model_copy(update={"tool_calls": kept})
        self._entries[index] = updated
        return updated

    def clear(self) -> None:
        self._entries = []

    ## Invariant maintenance

    def validate_alignment(self) -> list[ToolEntry]:
        """
        Answer every unanswered call of the latest tool-call batch with a synthesized failure.

        Returns:
            The synthesized tool entries (empty when the history was aligned).
        """
        index = self._last_tool_call_index()
        if index is None:
            return []

        assistant_entry = self._entries[index]
        answered = self.answered_tool_call_ids()
        synthesized = [
            ToolEntry(
                content=NO_RESPONSE_RECORDED_CONTENT,
                tool_call_id=tool_call.id,
                name=tool_call.name,
                success=False,
                error=True,
            )
            for tool_call in assistant_entry.tool_calls
            if tool_call.id not in answered
        ]
        if not synthesized:
            return []

        logger.warning(
            "Alignment violation: %d tool call(s) without response (%s); synthesizing failures",
            len(synthesized),
            ", ".join(entry.tool_call_id for entry in synthesized),
        )
        insert_at = self._tool_block_end(index)
        self._entries[insert_at:insert_at] = synthesized
        return synthesized

    def trim_after_last_tool_round(self) -> list[Entry]:
        """
        Remove stale speculative entries recorded after the latest tool-call batch.

        Removed: non-display assistant entries, duplicate tool entries, and tool entries
        answering no call of that batch.

        Returns:
            The removed entries, in history order.
        """
        index = self._last_tool_call_index()
        if index is None:
            return []

        batch_ids = set(self._entries[index].tool_call_ids)
        seen: set[str] = set()
        kept: list[Entry] = []
        removed: list[Entry] = []
        for entry in self._entries[index + 1:]:
            if isinstance(entry, AssistantEntry) and not entry.is_display_only:
                removed.append(entry)
            elif isinstance(entry, ToolEntry) and (entry.tool_call_id not in batch_ids or entry.tool_call_id in seen):
                removed.append(entry)
            else:
                if isinstance(entry, ToolEntry):
                    seen.add(entry.tool_call_id)
                kept.append(entry)

        if removed:
            logger.warning("Trimmed %d stale entries after the last tool round", len(removed))
            self._entries[index + 1:] = kept
        return removed

    ## Model view

    def prepare_for_model(
        self,
        system_prompt: str | None = None,
        fold_tool_results: bool = False,
        max_tool_content_bytes: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Build the exact message sequence for the next model round.

        - System entries equal to the static system prompt are dropped, and so are
          system notices recorded before the latest user entry.
        - Display-only entries are dropped.
        - Tool contents are sanitized and fitted into the aggregated byte budget.
        - With `fold_tool_results`, tool-call entries become plain assistant text and
          tool entries become assistant text "Tool Response (<id>): <content>".

        Args:
            system_prompt: The static system prompt sent alongside the messages.
            fold_tool_results: Fold tool traffic into assistant text for providers
                without a function-result message type.
            max_tool_content_bytes: Aggregated tool-content budget; defaults to the cap.

        Returns:
            Provider-neutral message dicts.
        """
        budget = self.max_tool_content_bytes if max_tool_content_bytes is None else max_tool_content_bytes
        tool_contents = self._budget_tool_contents(budget)
        last_user_index = self._last_user_index()
        static_prompt = system_prompt.strip() if system_prompt else None

        messages: list[dict[str, Any]] = []
        for index, entry in enumerate(self._entries):
            if isinstance(entry, UserEntry):
                messages.append({"role": "user", "content": entry.content})

            elif isinstance(entry, SystemEntry):
                if static_prompt is not None and entry.content.strip() == static_prompt:
                    continue
                if index < last_user_index:
                    continue
                messages.append({"role": "system", "content": entry.content})

            elif isinstance(entry, AssistantEntry):
                if entry.is_display_only:
                    continue
                if not entry.tool_calls:
                    messages.append({"role": "assistant", "content": entry.content})
                elif fold_tool_results:
                    if entry.content:
                        messages.append({"role": "assistant", "content": entry.content})
                else:
                    messages.append({
                        "role": "assistant",
                        "content": entry.content,
                        "tool_calls": [
                            {"call_id": call.id, "name": call.name, "arguments": call.arguments}
                            for call in entry.tool_calls
                        ],
                    })

            elif isinstance(entry, ToolEntry):
                content = tool_contents[index]
                if fold_tool_results:
                    messages.append({
                        "role": "assistant",
                        "content": f"Tool Response ({entry.tool_call_id}): {content}",
                    })
                else:
                    messages.append({
                        "role": "tool",
                        "tool_call_id": entry.tool_call_id,
                        "name": entry.name,
                        "content": content,
                    })

        return messages
