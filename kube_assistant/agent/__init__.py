"""
Kube assistant agent module.

This module contains the orchestrator that drives a conversation turn and the
components it coordinates.
"""

from kube_assistant.agent.approval_gate import ApprovalGate
from kube_assistant.agent.conversation_history import ConversationHistory
from kube_assistant.agent.orchestrator import AgentOrchestrator, OrchestratorState

__all__ = [
    "AgentOrchestrator",
    "ApprovalGate",
    "ConversationHistory",
    "OrchestratorState",
]
