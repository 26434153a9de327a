"""AI Agents package."""

from src.agents.assistant import (
    ASSISTANT_TOOLS,
    AssistantAction,
    AssistantError,
    AssistantReply,
    FinanceAssistant,
    UnknownActionError,
    action_to_record,
    build_financial_context,
)

__all__ = [
    "ASSISTANT_TOOLS",
    "AssistantAction",
    "AssistantError",
    "AssistantReply",
    "FinanceAssistant",
    "UnknownActionError",
    "action_to_record",
    "build_financial_context",
]
