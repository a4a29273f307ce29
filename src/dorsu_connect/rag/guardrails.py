"""Conversation guardrails: reset commands and clarification prompts."""

import re

from dorsu_connect.shared.schemas import QueryAnalysis

RESET_PATTERN = re.compile(
    r"^(?:please\s+)?(?:clear|reset|restart|start|new|fresh|forget|remove)"
    r"(?:\s+(?:the|my|this))?\s+(?:chat|conversation|context|topic|thread|history)"
    r"(?:\s+please|\s*)$",
    re.IGNORECASE,
)

SIMPLE_RESET_COMMANDS = frozenset(
    {
        "clear",
        "reset",
        "restart",
        "new chat",
        "new conversation",
        "start over",
        "start fresh",
        "forget everything",
    }
)

_TIMEFRAME_TOPIC = re.compile(r"schedule|exam|deadline|date")
_TIMEFRAME_WORD = re.compile(r"\b(when|date|time)\b")
_QUESTION_WORD = re.compile(r"\b(what|which|who|how|when|where)\b")


def is_conversation_reset_request(prompt: str) -> bool:
    """
    True for "clear", "start over", "please reset the conversation" and the like.

    Example:
        >>> is_conversation_reset_request("Reset my chat please")
        True
        >>> is_conversation_reset_request("How do I reset my portal password?")
        False
    """
    normalized = (prompt or "").strip().lower()
    if not normalized:
        return False
    if normalized in SIMPLE_RESET_COMMANDS:
        return True
    return RESET_PATTERN.match(normalized) is not None


def build_clarification_message(analysis: QueryAnalysis) -> str:
    """Ask the user to narrow a vague question, with hints for what is missing."""
    if analysis.vague_reason:
        reason = f"I noticed {analysis.vague_reason}."
    else:
        reason = "I just want to be sure I understand the exact details you need."

    query = analysis.original_query.lower()
    hints = []
    if not analysis.detected_topics:
        hints.append("mention the office, program, or event you are referring to")
    if query and _TIMEFRAME_TOPIC.search(query) and not _TIMEFRAME_WORD.search(query):
        hints.append("include the date or timeframe you care about")
    if not _QUESTION_WORD.search(query):
        hints.append("add the specific information you need (e.g., requirements, head, location)")

    hint_text = f" Please {' or '.join(hints)}." if hints else ""
    return f"{reason}{hint_text} Could you clarify or add more context?"
