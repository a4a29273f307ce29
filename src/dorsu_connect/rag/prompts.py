"""
Prompts Module - Prompt templates for knowledge-grounded answers.
=================================================================

Provides prompt templates that enforce:
- Grounding (answer only from the knowledge base context)
- An explicit "I don't have that information yet" when context is missing
- Consistent formatting for links, lists and calendar dates
"""

from datetime import datetime
from typing import Optional

from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import ConversationTurn

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# System Prompts
# ─────────────────────────────────────────────────────────────────────────────


SYSTEM_PROMPT_BASE = """You are the DOrSU Assistant, a friendly and knowledgeable guide for Davao Oriental State University (DOrSU) in Mati City, Davao Oriental, Philippines. You help students, faculty and visitors with questions about the university.

CRITICAL RULES YOU MUST FOLLOW:

1. GROUNDING: Use ONLY the knowledge base context provided below. Never rely on outside knowledge about the university.

2. MISSING INFORMATION: If the context does not answer the question, say "I don't have that information yet." Do not guess names, dates or numbers.

3. POSITION HOLDERS: When naming office holders, add "as of {year}".

4. LINKS: Copy URLs exactly from the context and prefix them with "Link:".

5. FORMAT: Be concise and direct. Use numbered lists with a blank line between items. Match the user's language and tone."""


CALENDAR_INSTRUCTIONS = """

CALENDAR EVENTS:
- Use the exact dates shown under SCHEDULE EVENTS AND ANNOUNCEMENTS
- Mention the semester when it is given
- If an event has a date range, give both the start and end dates"""


NO_DATA_INSTRUCTIONS = """

IMPORTANT: The knowledge base returned no data for this question. Tell the user you don't have that information yet and suggest contacting the relevant DOrSU office."""


# ─────────────────────────────────────────────────────────────────────────────
# User Prompt Template
# ─────────────────────────────────────────────────────────────────────────────


USER_PROMPT_TEMPLATE = """{history}=== KNOWLEDGE BASE ===
{context}
=== END KNOWLEDGE BASE ===

Question: {query}"""


def format_history(history: Optional[list[ConversationTurn]], max_turns: int = 6) -> str:
    """Render the most recent turns as a transcript block (empty if none)."""
    if not history:
        return ""
    recent = history[-max_turns:]
    lines = [f"{'User' if t.role == 'user' else 'Assistant'}: {t.content}" for t in recent]
    return "=== CONVERSATION SO FAR ===\n" + "\n".join(lines) + "\n=== END CONVERSATION ===\n\n"


# ─────────────────────────────────────────────────────────────────────────────
# Prompt Builder
# ─────────────────────────────────────────────────────────────────────────────


class PromptBuilder:
    """
    Builds (system, user) prompt pairs.

    Example:
        >>> builder = PromptBuilder()
        >>> system, user = builder.build_prompt("Who is the president?", context)
    """

    def __init__(self, history_turns: int = 6):
        self.history_turns = history_turns

    def system_prompt(self, is_schedule: bool = False, has_data: bool = True) -> str:
        prompt = SYSTEM_PROMPT_BASE.format(year=datetime.now().year)
        if is_schedule:
            prompt += CALENDAR_INSTRUCTIONS
        if not has_data:
            prompt += NO_DATA_INSTRUCTIONS
        return prompt

    def build_prompt(
        self,
        query: str,
        context: str,
        history: Optional[list[ConversationTurn]] = None,
        is_schedule: bool = False,
    ) -> tuple[str, str]:
        """
        Build a grounded answer prompt.

        Args:
            query: User question (typo-corrected)
            context: Markdown context from ``RAGService``
            history: Earlier turns of this conversation
            is_schedule: Add calendar formatting instructions

        Returns:
            Tuple of (system_prompt, user_prompt)
        """
        has_data = bool(context) and not context.startswith("[NO KNOWLEDGE BASE DATA")
        user_prompt = USER_PROMPT_TEMPLATE.format(
            history=format_history(history, self.history_turns),
            context=context or "(empty)",
            query=query,
        )
        return self.system_prompt(is_schedule=is_schedule, has_data=has_data), user_prompt


def build_prompt(
    query: str,
    context: str,
    history: Optional[list[ConversationTurn]] = None,
) -> tuple[str, str]:
    """Convenience wrapper around ``PromptBuilder.build_prompt``."""
    return PromptBuilder().build_prompt(query, context, history)
