"""
Prompt template for answering questions about the indexed code.

Pure functions that build the chat messages. No I/O, no side effects.

The system message pins the model to the retrieved snippets; the user
message carries the question followed by one ``File:`` block per match,
in ranking order.
"""

from collections.abc import Sequence

from core.generation.base import Message
from core.types import ScoredChunk

SYSTEM_PROMPT = (
    "You are a senior engineer answering questions about a codebase. "
    "Use only the provided code snippets to answer. "
    "If code reveals config, structure, or usage patterns, summarize those clearly. "
    "Do not guess or include general explanations unless they are directly "
    "inferred from the code."
)


def build_user_prompt(query: str, matches: Sequence[ScoredChunk]) -> str:
    """Return the question followed by the code of every match."""
    parts = [f"Question: {query}\n\nRelevant Code:\n\n"]
    for match in matches:
        parts.append(f"\n---\nFile: {match.file}\n{match.code}\n")
    return "".join(parts)


def build_prompt(query: str, matches: Sequence[ScoredChunk]) -> tuple[Message, ...]:
    """
    Build the system and user messages for *query*.

    An empty *matches* list still yields a valid prompt whose user message
    ends after the ``Relevant Code:`` header.

    Raises:
        ValueError: If *query* is blank.
    """
    if not query.strip():
        raise ValueError("query must be a non-empty string")
    return (
        Message(role="system", content=SYSTEM_PROMPT),
        Message(role="user", content=build_user_prompt(query, matches)),
    )
