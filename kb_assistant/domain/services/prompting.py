"""Prompt assembly: citation-annotated context plus recent conversation."""

from __future__ import annotations

from collections.abc import Sequence

from ..models import Chunk, ConversationTurn

HISTORY_TURNS_IN_PROMPT = 3

RAG_PROMPT_TEMPLATE = """You are a helpful AI assistant that answers questions based on the provided context.
Follow these guidelines:

1. Use ONLY the information from the provided context to answer questions
2. If the context doesn't contain enough information, clearly state this limitation
3. Provide specific, accurate, and helpful answers
4. Cite relevant parts of the context when possible
5. If asked about something not in the context, politely explain you can only answer based on the provided documents

Context:
{context}

Question: {question}

Answer: Let me help you based on the information provided in the documents.
"""


def format_context_chunks(chunks: Sequence[Chunk]) -> str:
    blocks = []
    for i, chunk in enumerate(chunks, start=1):
        source = chunk.metadata.source or "Unknown"
        page = f" (Page {chunk.metadata.page})" if chunk.metadata.page else ""
        blocks.append(f"[Source {i}: {source}{page}]\n{chunk.content}\n")
    return "\n---\n\n".join(blocks)


def create_conversation_prompt(
    question: str,
    context: str,
    history: Sequence[ConversationTurn] = (),
) -> str:
    """Prefix the RAG template with the last few turns of conversation."""
    prompt = ""
    recent = list(history)[-HISTORY_TURNS_IN_PROMPT:]
    if recent:
        prompt += "Previous conversation:\n"
        for turn in recent:
            prompt += f"Q: {turn.question}\nA: {turn.answer}\n\n"
        prompt += "---\n\n"
    return prompt + RAG_PROMPT_TEMPLATE.format(context=context, question=question)
