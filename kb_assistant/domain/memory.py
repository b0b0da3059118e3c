from __future__ import annotations

from collections import deque

from .models import ConversationTurn

DEFAULT_CAPACITY = 5


class ConversationMemory:
    """Bounded FIFO of recent (question, answer) turns; oldest evicted first.

    Not thread-safe on its own: the orchestrator serializes access.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._turns: deque[ConversationTurn] = deque(maxlen=capacity)

    def append(self, question: str, answer: str) -> None:
        self._turns.append(ConversationTurn(question=question, answer=answer))

    def recent(self, n: int) -> list[ConversationTurn]:
        if n <= 0:
            return []
        return list(self._turns)[-n:]

    def turns(self) -> list[ConversationTurn]:
        return list(self._turns)

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)
