import pytest

from kb_assistant.domain.memory import ConversationMemory
from kb_assistant.domain.models import ConversationTurn


def test_memory_keeps_last_five_in_order():
    memory = ConversationMemory()
    for i in range(7):
        memory.append(f"q{i}", f"a{i}")

    assert len(memory) == 5
    assert [t.question for t in memory.turns()] == ["q2", "q3", "q4", "q5", "q6"]


def test_recent_returns_newest_turns():
    memory = ConversationMemory(capacity=3)
    memory.append("q1", "a1")
    memory.append("q2", "a2")

    assert memory.recent(1) == [ConversationTurn("q2", "a2")]
    assert memory.recent(10) == memory.turns()
    assert memory.recent(0) == []


def test_clear_empties_memory():
    memory = ConversationMemory()
    memory.append("q", "a")
    memory.clear()
    assert memory.turns() == []


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ConversationMemory(capacity=0)
