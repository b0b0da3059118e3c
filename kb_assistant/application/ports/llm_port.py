from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "system" | "user" | "assistant"
    content: str


@dataclass(frozen=True)
class LLMResponse:
    text: str
    finish_reason: str = "stop"
    usage_tokens: int | None = None


@runtime_checkable
class LLMPort(Protocol):
    """Generation backend. Adapters raise GenerationError on any failure."""

    def chat(
        self, messages: Sequence[ChatMessage], temperature: float = 0.1, max_tokens: int = 1024
    ) -> LLMResponse: ...

    def generate(self, prompt: str, temperature: float = 0.1, max_tokens: int = 1024) -> str:
        """Convenience method for single-shot text generation.

        Args:
            prompt: The prompt text
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text string

        Note:
            Default implementation uses chat with a single user message.
            Adapters can override for direct completion APIs.
        """
        msg = ChatMessage(role="user", content=prompt)
        response = self.chat([msg], temperature=temperature, max_tokens=max_tokens)
        return response.text

    def stream(
        self, prompt: str, temperature: float = 0.1, max_tokens: int = 1024
    ) -> Iterator[str]:
        """Yield answer fragments as the backend produces them.

        Must be lazy: nothing is requested from the backend until the first
        fragment is pulled, and closing the iterator abandons the request.
        """
        ...

    def test_connection(self) -> bool: ...
