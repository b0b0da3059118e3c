from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any, cast

import structlog

from kb_assistant.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse
from kb_assistant.domain.errors import GenerationError

logger = structlog.get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
CONNECTION_CHECK_PROMPT = 'Hello! Please respond with just "OK" to confirm the connection.'


@dataclass
class OpenAICompatibleLLMAdapter(LLMPort):
    """Chat-completions adapter for any OpenAI-compatible endpoint (Groq by default)."""

    api_key: str
    model: str = "llama-3.1-8b-instant"
    base_url: str = GROQ_BASE_URL
    timeout_s: float = 60.0

    def __post_init__(self) -> None:
        # Defer import of OpenAI to first use to avoid hard dependency in tests
        self._client: Any | None = None

    def _get_client(self) -> Any:
        if self._client is None:
            module = import_module("openai")
            OpenAI = module.OpenAI
            self._client = OpenAI(
                base_url=self.base_url, api_key=self.api_key, timeout=self.timeout_s
            )
        return self._client

    def chat(
        self, messages: Sequence[ChatMessage], temperature: float = 0.1, max_tokens: int = 1024
    ) -> LLMResponse:
        try:
            payload: Any = [m.__dict__ for m in messages]
            resp: Any = self._get_client().chat.completions.create(
                model=self.model,
                messages=cast(Any, payload),
                temperature=temperature,
                max_tokens=max_tokens,
            )
            choice = resp.choices[0]
            usage = getattr(resp, "usage", None)
            return LLMResponse(
                text=choice.message.content or "",
                finish_reason=choice.finish_reason or "stop",
                usage_tokens=getattr(usage, "total_tokens", None),
            )
        except Exception as ex:  # noqa: BLE001
            # Translate external errors to domain-specific errors
            raise GenerationError(f"Failed to generate response: {ex}") from ex

    def stream(
        self, prompt: str, temperature: float = 0.1, max_tokens: int = 1024
    ) -> Iterator[str]:
        # Generator body: the request is only sent once the first fragment is pulled.
        try:
            resp: Any = self._get_client().chat.completions.create(
                model=self.model,
                messages=cast(Any, [{"role": "user", "content": prompt}]),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
        except Exception as ex:  # noqa: BLE001
            raise GenerationError(f"Failed to stream response: {ex}") from ex

        try:
            for event in resp:
                if not event.choices:
                    continue
                fragment = event.choices[0].delta.content
                if fragment:
                    yield fragment
        except GeneratorExit:
            logger.debug("llm_stream_cancelled", model=self.model)
            raise
        except Exception as ex:  # noqa: BLE001
            raise GenerationError(f"Failed to stream response: {ex}") from ex
        finally:
            close = getattr(resp, "close", None)
            if callable(close):
                close()

    def test_connection(self) -> bool:
        try:
            answer = self.generate(CONNECTION_CHECK_PROMPT, temperature=0.0, max_tokens=10)
        except GenerationError as ex:
            logger.warning("llm_connection_failed", model=self.model, error=str(ex))
            return False
        return "ok" in answer.lower()
