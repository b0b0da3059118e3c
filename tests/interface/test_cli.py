import io
import sys
from collections.abc import Iterator, Sequence

import pytest
import structlog

from kb_assistant.application.pipeline import RAGPipeline
from kb_assistant.application.ports.llm_port import ChatMessage, LLMResponse
from kb_assistant.domain.config import build_config
from kb_assistant.domain.errors import ConfigurationError
from kb_assistant.infrastructure.embeddings.char_feature_embedding import CharFeatureEmbedding
from kb_assistant.infrastructure.parsing.text_extractors import MimeTypeTextExtractor
from kb_assistant.infrastructure.vectorstore.in_memory_vector_store import InMemoryVectorStore
from kb_assistant.interface.cli import main as cli


@pytest.fixture(autouse=True)
def log_to_stderr():
    # stdout carries only the answer; logs go to stderr as in configure_logging
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))
    yield
    structlog.reset_defaults()


class FakeLLM:
    def chat(
        self, messages: Sequence[ChatMessage], temperature: float = 0.1, max_tokens: int = 1024
    ) -> LLMResponse:
        return LLMResponse(text="It is blue.")

    def generate(self, prompt: str, temperature: float = 0.1, max_tokens: int = 1024) -> str:
        return "It is blue."

    def stream(self, prompt: str, temperature: float = 0.1, max_tokens: int = 1024) -> Iterator[str]:
        yield "It is "
        yield "blue."

    def test_connection(self) -> bool:
        return True


def _pipeline() -> RAGPipeline:
    return RAGPipeline(
        config=build_config(credential="test-key"),
        llm_factory=lambda cfg: FakeLLM(),
        vector_store=InMemoryVectorStore(embedding=CharFeatureEmbedding()),
        extractor=MimeTypeTextExtractor(),
    )


def _patch(monkeypatch, pipeline: RAGPipeline) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda *a, **k: None)
    monkeypatch.setattr(cli, "create_rag_pipeline", lambda settings: pipeline)


def test_guess_mime_type():
    assert cli.guess_mime_type("notes.TXT") == "text/plain"
    assert cli.guess_mime_type("paper.pdf") == "application/pdf"
    assert cli.guess_mime_type("report.docx").endswith("wordprocessingml.document")


def test_parser_collects_repeated_files():
    args = cli.build_parser().parse_args(["--file", "a.txt", "--file", "b.pdf", "--top-k", "2"])
    assert args.file == ["a.txt", "b.pdf"]
    assert args.top_k == 2
    assert not args.stream


def test_ingest_and_answer(monkeypatch, capsys, tmp_path):
    doc = tmp_path / "sky.txt"
    doc.write_text("The sky is blue.", encoding="utf-8")
    _patch(monkeypatch, _pipeline())

    code = cli.main(["--file", str(doc), "--question", "What color is the sky?"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Ingested sky.txt: 1 chunks" in out
    assert "ANSWER:" in out
    assert "It is blue." in out
    assert "[1] sky.txt" in out


def test_streaming_answer(monkeypatch, capsys, tmp_path):
    doc = tmp_path / "sky.txt"
    doc.write_text("The sky is blue.", encoding="utf-8")
    _patch(monkeypatch, _pipeline())

    code = cli.main(["--file", str(doc), "--question", "What color is the sky?", "--stream"])

    captured = capsys.readouterr()
    assert code == 0
    assert "It is blue.\n" in captured.out
    assert "Sources: sky.txt" in captured.out
    assert "[Searching knowledge base...]" in captured.err


def test_questions_from_stdin(monkeypatch, capsys):
    pipeline = _pipeline()
    _patch(monkeypatch, pipeline)
    monkeypatch.setattr(sys, "stdin", io.StringIO("first question?\n\nquit\nnever asked?\n"))

    assert cli.main([]) == 0
    assert [t.question for t in pipeline.get_conversation_history()] == []
    assert "I don't have any relevant information" in capsys.readouterr().out


def test_config_overrides_are_applied(monkeypatch):
    pipeline = _pipeline()
    _patch(monkeypatch, pipeline)
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))

    assert cli.main(["--top-k", "2", "--chunk-size", "400", "--chunk-overlap", "40"]) == 0
    cfg = pipeline.get_config()
    assert (cfg.top_k, cfg.chunk_size, cfg.chunk_overlap) == (2, 400, 40)


def test_invalid_configuration_exits_with_2(monkeypatch, capsys):
    def broken(settings):
        raise ConfigurationError(["API credential is required"])

    monkeypatch.setattr(cli, "configure_logging", lambda *a, **k: None)
    monkeypatch.setattr(cli, "create_rag_pipeline", broken)

    assert cli.main(["--question", "hi"]) == 2
    assert "API credential is required" in capsys.readouterr().out


def test_check_contacts_backend(monkeypatch, capsys):
    _patch(monkeypatch, _pipeline())
    assert cli.main(["--check"]) == 0
    assert "Pipeline OK" in capsys.readouterr().out


def test_missing_file_is_reported(monkeypatch, capsys, tmp_path):
    _patch(monkeypatch, _pipeline())
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))

    cli.main(["--file", str(tmp_path / "missing.txt")])
    assert "[ERROR]" in capsys.readouterr().out


def test_inline_text_is_ingested(monkeypatch, capsys):
    pipeline = _pipeline()
    _patch(monkeypatch, pipeline)

    code = cli.main(["--text", "The sky is blue.", "--question", "What color is the sky?"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Ingested text_1: 1 chunks" in out
    assert "[1] text_1" in out


def test_invalid_numeric_setting_exits_with_2(monkeypatch, capsys):
    monkeypatch.setattr(cli, "configure_logging", lambda *a, **k: None)
    monkeypatch.setenv("EMBEDDING_DIMENSION", "abc")

    assert cli.main(["--question", "hi"]) == 2
    assert "EMBEDDING_DIMENSION must be a number, got 'abc'" in capsys.readouterr().out
