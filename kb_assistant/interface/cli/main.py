"""CLI for the knowledge-base assistant.

The store is in-memory, so one invocation ingests the given files and then
answers questions: from ``--question`` or, without it, line by line from stdin.
"""

import argparse
import mimetypes
import os
import sys
from collections.abc import Sequence

from kb_assistant.application.dto.query_dto import QueryResult
from kb_assistant.application.pipeline import RAGPipeline
from kb_assistant.config.composition import create_rag_pipeline
from kb_assistant.config.logging_setup import configure_logging
from kb_assistant.config.settings import AppSettings
from kb_assistant.domain.errors import ConfigurationError, DomainError

_EXTRA_TYPES = {
    ".txt": "text/plain",
    ".md": "text/plain",
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def guess_mime_type(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    if ext in _EXTRA_TYPES:
        return _EXTRA_TYPES[ext]
    mime, _ = mimetypes.guess_type(path)
    return mime or "application/octet-stream"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("kb-assistant")
    ap.add_argument("--file", action="append", default=[], help="Document to ingest (repeatable)")
    ap.add_argument("--text", action="append", default=[], help="Inline text to ingest (repeatable)")
    ap.add_argument("--question", help="Question to answer; omit to read questions from stdin")
    ap.add_argument("--stream", action="store_true", help="Print the answer as it is generated")
    ap.add_argument("--top-k", type=int, help="Chunks to retrieve per question")
    ap.add_argument("--chunk-size", type=int)
    ap.add_argument("--chunk-overlap", type=int)
    ap.add_argument("--check", action="store_true", help="Check the LLM backend and exit")
    return ap


def _print_result(result: QueryResult) -> None:
    print("\n" + "=" * 80)
    print("ANSWER:")
    print("=" * 80)
    print(result.answer)
    if result.sources:
        print("\n" + "=" * 80)
        print("SOURCES:")
        print("=" * 80)
        for i, source in enumerate(result.sources, 1):
            print(f"[{i}] {source}")


def _ask(pipeline: RAGPipeline, question: str, stream: bool) -> int:
    if stream:
        try:
            with pipeline.stream_query(question) as events:
                for event in events:
                    if event.kind == "answer":
                        print(event.content, end="", flush=True)
                    else:
                        print(f"[{event.content}]", file=sys.stderr)
                print()
                if events.result and events.result.sources:
                    print("Sources: " + ", ".join(events.result.sources))
        except DomainError as err:
            print(f"\n[ERROR] {type(err).__name__}: {err}")
            return 1
        return 0

    result = pipeline.query(question)
    if result.ok and result.value is not None:
        _print_result(result.value)
        return 0
    print(f"\n[ERROR] {type(result.error).__name__}: {result.error}")
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = AppSettings()
        configure_logging(settings.log_level, settings.log_json)
        pipeline = create_rag_pipeline(settings)
        overrides = {
            "top_k": args.top_k,
            "chunk_size": args.chunk_size,
            "chunk_overlap": args.chunk_overlap,
        }
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            pipeline.update_config(overrides)
    except ConfigurationError as err:
        print("[ERROR] Invalid configuration:")
        for line in err.errors:
            print(f"  - {line}")
        return 2

    if args.check:
        health = pipeline.test_pipeline()
        print("Pipeline OK" if health.ok else f"Pipeline check failed: {health.error}")
        return 0 if health.ok else 1

    for path in args.file:
        try:
            with open(path, "rb") as f:
                data = f.read()
            doc = pipeline.add_document(os.path.basename(path), data, guess_mime_type(path))
            print(f"Ingested {doc.name}: {len(doc.chunks)} chunks")
        except (OSError, DomainError) as err:
            print(f"[ERROR] {path}: {err}")

    for i, text in enumerate(args.text, 1):
        try:
            doc = pipeline.add_text(f"text_{i}", text)
            print(f"Ingested {doc.name}: {len(doc.chunks)} chunks")
        except DomainError as err:
            print(f"[ERROR] text_{i}: {err}")

    if args.question:
        return _ask(pipeline, args.question, args.stream)

    status = 0
    for line in sys.stdin:
        question = line.strip()
        if not question:
            continue
        if question.lower() in {"exit", "quit"}:
            break
        status = _ask(pipeline, question, args.stream) or status
    return status


if __name__ == "__main__":
    sys.exit(main())
