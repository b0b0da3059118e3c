"""HTTP API for ingestion and (streaming) queries.

Why: Consumable API without business logic; pure delegation to RAGPipeline.
"""

import base64
import binascii
import json
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

try:
    from fastapi import FastAPI, HTTPException, Request
    from fastapi.responses import StreamingResponse
    from pydantic import BaseModel, Field
except ImportError as err:
    raise ImportError("FastAPI not installed. Install with: pip install fastapi") from err

from kb_assistant.application.dto.query_dto import QueryResult
from kb_assistant.application.pipeline import RAGPipeline
from kb_assistant.config.composition import create_rag_pipeline
from kb_assistant.config.logging_setup import configure_logging
from kb_assistant.config.settings import AppSettings
from kb_assistant.domain.config import get_available_models
from kb_assistant.domain.errors import (
    ConfigurationError,
    DocumentError,
    DomainError,
    ValidationError,
)
from kb_assistant.domain.models import Document


# Pydantic models for request/response validation
class DocumentRequestModel(BaseModel):
    """Request model for /v1/documents: either ``text`` or base64 ``data``."""

    name: str
    text: str | None = None
    data_base64: str | None = None
    mime_type: str = "text/plain"


class DocumentResponseModel(BaseModel):
    id: str
    name: str
    status: str
    type: str
    size: int
    chunks: int


class QueryRequestModel(BaseModel):
    question: str = Field(min_length=1)


class QueryResultModel(BaseModel):
    id: str
    question: str
    retrieved_context: list[str]
    answer: str
    sources: list[str]
    timestamp: str


class QueryResponseModel(BaseModel):
    status: str
    result: QueryResultModel | None = None
    error: str | None = None


class HealthResponseModel(BaseModel):
    status: str
    service: str = "kb-assistant"
    error: str | None = None


def _document_response(doc: Document) -> DocumentResponseModel:
    return DocumentResponseModel(
        id=doc.id,
        name=doc.name,
        status=doc.status,
        type=doc.metadata.type,
        size=doc.metadata.size,
        chunks=len(doc.chunks),
    )


def _result_model(result: QueryResult) -> QueryResultModel:
    return QueryResultModel(
        id=result.id,
        question=result.question,
        retrieved_context=result.retrieved_context,
        answer=result.answer,
        sources=result.sources,
        timestamp=result.timestamp.isoformat(),
    )


def create_app(pipeline: RAGPipeline | None = None) -> FastAPI:
    """Build the API around ``pipeline`` (composed from the environment when omitted)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Built once at startup; configuration errors abort startup.
        settings = AppSettings()
        configure_logging(settings.log_level, settings.log_json)
        if app.state.pipeline is None:
            app.state.pipeline = create_rag_pipeline(settings)
        yield

    app = FastAPI(title="Knowledge Base Assistant API", version="1.0.0", lifespan=lifespan)
    app.state.pipeline = pipeline

    def get_pipeline(request: Request) -> RAGPipeline:
        rag = request.app.state.pipeline
        if rag is None:
            raise HTTPException(status_code=503, detail="Service not initialized")
        return rag

    @app.post("/v1/documents", response_model=DocumentResponseModel)
    def add_document(req: DocumentRequestModel, request: Request) -> DocumentResponseModel:
        """Ingest a document given as plain text or as base64-encoded file bytes."""
        rag = get_pipeline(request)
        if req.text is None and req.data_base64 is None:
            raise HTTPException(status_code=422, detail="Provide 'text' or 'data_base64'")
        try:
            if req.text is not None:
                doc = rag.add_text(req.name, req.text)
            else:
                try:
                    data = base64.b64decode(req.data_base64 or "", validate=True)
                except (binascii.Error, ValueError) as ex:
                    raise HTTPException(
                        status_code=422, detail=f"Invalid base64 payload: {ex}"
                    ) from ex
                doc = rag.add_document(req.name, data, req.mime_type)
        except (DocumentError, ValidationError) as ex:
            raise HTTPException(status_code=400, detail=str(ex)) from ex
        except DomainError as ex:
            raise HTTPException(status_code=500, detail=str(ex)) from ex
        return _document_response(doc)

    @app.get("/v1/documents", response_model=list[DocumentResponseModel])
    def list_documents(request: Request) -> list[DocumentResponseModel]:
        return [_document_response(d) for d in get_pipeline(request).list_documents()]

    @app.delete("/v1/documents/{document_id}")
    def remove_document(document_id: str, request: Request) -> dict[str, Any]:
        removed = get_pipeline(request).remove_document(document_id)
        return {"document_id": document_id, "removed_chunks": removed}

    @app.post("/v1/query", response_model=QueryResponseModel)
    def query(req: QueryRequestModel, request: Request) -> QueryResponseModel:
        result = get_pipeline(request).query(req.question)
        if result.ok and result.value is not None:
            return QueryResponseModel(status="success", result=_result_model(result.value))
        return QueryResponseModel(status="error", error=str(result.error))

    @app.post("/v1/query/stream")
    def stream_query(req: QueryRequestModel, request: Request) -> StreamingResponse:
        """Newline-delimited JSON: one line per event, then a final ``result`` line."""
        try:
            events = get_pipeline(request).stream_query(req.question)
        except ValidationError as ex:
            raise HTTPException(status_code=422, detail=str(ex)) from ex

        def lines() -> Iterator[str]:
            try:
                for event in events:
                    yield json.dumps({"kind": event.kind, "content": event.content}) + "\n"
                if events.result is not None:
                    payload = _result_model(events.result).model_dump()
                    yield json.dumps({"kind": "result", "content": payload}) + "\n"
            except DomainError as ex:
                yield json.dumps({"kind": "error", "content": str(ex)}) + "\n"
            finally:
                # client went away: drop the partial answer
                events.cancel()

        return StreamingResponse(lines(), media_type="application/x-ndjson")

    @app.get("/v1/stats")
    def stats(request: Request) -> dict[str, Any]:
        return asdict(get_pipeline(request).get_stats())

    @app.get("/v1/history")
    def history(request: Request) -> list[dict[str, str]]:
        return [asdict(t) for t in get_pipeline(request).get_conversation_history()]

    @app.delete("/v1/history")
    def clear_history(request: Request) -> dict[str, str]:
        get_pipeline(request).clear_history()
        return {"status": "cleared"}

    @app.delete("/v1/knowledge-base")
    def clear_knowledge_base(request: Request) -> dict[str, str]:
        get_pipeline(request).clear_knowledge_base()
        return {"status": "cleared"}

    @app.get("/v1/config")
    def get_config(request: Request) -> dict[str, Any]:
        return get_pipeline(request).get_config().redacted()

    @app.get("/v1/models")
    def list_models() -> list[dict[str, Any]]:
        return [asdict(m) for m in get_available_models()]

    @app.patch("/v1/config")
    def update_config(updates: dict[str, Any], request: Request) -> dict[str, Any]:
        try:
            cfg = get_pipeline(request).update_config(updates)
        except ConfigurationError as ex:
            raise HTTPException(status_code=400, detail=ex.errors) from ex
        return cfg.redacted()

    @app.get("/health", response_model=HealthResponseModel)
    def health(request: Request) -> HealthResponseModel:
        check = get_pipeline(request).test_pipeline()
        if check.ok:
            return HealthResponseModel(status="healthy")
        return HealthResponseModel(status="degraded", error=str(check.error))

    return app


app = create_app()
