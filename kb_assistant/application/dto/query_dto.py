# kb_assistant/application/dto/query_dto.py
from __future__ import annotations

from collections.abc import Generator, Iterator
from types import TracebackType

from kb_assistant.domain.models import QueryResult, StreamEvent

__all__ = ["QueryResult", "QueryStream", "StreamEvent"]


class QueryStream(Iterator[StreamEvent]):
    """
    Consumer-paced handle on a streaming query.

    - iterate to receive StreamEvents; nothing is produced ahead of demand
    - result: the QueryResult, set only once the events are exhausted
    - cancel(): stop early; the partial answer is discarded and conversation
      history is left untouched

    Usable as a context manager; leaving the block early cancels the stream.
    """

    def __init__(self, events: Generator[StreamEvent, None, QueryResult]) -> None:
        self._events = events
        self.result: QueryResult | None = None
        self.cancelled = False

    @property
    def done(self) -> bool:
        return self.result is not None

    def __iter__(self) -> QueryStream:
        return self

    def __next__(self) -> StreamEvent:
        if self.cancelled or self.done:
            raise StopIteration
        try:
            return next(self._events)
        except StopIteration as stop:
            self.result = stop.value
            raise StopIteration from None

    def cancel(self) -> None:
        if self.done or self.cancelled:
            return
        self.cancelled = True
        self._events.close()

    def __enter__(self) -> QueryStream:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cancel()
