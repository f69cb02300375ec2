"""
Token accumulation for one in-flight model response.

The accumulator never parses; it concatenates chunks and mirrors the buffer
into the owning Message after every chunk. Each response gets its own
instance, so concurrent responses share no mutable state.
"""

import logging
from typing import Dict, Iterable, List

from ..models import GroundingSource, Message

logger = logging.getLogger(__name__)


def append(buffer: str, chunk: str, reset: bool = False) -> str:
    """Return the new buffer after applying one chunk.

    A reset discards everything received so far (the backend restarted the
    response, e.g. after switching to a fallback model).
    """
    if reset:
        return chunk
    return buffer + chunk


class SourceCollector:
    """Grounding sources for one response, de-duplicated by URI in arrival order."""

    def __init__(self):
        self._sources: Dict[str, GroundingSource] = {}
        self._frozen = False

    def add(self, sources: Iterable[GroundingSource]) -> None:
        if self._frozen:
            return
        for source in sources:
            if source.uri and source.uri not in self._sources:
                self._sources[source.uri] = source

    def freeze(self) -> List[GroundingSource]:
        self._frozen = True
        return self.sources

    @property
    def sources(self) -> List[GroundingSource]:
        return list(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)


class TokenAccumulator:
    """Owns the buffer of one streaming Message."""

    def __init__(self, message: Message):
        self.message = message
        self.buffer = message.content
        self.sources = SourceCollector()
        self.cancelled = False
        self.chunks = 0

    def feed(self, chunk: str, reset: bool = False) -> str:
        """Apply a chunk and mirror the buffer into the message."""
        if self.cancelled or self.message.is_final:
            logger.debug("Ignoring chunk for closed message %s", self.message.id)
            return self.buffer

        if reset:
            logger.debug("Response reset after %d chunks", self.chunks)
        self.buffer = append(self.buffer, chunk, reset)
        self.chunks += 1
        self.message.set_content(self.buffer)
        return self.buffer

    def add_sources(self, sources: Iterable[GroundingSource]) -> None:
        if not self.cancelled:
            self.sources.add(sources)

    def cancel(self) -> None:
        """Stop accepting chunks. The content received so far is kept."""
        self.cancelled = True

    def finish(self) -> Message:
        """Freeze content and grounding sources onto the message."""
        if not self.message.is_final:
            self.message.finalize(self.sources.freeze())
        return self.message
