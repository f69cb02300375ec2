"""
Block scanner and segment classifier.

Every time a chunk arrives the whole buffer is rescanned from scratch and the
full segment list is rebuilt. No parser state survives between calls, so a
dropped or coalesced refresh is repaired by the next one.

Fenced block grammar:

    ```json:<kind>
    { ...one JSON object... }
    ```

Whitespace is allowed around "json", the colon and the kind tag; the tag is
case-insensitive. Blocks whose body is not a JSON object fall back to their
verbatim source text so nothing the model wrote is lost.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .postprocess import DEFAULT_POSTPROCESSORS, TextPostProcessor, apply_postprocessors
from .segments import FENCE_TAGS, Segment, StructuredBlock, TextSegment, kind_for_tag
from .tail_guard import classify_tail

logger = logging.getLogger(__name__)


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


_KNOWN_TAGS = "|".join(sorted(FENCE_TAGS, key=len, reverse=True))

FENCE_RE = re.compile(
    r"```[ \t]*json[ \t]*:[ \t]*(?i:(" + _KNOWN_TAGS + r"))[ \t]*\n(.*?)\n```",
    re.DOTALL,
)


@dataclass
class ScanResult:
    segments: List[Segment] = field(default_factory=list)
    # Offset where the unconsumed tail begins (end of the last complete block)
    tail_start: int = 0


def classify_block(tag: str, body: str, raw: str) -> Segment:
    """Parse one matched fenced block, or fall back to its raw text."""
    kind = kind_for_tag(tag)
    if kind is None:
        logger.debug("Unknown block tag %r, keeping raw text", tag)
        return TextSegment(raw)

    try:
        payload = json.loads(body, parse_constant=_reject_constant)
    except ValueError as e:
        logger.debug("Malformed %s block (%s), keeping raw text", tag, e)
        return TextSegment(raw)

    if not isinstance(payload, dict):
        logger.debug("%s block is not a JSON object, keeping raw text", tag)
        return TextSegment(raw)

    return StructuredBlock(kind=kind, payload=payload, raw=raw)


def scan_complete(
    buffer: str,
    postprocessors: Sequence[TextPostProcessor] = DEFAULT_POSTPROCESSORS,
) -> Tuple[List[Segment], int]:
    """Segments for every complete block and the prose before it.

    Returns the segments and the offset where the unscanned tail starts.
    """
    segments: List[Segment] = []
    last_end = 0

    for match in FENCE_RE.finditer(buffer):
        if match.start() > last_end:
            prose = buffer[last_end:match.start()]
            segments.append(TextSegment(apply_postprocessors(prose, postprocessors)))
        segments.append(classify_block(match.group(1), match.group(2), match.group(0)))
        last_end = match.end()

    return segments, last_end


def scan(
    buffer: str,
    postprocessors: Sequence[TextPostProcessor] = DEFAULT_POSTPROCESSORS,
) -> ScanResult:
    """Derive the full ordered segment list for a buffer. Pure and total."""
    segments, tail_start = scan_complete(buffer, postprocessors)
    segments.extend(classify_tail(buffer[tail_start:], postprocessors))
    return ScanResult(segments=segments, tail_start=tail_start)


class MemoizedScanner:
    """scan() that skips re-parsing the confirmed prefix of a growing buffer.

    The prefix up to the end of the last complete block cannot change while
    the buffer only grows, so only the tail is rescanned. A buffer that does
    not extend the remembered prefix (e.g. after a reset) is scanned in full.
    Output is always identical to scan(buffer).
    """

    def __init__(self, postprocessors: Sequence[TextPostProcessor] = DEFAULT_POSTPROCESSORS):
        self.postprocessors = postprocessors
        self._prefix = ""
        self._prefix_segments: List[Segment] = []

    def scan(self, buffer: str) -> ScanResult:
        if self._prefix and buffer.startswith(self._prefix):
            offset = len(self._prefix)
            rest, rest_tail = scan_complete(buffer[offset:], self.postprocessors)
            complete = self._prefix_segments + rest
            tail_start = offset + rest_tail
        else:
            complete, tail_start = scan_complete(buffer, self.postprocessors)

        self._prefix = buffer[:tail_start]
        self._prefix_segments = list(complete)

        segments = complete + classify_tail(buffer[tail_start:], self.postprocessors)
        return ScanResult(segments=segments, tail_start=tail_start)

    def reset(self) -> None:
        self._prefix = ""
        self._prefix_segments = []
