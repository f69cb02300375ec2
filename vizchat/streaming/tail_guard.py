"""
Pending-tail guard.

The text after the last complete structured block may still be arriving.
Two detectors decide whether it is safe to show:

1. Incomplete block: an opening ```json:<kind> fence with no closing fence yet
   (the scanner already consumed every closed block, so any opener left in
   the tail is unclosed). A bare opener still being typed at the very end of
   the tail ("```json:", "```json:ch") counts too.
2. Unclosed math: an odd number of "$$" delimiters.

Block detection wins when both fire. Everything from the offending opener
(or the last "$$") onward is swallowed into a single PendingSegment.
"""

import re
from typing import List, Optional, Sequence

from .postprocess import DEFAULT_POSTPROCESSORS, TextPostProcessor, apply_postprocessors
from .segments import FENCE_TAGS, PendingSegment, Segment, TextSegment

_KNOWN_TAGS = "|".join(sorted(FENCE_TAGS, key=len, reverse=True))

OPEN_FENCE_RE = re.compile(r"```[ \t]*json[ \t]*:[ \t]*(?i:" + _KNOWN_TAGS + r")")

# Opener cut off mid-tag at the end of the buffer
_PARTIAL_OPEN_RE = re.compile(r"```[ \t]*json[ \t]*:[ \t]*([A-Za-z]*)$")

MATH_DELIMITER = "$$"


def find_incomplete_block(tail: str) -> Optional[int]:
    """Index of the first unclosed structured-block opener in tail, if any."""
    match = OPEN_FENCE_RE.search(tail)
    if match:
        return match.start()

    partial = _PARTIAL_OPEN_RE.search(tail)
    if partial:
        fragment = partial.group(1).lower()
        if any(tag.startswith(fragment) for tag in FENCE_TAGS):
            return partial.start()
    return None


def has_unclosed_math(tail: str) -> bool:
    return tail.count(MATH_DELIMITER) % 2 == 1


def classify_tail(
    tail: str,
    postprocessors: Sequence[TextPostProcessor] = DEFAULT_POSTPROCESSORS,
) -> List[Segment]:
    """Turn the unconsumed tail into zero or more segments, at most one Pending."""
    if not tail:
        return []

    cut = find_incomplete_block(tail)
    if cut is None and has_unclosed_math(tail):
        cut = tail.rfind(MATH_DELIMITER)

    if cut is None:
        return [TextSegment(apply_postprocessors(tail, postprocessors))]

    segments: List[Segment] = []
    visible = tail[:cut]
    if visible.strip():
        segments.append(TextSegment(apply_postprocessors(visible, postprocessors)))
    segments.append(PendingSegment())
    return segments
