"""
Segment types produced by the block scanner.

A message buffer is split into an ordered list of segments:

- TextSegment: prose, Markdown and LaTeX, rendered as-is
- StructuredBlock: a parsed ```json:<kind>``` block ready for a visualization renderer
- PendingSegment: the tail is still arriving; render a placeholder

Segments are derived on every update and never persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union


class VizKind(str, Enum):
    """Visualization kinds a structured block can carry."""

    CHART = "chart"
    MOLECULE = "molecule"
    BIO = "bio"
    PHYSICS = "physics"
    CONSTELLATION = "constellation"
    DIAGRAM = "diagram"
    DRUG = "drug"


# Fence tag (as written by the model) -> visualization kind
FENCE_TAGS: Dict[str, VizKind] = {
    "chart": VizKind.CHART,
    "smiles": VizKind.MOLECULE,
    "bio": VizKind.BIO,
    "physics": VizKind.PHYSICS,
    "constellation": VizKind.CONSTELLATION,
    "diagram": VizKind.DIAGRAM,
    "drug": VizKind.DRUG,
}


def kind_for_tag(tag: str) -> Optional[VizKind]:
    """Map a fence tag to its kind, case-insensitively. Unknown tags give None."""
    return FENCE_TAGS.get(tag.strip().lower())


@dataclass(frozen=True)
class TextSegment:
    markdown: str

    def source_text(self) -> str:
        return self.markdown


@dataclass(frozen=True)
class StructuredBlock:
    kind: VizKind
    payload: Any
    # Original fenced source, fences included
    raw: str = field(default="", compare=False)

    def source_text(self) -> str:
        return self.raw


@dataclass(frozen=True)
class PendingSegment:

    def source_text(self) -> str:
        return ""


Segment = Union[TextSegment, StructuredBlock, PendingSegment]


def reconstruct(segments: Iterable[Segment]) -> str:
    """Concatenate the source text of segments in order."""
    return "".join(segment.source_text() for segment in segments)


def has_pending(segments: Iterable[Segment]) -> bool:
    return any(isinstance(segment, PendingSegment) for segment in segments)
