"""
Segment dispatch.

Maps each segment to its renderer and isolates failures: whatever goes wrong
while rendering one segment (including a renderer module that fails to
import) becomes a red error panel in that segment's place, and the rest of
the message still renders.

Renderer classes are registered as "module:Class" strings and imported on
first use, so heavy visualization modules cost nothing until a response
actually contains that kind of block.
"""

import importlib
import logging
from typing import Any, Dict, Iterable, Optional, Union

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from ..streaming.segments import PendingSegment, Segment, StructuredBlock, TextSegment, VizKind
from .context import RenderContext

logger = logging.getLogger(__name__)

TEXT = "text"
PENDING = "pending"

RendererKey = Union[VizKind, str]

DEFAULT_RENDERERS: Dict[RendererKey, str] = {
    TEXT: "vizchat.render.text:TextRenderer",
    PENDING: "vizchat.render.pending:PendingRenderer",
    VizKind.CHART: "vizchat.render.chart:ChartRenderer",
    VizKind.MOLECULE: "vizchat.render.molecule:MoleculeRenderer",
    VizKind.BIO: "vizchat.render.bio:BioRenderer",
    VizKind.PHYSICS: "vizchat.render.physics:PhysicsRenderer",
    VizKind.CONSTELLATION: "vizchat.render.constellation:ConstellationRenderer",
    VizKind.DIAGRAM: "vizchat.render.diagram:DiagramRenderer",
    VizKind.DRUG: "vizchat.render.drug:DrugRenderer",
}


def load_class(target: str) -> type:
    """Import "package.module:ClassName"."""
    module_name, _, class_name = target.partition(":")
    if not class_name:
        raise ValueError(f"Renderer target must look like 'module:Class', got {target!r}")
    module = importlib.import_module(module_name)
    return getattr(module, class_name)


class SegmentRenderer:
    """Turns segments into rich renderables, one isolated renderer call each."""

    def __init__(self, context: Optional[RenderContext] = None,
                 renderer_options: Optional[Dict[RendererKey, Dict[str, Any]]] = None):
        self.context = context or RenderContext()
        self.registry: Dict[RendererKey, Union[str, type]] = dict(DEFAULT_RENDERERS)
        # Extra constructor kwargs per kind (e.g. a shared SkyView)
        self.renderer_options = renderer_options or {}
        self._instances: Dict[RendererKey, Any] = {}

    def register(self, key: RendererKey, target: Union[str, type]) -> None:
        """Replace the renderer for a kind. Takes a class or a "module:Class" string."""
        self.registry[key] = target
        self._instances.pop(key, None)

    def renderer_for(self, key: RendererKey) -> Any:
        if key not in self._instances:
            target = self.registry[key]
            cls = load_class(target) if isinstance(target, str) else target
            self._instances[key] = cls(self.context, **self.renderer_options.get(key, {}))
        return self._instances[key]

    def render(self, segment: Segment) -> RenderableType:
        key: RendererKey = TEXT
        try:
            if isinstance(segment, TextSegment):
                return self.renderer_for(TEXT).render(segment.markdown)
            if isinstance(segment, PendingSegment):
                key = PENDING
                return self.renderer_for(PENDING).render()
            if isinstance(segment, StructuredBlock):
                key = segment.kind
                return self.renderer_for(segment.kind).render(segment.payload)
            raise TypeError(f"Not a segment: {segment!r}")
        except Exception as e:
            logger.exception("Rendering %s segment failed", getattr(key, "value", key))
            return self.error_panel(key, e)

    def render_all(self, segments: Iterable[Segment]) -> Group:
        return Group(*(self.render(segment) for segment in segments))

    @staticmethod
    def error_panel(key: RendererKey, error: Exception) -> Panel:
        name = getattr(key, "value", key)
        body = Text(f"Could not render {name} block", style="bold red")
        body.append(f"\n{type(error).__name__}: {error}", style="red")
        return Panel(body, title="⚠ Render error", title_align="left", border_style="red")
