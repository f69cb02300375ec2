"""
Terminal renderers for streamed chat responses.

SegmentRenderer is the entry point; individual renderers are imported lazily
by the dispatch layer.
"""

from .context import PALETTE, AudioPlayer, BioStructureClient, RenderContext, Theme
from .dispatch import SegmentRenderer

__all__ = [
    'RenderContext',
    'Theme',
    'PALETTE',
    'AudioPlayer',
    'BioStructureClient',
    'SegmentRenderer',
]
