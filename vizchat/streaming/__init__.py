"""
Streamed-response parsing: token accumulation, block scanning and the
pending-tail guard.
"""

from .accumulator import SourceCollector, TokenAccumulator, append
from .postprocess import DEFAULT_POSTPROCESSORS, normalize_numeric_tilde
from .scanner import MemoizedScanner, ScanResult, scan, scan_complete
from .segments import (
    PendingSegment,
    Segment,
    StructuredBlock,
    TextSegment,
    VizKind,
    reconstruct,
)
from .tail_guard import classify_tail

__all__ = [
    'append',
    'TokenAccumulator',
    'SourceCollector',
    'scan',
    'scan_complete',
    'ScanResult',
    'MemoizedScanner',
    'classify_tail',
    'normalize_numeric_tilde',
    'DEFAULT_POSTPROCESSORS',
    'Segment',
    'TextSegment',
    'StructuredBlock',
    'PendingSegment',
    'VizKind',
    'reconstruct',
]
