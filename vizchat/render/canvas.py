"""
Braille character canvas.

Terminal cells hold a 2x4 grid of Braille dots, which gives line drawings
four times the vertical resolution of plain characters. Callers draw in their
own virtual coordinate space (e.g. an 800x400 scene) and the canvas scales
it onto the dot grid. Text labels overwrite whole cells.
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple

from rich.text import Text

BRAILLE_BASE = 0x2800

# Dot bit for (column, row) inside one cell
_DOT_BITS = (
    (0x01, 0x02, 0x04, 0x40),
    (0x08, 0x10, 0x20, 0x80),
)

Point = Tuple[float, float]


class BrailleCanvas:
    """A cols x rows cell canvas addressed in virtual coordinates."""

    def __init__(self, cols: int, rows: int,
                 virtual_width: Optional[float] = None,
                 virtual_height: Optional[float] = None):
        self.cols = max(1, cols)
        self.rows = max(1, rows)
        self.pixel_width = self.cols * 2
        self.pixel_height = self.rows * 4
        self.virtual_width = virtual_width or self.pixel_width
        self.virtual_height = virtual_height or self.pixel_height
        self._bits: List[List[int]] = [[0] * self.cols for _ in range(self.rows)]
        self._styles: List[List[Optional[str]]] = [[None] * self.cols for _ in range(self.rows)]
        self._labels: Dict[Tuple[int, int], Tuple[str, Optional[str]]] = {}

    # ------------------------------------------------------------------
    # Coordinate mapping
    # ------------------------------------------------------------------

    def to_pixel(self, x: float, y: float) -> Tuple[int, int]:
        px = int(math.floor(x * self.pixel_width / self.virtual_width))
        py = int(math.floor(y * self.pixel_height / self.virtual_height))
        return px, py

    def to_cell(self, x: float, y: float) -> Tuple[int, int]:
        px, py = self.to_pixel(x, y)
        return px // 2, py // 4

    def _plot(self, px: int, py: int, style: Optional[str]) -> None:
        if not (0 <= px < self.pixel_width and 0 <= py < self.pixel_height):
            return
        col, row = px // 2, py // 4
        self._bits[row][col] |= _DOT_BITS[px % 2][py % 4]
        if style:
            self._styles[row][col] = style

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def point(self, x: float, y: float, style: Optional[str] = None) -> None:
        self._plot(*self.to_pixel(x, y), style)

    def line(self, x0: float, y0: float, x1: float, y1: float, style: Optional[str] = None) -> None:
        """Bresenham line between two virtual points."""
        px0, py0 = self.to_pixel(x0, y0)
        px1, py1 = self.to_pixel(x1, y1)
        dx, dy = abs(px1 - px0), -abs(py1 - py0)
        sx = 1 if px0 < px1 else -1
        sy = 1 if py0 < py1 else -1
        err = dx + dy
        while True:
            self._plot(px0, py0, style)
            if px0 == px1 and py0 == py1:
                break
            e2 = 2 * err
            if e2 >= dy:
                err += dy
                px0 += sx
            if e2 <= dx:
                err += dx
                py0 += sy

    def polygon(self, points: Sequence[Point], style: Optional[str] = None, closed: bool = True) -> None:
        if len(points) < 2:
            return
        pairs = list(zip(points, points[1:]))
        if closed:
            pairs.append((points[-1], points[0]))
        for (x0, y0), (x1, y1) in pairs:
            self.line(x0, y0, x1, y1, style)

    def circle(self, cx: float, cy: float, radius: float,
               style: Optional[str] = None, fill: bool = False) -> None:
        scale = self.pixel_width / self.virtual_width
        steps = max(12, int(2 * math.pi * radius * scale * 2))
        for i in range(steps):
            theta = 2 * math.pi * i / steps
            self.point(cx + radius * math.cos(theta), cy + radius * math.sin(theta), style)
        if fill:
            r = radius
            y = cy - r
            step = self.virtual_height / self.pixel_height
            while y <= cy + r:
                half = math.sqrt(max(0.0, r * r - (y - cy) ** 2))
                self.line(cx - half, y, cx + half, y, style)
                y += step

    def arrow(self, x0: float, y0: float, x1: float, y1: float,
              style: Optional[str] = None, head: float = 16.0) -> None:
        self.line(x0, y0, x1, y1, style)
        angle = math.atan2(y1 - y0, x1 - x0)
        for side in (-1, 1):
            theta = angle + side * math.pi / 6
            self.line(x1, y1, x1 - head * math.cos(theta), y1 - head * math.sin(theta), style)

    def text(self, x: float, y: float, label: str, style: Optional[str] = None,
             align: str = "center") -> None:
        col, row = self.to_cell(x, y)
        if align == "center":
            col -= len(label) // 2
        elif align == "right":
            col -= len(label)
        if not 0 <= row < self.rows:
            return
        for offset, char in enumerate(label):
            c = col + offset
            if 0 <= c < self.cols:
                self._labels[(row, c)] = (char, style)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def is_blank(self) -> bool:
        return not self._labels and not any(any(row) for row in self._bits)

    def render(self) -> Text:
        out = Text(no_wrap=True, overflow="crop")
        for row in range(self.rows):
            for col in range(self.cols):
                label = self._labels.get((row, col))
                if label:
                    out.append(label[0], style=label[1] or "")
                    continue
                bits = self._bits[row][col]
                char = chr(BRAILLE_BASE + bits) if bits else " "
                out.append(char, style=self._styles[row][col] or "")
            if row < self.rows - 1:
                out.append("\n")
        return out

    def __rich__(self) -> Text:
        return self.render()
