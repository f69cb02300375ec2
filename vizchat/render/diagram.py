"""
Inclined-plane force diagram.

The geometry is computed once, deterministically, on an 800x500 virtual
canvas and then drawn twice: as a Braille sketch in the terminal and as a
standalone SVG document for export.

Forces are recognised by keywords in their labels (English and Korean).
Each role takes the first force whose label matches; forces matching no role
are listed in the table but not drawn.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..errors import RendererError
from .canvas import BrailleCanvas
from .context import RenderContext, plain, safe_color

CANVAS_WIDTH = 800.0
CANVAS_HEIGHT = 500.0
PLANE_LEFT_X = 120.0
PLANE_LENGTH = 500.0
BOX_SIZE = 60.0
BOX_POSITION = 0.45
FORCE_SCALE = 110.0
ARC_RADIUS = 80.0

LABELS = {
    "title": {"ko": "경사면 힘 다이어그램", "en": "Inclined Plane Force Diagram"},
    "box": {"ko": "상자", "en": "Box"},
    "plane": {"ko": "경사면", "en": "Incline"},
}

Point = Tuple[float, float]


class ForceSpec(BaseModel):
    label: str
    magnitude: float = 1.0
    color: str = "#ef4444"
    angle: Optional[float] = None


class DiagramSpec(BaseModel):
    type: str = "inclined_plane"
    angle: float = 30.0
    title: Optional[str] = None
    showBaseline: bool = True
    showAngle: bool = True
    forces: List[ForceSpec] = Field(default_factory=list)


# (role, label keywords, unit direction for a plane angle in radians, direction text)
FORCE_ROLES: List[Tuple[str, Tuple[str, ...], Callable[[float], Point], str]] = [
    ("gravity", ("중력", "mg", "gravity"), lambda a: (0.0, 1.0), "straight down"),
    ("normal", ("수직항력", "normal", "N)"), lambda a: (-math.sin(a), -math.cos(a)), "out of the plane"),
    ("parallel", ("평행", "parallel", "sinθ"), lambda a: (math.cos(a), math.sin(a)), "down the slope"),
    ("perpendicular", ("수직 분력", "perpendicular", "cosθ"), lambda a: (math.sin(a), math.cos(a)), "into the plane"),
    ("friction", ("마찰", "friction"), lambda a: (-math.cos(a), -math.sin(a)), "up the slope"),
]


@dataclass
class ForceArrow:
    role: str
    force: ForceSpec
    start: Point
    end: Point
    direction: str


@dataclass
class InclinedPlaneGeometry:
    angle: float
    baseline_y: float
    plane_right: Point
    box_center: Point
    box_corners: List[Point]
    arrows: List[ForceArrow] = field(default_factory=list)

    @property
    def plane_left(self) -> Point:
        return PLANE_LEFT_X, self.baseline_y

    @property
    def wedge(self) -> List[Point]:
        return [self.plane_left, self.plane_right, (self.plane_right[0], self.baseline_y)]


def find_force(forces: List[ForceSpec], keywords: Tuple[str, ...]) -> Optional[ForceSpec]:
    for force in forces:
        if any(keyword in force.label for keyword in keywords):
            return force
    return None


def build_geometry(spec: DiagramSpec) -> InclinedPlaneGeometry:
    a = math.radians(spec.angle)
    baseline_y = CANVAS_HEIGHT - 100
    plane_right = (PLANE_LEFT_X + PLANE_LENGTH * math.cos(a), baseline_y - PLANE_LENGTH * math.sin(a))

    along = PLANE_LENGTH * BOX_POSITION
    base_x = PLANE_LEFT_X + along * math.cos(a)
    base_y = baseline_y - along * math.sin(a)
    cx = base_x - BOX_SIZE / 2 * math.sin(a)
    cy = base_y - BOX_SIZE / 2 * math.cos(a)

    half = BOX_SIZE / 2
    c, s = math.cos(-a), math.sin(-a)
    corners = [
        (cx + dx * c - dy * s, cy + dx * s + dy * c)
        for dx, dy in ((-half, -half), (half, -half), (half, half), (-half, half))
    ]

    geometry = InclinedPlaneGeometry(spec.angle, baseline_y, plane_right, (cx, cy), corners)
    for role, keywords, direction, description in FORCE_ROLES:
        force = find_force(spec.forces, keywords)
        if force is None:
            continue
        ux, uy = direction(a)
        length = force.magnitude * FORCE_SCALE
        geometry.arrows.append(
            ForceArrow(role, force, (cx, cy), (cx + ux * length, cy + uy * length), description)
        )
    return geometry


def _arrow_head(start: Point, end: Point, size: float = 16.0) -> List[Point]:
    angle = math.atan2(end[1] - start[1], end[0] - start[0])
    return [
        end,
        (end[0] - size * math.cos(angle - math.pi / 6), end[1] - size * math.sin(angle - math.pi / 6)),
        (end[0] - size * math.cos(angle + math.pi / 6), end[1] - size * math.sin(angle + math.pi / 6)),
    ]


def _points(points: List[Point]) -> str:
    return " ".join(f"{x:.1f},{y:.1f}" for x, y in points)


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def to_svg(spec: DiagramSpec, geometry: Optional[InclinedPlaneGeometry] = None,
           language: str = "en") -> str:
    """Standalone SVG rendering of the diagram. Same input, same bytes."""
    geometry = geometry or build_geometry(spec)
    lang = language if language in ("ko", "en") else "en"
    a = math.radians(spec.angle)
    lx, ly = geometry.plane_left
    rx, ry = geometry.plane_right
    cx, cy = geometry.box_center

    lines = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{CANVAS_WIDTH:.0f}" '
        f'height="{CANVAS_HEIGHT:.0f}" viewBox="0 0 {CANVAS_WIDTH:.0f} {CANVAS_HEIGHT:.0f}">',
    ]
    if spec.showBaseline:
        lines.append(f'<line x1="50" y1="{ly:.1f}" x2="{CANVAS_WIDTH - 50:.0f}" y2="{ly:.1f}" '
                     f'stroke="#000000" stroke-width="1.5"/>')
    lines.append(f'<polygon points="{_points(geometry.wedge)}" fill="#e2e8f0" stroke="#475569" stroke-width="1.5"/>')
    if spec.showAngle:
        ex, ey = lx + ARC_RADIUS * math.cos(a), ly - ARC_RADIUS * math.sin(a)
        lines.append(f'<path d="M {lx + ARC_RADIUS:.1f} {ly:.1f} A {ARC_RADIUS:.0f} {ARC_RADIUS:.0f} 0 0 0 '
                     f'{ex:.1f} {ey:.1f}" fill="none" stroke="#1a1a2e" stroke-width="2"/>')
        tx = lx + ARC_RADIUS * 1.3 * math.cos(a / 2)
        ty = ly - ARC_RADIUS * 0.7 * math.sin(a / 2) - 2
        lines.append(f'<text x="{tx:.1f}" y="{ty:.1f}" font-size="24" font-weight="bold" '
                     f'text-anchor="middle">θ</text>')
    lines.append(f'<polygon points="{_points(geometry.box_corners)}" fill="#ffffff" '
                 f'stroke="#1a1a2e" stroke-width="2.5"/>')
    lines.append(f'<text x="{cx + BOX_SIZE * 0.7:.1f}" y="{cy - BOX_SIZE * 0.3:.1f}" font-size="18" '
                 f'font-weight="bold" text-anchor="middle">{LABELS["box"][lang]}</text>')
    lines.append(f'<text x="{rx - 60:.1f}" y="{ry - 30:.1f}" font-size="20" font-weight="bold" '
                 f'text-anchor="middle">{LABELS["plane"][lang]}</text>')

    for arrow in geometry.arrows:
        (x0, y0), (x1, y1) = arrow.start, arrow.end
        color = _escape(arrow.force.color)
        lines.append(f'<line x1="{x0:.1f}" y1="{y0:.1f}" x2="{x1:.1f}" y2="{y1:.1f}" '
                     f'stroke="{color}" stroke-width="4" stroke-linecap="round"/>')
        lines.append(f'<polygon points="{_points(_arrow_head(arrow.start, arrow.end))}" fill="{color}"/>')
        lines.append(f'<text x="{x1:.1f}" y="{y1 + (25 if y1 >= y0 else -25):.1f}" font-size="18" '
                     f'font-weight="bold" fill="{color}" text-anchor="middle">{_escape(arrow.force.label)}</text>')

    lines.append("</svg>")
    return "\n".join(lines)


class DiagramRenderer:

    def __init__(self, context: RenderContext):
        self.context = context

    def _label(self, key: str) -> str:
        labels = LABELS[key]
        return labels.get(self.context.language) or labels["en"]

    def render(self, payload: dict) -> RenderableType:
        try:
            spec = DiagramSpec.model_validate(payload)
        except ValidationError as e:
            raise RendererError(f"Invalid diagram: {e.error_count()} error(s)") from e
        if spec.type != "inclined_plane":
            raise RendererError(f"Unsupported diagram type: {spec.type!r}")

        geometry = build_geometry(spec)
        return Panel(
            Group(self._sketch(spec, geometry), self._force_table(spec, geometry)),
            title=plain(spec.title or self._label("title")),
            subtitle=f"θ = {spec.angle:g}°",
            border_style=self.context.theme.muted,
        )

    def _sketch(self, spec: DiagramSpec, geometry: InclinedPlaneGeometry) -> BrailleCanvas:
        theme = self.context.theme
        cols = max(32, min(self.context.width - 4, 80))
        canvas = BrailleCanvas(cols, max(10, int(cols / 3.2)), CANVAS_WIDTH, CANVAS_HEIGHT)

        lx, ly = geometry.plane_left
        if spec.showBaseline:
            canvas.line(50, ly, CANVAS_WIDTH - 50, ly, theme.muted)
        canvas.polygon(geometry.wedge, theme.muted)
        if spec.showAngle:
            a = math.radians(spec.angle)
            steps = max(4, int(spec.angle / 3))
            arc = [(lx + ARC_RADIUS * math.cos(a * i / steps), ly - ARC_RADIUS * math.sin(a * i / steps))
                   for i in range(steps + 1)]
            canvas.polygon(arc, theme.foreground, closed=False)
            canvas.text(lx + ARC_RADIUS * 1.3 * math.cos(a / 2), ly - ARC_RADIUS * 0.7 * math.sin(a / 2) - 2,
                        "θ", theme.foreground)

        canvas.polygon(geometry.box_corners, theme.foreground)
        cx, cy = geometry.box_center
        canvas.text(cx + BOX_SIZE * 0.7, cy - BOX_SIZE * 0.3, self._label("box"), theme.foreground, align="left")
        rx, ry = geometry.plane_right
        canvas.text(rx - 60, ry - 30, self._label("plane"), theme.muted)

        for arrow in geometry.arrows:
            (x0, y0), (x1, y1) = arrow.start, arrow.end
            color = safe_color(arrow.force.color, theme.accent)
            canvas.arrow(x0, y0, x1, y1, color)
            canvas.text(x1, y1 + (25 if y1 >= y0 else -25), arrow.force.label, color)
        return canvas

    def _force_table(self, spec: DiagramSpec, geometry: InclinedPlaneGeometry) -> Table:
        table = Table(box=None, padding=(0, 1), header_style=self.context.theme.muted)
        table.add_column("Force")
        table.add_column("Role")
        table.add_column("Direction")
        table.add_column("Magnitude", justify="right")

        drawn = {id(arrow.force): arrow for arrow in geometry.arrows}
        for force in spec.forces:
            arrow = drawn.get(id(force))
            table.add_row(
                Text(force.label, style=safe_color(force.color, self.context.theme.accent)),
                arrow.role if arrow else "-",
                arrow.direction if arrow else "-",
                f"{force.magnitude:g}",
            )
        return table
