"""
Star map renderer.

Stars are placed where they stand in the real sky for the observer's time
and location (stereographic projection from the zenith). When every star of
the payload is below the horizon the map falls back to a flat chart around
the payload centre so the pattern can still be read.

Interactive state (zoom, pan, observer time) lives in a SkyView that the CLI
keeps between renders.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple, Union

from pydantic import BaseModel, Field, ValidationError
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from ..errors import RendererError
from .astro import (
    equatorial_to_horizontal,
    horizontal_to_canvas,
    is_night,
    magnitude_to_opacity,
    magnitude_to_size,
    project_to_canvas,
)
from .canvas import BrailleCanvas
from .context import RenderContext, plain

logger = logging.getLogger(__name__)

MAP_WIDTH = 800.0
MAP_HEIGHT = 500.0

MIN_ZOOM = 0.3
MAX_ZOOM = 3.0
ZOOM_STEP = 0.2

TITLES = {
    "ko": "별자리 지도",
    "en": "Constellation Map",
    "es": "Mapa de Constelaciones",
    "fr": "Carte des Constellations",
}
NIGHT = {"ko": "밤", "en": "Night", "es": "Noche", "fr": "Nuit"}
DAY = {"ko": "낮", "en": "Day", "es": "Día", "fr": "Jour"}
BELOW_HORIZON = {
    "ko": "지평선 아래 (성도 보기)",
    "en": "below the horizon (chart view)",
    "es": "bajo el horizonte (vista de carta)",
    "fr": "sous l'horizon (vue carte)",
}

StarId = Union[int, str]


class Star(BaseModel):
    id: StarId
    ra: float
    dec: float
    mag: float = 5.0
    name: Optional[str] = None
    constellation: Optional[str] = None


class ConstellationLines(BaseModel):
    id: str = ""
    name: Union[Dict[str, str], str] = Field(default_factory=dict)
    lines: List[Tuple[StarId, StarId]] = Field(default_factory=list)

    def display_name(self, language: str) -> str:
        if isinstance(self.name, str):
            return self.name
        return self.name.get(language) or self.name.get("en") or self.id


class Center(BaseModel):
    ra: float
    dec: float


class ConstellationData(BaseModel):
    stars: List[Star] = Field(default_factory=list)
    constellations: List[ConstellationLines] = Field(default_factory=list)
    center: Optional[Center] = None
    zoom: float = 1.0


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SkyView:
    """Mutable viewing state for the star map."""

    location: Tuple[float, float] = (37.5665, 126.9780)
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    observer_time: datetime = field(default_factory=_now)

    def zoom_in(self) -> float:
        self.zoom = round(min(self.zoom + ZOOM_STEP, MAX_ZOOM), 2)
        return self.zoom

    def zoom_out(self) -> float:
        self.zoom = round(max(self.zoom - ZOOM_STEP, MIN_ZOOM), 2)
        return self.zoom

    def pan(self, dx: float, dy: float) -> None:
        self.pan_x += dx
        self.pan_y += dy

    def advance(self, hours: float) -> datetime:
        self.observer_time += timedelta(hours=hours)
        return self.observer_time

    def reset(self) -> None:
        """Back to the default framing. Observer time is kept."""
        self.zoom = 1.0
        self.pan_x = 0.0
        self.pan_y = 0.0

    @property
    def is_night(self) -> bool:
        return is_night(self.observer_time, self.location)

    def label_magnitude_limit(self) -> float:
        return 0.5 + self.zoom * 1.2


@dataclass
class ProjectedStar:
    star: Star
    x: float
    y: float
    visible: bool


def project_stars(data: ConstellationData, view: SkyView) -> Tuple[List[ProjectedStar], bool]:
    """Canvas positions for every star, and whether the live sky was used."""
    scale = MAP_HEIGHT * 0.4 * view.zoom * data.zoom
    projected = []
    for star in data.stars:
        horizontal = equatorial_to_horizontal(star.ra, star.dec, view.observer_time, view.location)
        x, y = horizontal_to_canvas(horizontal.altitude, horizontal.azimuth, MAP_WIDTH, MAP_HEIGHT, scale)
        projected.append(ProjectedStar(star, x + view.pan_x, y + view.pan_y, horizontal.visible))

    if not projected or any(p.visible for p in projected):
        return projected, True

    if data.center is not None:
        center_ra, center_dec = data.center.ra, data.center.dec
    else:
        center_ra = sum(s.ra for s in data.stars) / len(data.stars)
        center_dec = sum(s.dec for s in data.stars) / len(data.stars)

    chart = []
    for star in data.stars:
        x, y = project_to_canvas(star.ra, star.dec, scale, MAP_WIDTH / 2, MAP_HEIGHT / 2, center_ra, center_dec)
        chart.append(ProjectedStar(star, x + view.pan_x, y + view.pan_y, True))
    return chart, False


class ConstellationRenderer:

    def __init__(self, context: RenderContext, view: Optional[SkyView] = None):
        self.context = context
        self.view = view or SkyView(location=context.observer_location)

    def render(self, payload: dict) -> RenderableType:
        try:
            data = ConstellationData.model_validate(payload)
        except ValidationError as e:
            raise RendererError(f"Invalid star map: {e.error_count()} error(s)") from e

        projected, live_sky = project_stars(data, self.view)
        logger.debug("Projected %d stars, live sky: %s", len(projected), live_sky)
        canvas = self._draw(data, projected, live_sky)

        title = self.context.pick(TITLES)
        if data.constellations:
            title = data.constellations[0].display_name(self.context.language)
        return Panel(
            Group(canvas, self._status(projected, live_sky)),
            title=plain(title),
            border_style=self.context.theme.muted,
        )

    def _star_style(self, magnitude: float) -> str:
        opacity = magnitude_to_opacity(magnitude)
        base = "white" if self.context.theme.dark else "black"
        if opacity >= 0.8:
            return f"bold {base}"
        if opacity >= 0.5:
            return base
        return f"dim {base}"

    def _draw(self, data: ConstellationData, projected: List[ProjectedStar], live_sky: bool) -> BrailleCanvas:
        theme = self.context.theme
        cols = max(32, min(self.context.width - 4, 80))
        canvas = BrailleCanvas(cols, max(10, int(cols / 3.2)), MAP_WIDTH, MAP_HEIGHT)

        if live_sky:
            scale = MAP_HEIGHT * 0.4 * self.view.zoom * data.zoom
            horizon = [horizontal_to_canvas(0.0, az, MAP_WIDTH, MAP_HEIGHT, scale) for az in range(0, 361, 5)]
            canvas.polygon([(x + self.view.pan_x, y + self.view.pan_y) for x, y in horizon], "dim", closed=False)
            for label, az in (("N", 0.0), ("E", 90.0), ("S", 180.0), ("W", 270.0)):
                x, y = horizontal_to_canvas(-4.0, az, MAP_WIDTH, MAP_HEIGHT, scale)
                canvas.text(x + self.view.pan_x, y + self.view.pan_y, label, theme.muted)

        by_id = {p.star.id: p for p in projected}
        for constellation in data.constellations:
            for start_id, end_id in constellation.lines:
                start, end = by_id.get(start_id), by_id.get(end_id)
                if start and end and start.visible and end.visible:
                    canvas.line(start.x, start.y, end.x, end.y, theme.color(5))

        for p in projected:
            if p.visible:
                radius = magnitude_to_size(p.star.mag) * 0.6
                canvas.circle(p.x, p.y, radius, self._star_style(p.star.mag), fill=True)

        occupied: Set[Tuple[int, int]] = set()
        limit = self.view.label_magnitude_limit()
        for p in sorted(projected, key=lambda item: item.star.mag):
            if p.visible and p.star.name and p.star.mag < limit:
                self._place_label(canvas, occupied, p.x, p.y - magnitude_to_size(p.star.mag) - 14,
                                  p.star.name, theme.accent)

        for constellation in data.constellations:
            members = [p for p in projected if p.visible and p.star.constellation == constellation.id]
            if members:
                x = sum(p.x for p in members) / len(members)
                y = sum(p.y for p in members) / len(members) - 25
                self._place_label(canvas, occupied, x, y,
                                  constellation.display_name(self.context.language), theme.muted)
        return canvas

    @staticmethod
    def _place_label(canvas: BrailleCanvas, occupied: Set[Tuple[int, int]],
                     x: float, y: float, label: str, style: str) -> bool:
        col, row = canvas.to_cell(x, y)
        start = col - len(label) // 2
        cells = {(row, c) for c in range(start - 1, start + len(label) + 1)}
        if cells & occupied:
            return False
        occupied.update(cells)
        canvas.text(x, y, label, style)
        return True

    def _status(self, projected: List[ProjectedStar], live_sky: bool) -> Text:
        muted = self.context.theme.muted
        visible = sum(1 for p in projected if p.visible)
        night = self.view.is_night

        status = Text()
        status.append("☾ " if night else "☀ ", style=self.context.theme.accent)
        status.append(self.context.pick(NIGHT if night else DAY))
        status.append(f"  {self.view.observer_time:%Y-%m-%d %H:%M} UTC", style=muted)
        status.append(f"  zoom ×{self.view.zoom:.1f}", style=muted)
        status.append(f"  ★ {visible}/{len(projected)}", style=muted)
        if not live_sky:
            status.append(f"  {self.context.pick(BELOW_HORIZON)}", style="italic " + muted)
        return status
