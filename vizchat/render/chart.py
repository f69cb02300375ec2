"""
Chart renderer.

Model-written chart payloads come in several loose shapes (plain number
arrays, {x, y} point arrays, pie data spread across series). They are first
normalized into one canonical NormalizedChart, then drawn as horizontal
block bars in a rich Table.
"""

import math
from dataclasses import dataclass, field
from typing import Any, List

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .context import RenderContext, plain

PIE_KINDS = ("pie", "donut")
BAR_KINDS = ("bar", "line", "area")

NO_DATA = {
    "ko": "데이터 없음",
    "en": "No data",
    "es": "Sin datos",
    "fr": "Aucune donnée",
}

BAR_CHAR = "█"


@dataclass
class Point:
    label: str
    value: float


@dataclass
class Series:
    name: str
    points: List[Point] = field(default_factory=list)


@dataclass
class NormalizedChart:
    kind: str
    title: str = ""
    categories: List[str] = field(default_factory=list)
    series: List[Series] = field(default_factory=list)

    @property
    def is_pie(self) -> bool:
        return self.kind in PIE_KINDS

    @property
    def is_empty(self) -> bool:
        return not any(s.points for s in self.series)


# ============================================================================
# Normalization
# ============================================================================

def to_number(value: Any) -> float:
    """Numeric coercion where anything unusable becomes 0."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_point(value: Any) -> bool:
    return isinstance(value, dict) and "x" in value


def _label(categories: List[str], index: int) -> str:
    return categories[index] if index < len(categories) else str(index + 1)


def _normalize_pie(kind, title, categories, raw_series) -> NormalizedChart:
    first = raw_series[0].get("data")
    if isinstance(first, list) and first and _is_number(first[0]):
        if len(raw_series) == 1:
            values = [to_number(v) for v in first]
        else:
            values = []
            for s in raw_series:
                data = s.get("data")
                values.append(to_number(data[0]) if isinstance(data, list) and data else 0.0)
            if not categories:
                categories = [str(s.get("name") or "Unnamed") for s in raw_series]
    else:
        values = [0.0, 0.0, 0.0]

    if not categories:
        categories = [str(i + 1) for i in range(len(values))]
    points = [Point(_label(categories, i), v) for i, v in enumerate(values)]
    return NormalizedChart(kind, title, categories, [Series(title or kind, points)])


def _normalize_bars(kind, title, categories, raw_series) -> NormalizedChart:
    first = raw_series[0].get("data")
    first = first if isinstance(first, list) else []
    point_form = bool(first) and _is_point(first[0])

    if point_form and not categories:
        categories = [str(d.get("x")) if isinstance(d, dict) else "" for d in first]
    if not categories and first:
        categories = [str(i + 1) for i in range(len(first))]

    series = []
    for index, s in enumerate(raw_series):
        data = s.get("data")
        data = data if isinstance(data, list) else []
        if point_form:
            values = [to_number(d.get("y")) if isinstance(d, dict) else 0.0 for d in data]
        else:
            values = [to_number(d) for d in data]
        name = str(s.get("name") or f"Series {index + 1}")
        series.append(Series(name, [Point(_label(categories, i), v) for i, v in enumerate(values)]))
    return NormalizedChart(kind, title, categories, series)


def _normalize_treemap(title, data) -> NormalizedChart:
    if isinstance(data, dict):
        raw_series = data.get("series")
        if isinstance(raw_series, list) and raw_series and isinstance(raw_series[0], dict):
            data = raw_series[0].get("data")
    if not isinstance(data, list):
        return NormalizedChart("treemap", title)

    points = [
        Point(str(d.get("x", "")), to_number(d.get("y")))
        for d in data if isinstance(d, dict)
    ]
    return NormalizedChart("treemap", title, [p.label for p in points], [Series(title or "treemap", points)])


def normalize_chart(payload: dict) -> NormalizedChart:
    """Canonical chart model for any accepted payload shape."""
    kind = str(payload.get("type") or "bar").lower()
    if kind not in PIE_KINDS + BAR_KINDS + ("treemap",):
        kind = "bar"
    title = str(payload.get("title") or "")
    data = payload.get("data")

    if kind == "treemap":
        return _normalize_treemap(title, data)

    if not isinstance(data, dict):
        return NormalizedChart(kind, title)
    raw_series = data.get("series")
    raw_series = [s for s in raw_series if isinstance(s, dict)] if isinstance(raw_series, list) else []
    if not raw_series:
        return NormalizedChart(kind, title)

    categories = data.get("categories")
    categories = [str(c) for c in categories] if isinstance(categories, list) else []

    if kind in PIE_KINDS:
        return _normalize_pie(kind, title, categories, raw_series)
    return _normalize_bars(kind, title, categories, raw_series)


def format_value(value: float) -> str:
    """1234 -> 1.2k; whole numbers lose their decimals."""
    if value >= 1000:
        return f"{value / 1000:.1f}k"
    if value == int(value):
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


# ============================================================================
# Rendering
# ============================================================================

class ChartRenderer:

    def __init__(self, context: RenderContext):
        self.context = context
        self.bar_width = max(10, context.width - 32)

    def render(self, payload: dict) -> RenderableType:
        chart = normalize_chart(payload)
        theme = self.context.theme
        title = plain(chart.title)

        if chart.is_empty:
            return Panel(
                Text(self.context.pick(NO_DATA), style=theme.muted, justify="center"),
                title=title,
                border_style=theme.muted,
            )

        if chart.is_pie:
            body = self._share_table(chart)
        elif chart.kind == "treemap":
            body = self._treemap_table(chart)
        else:
            body = self._bar_table(chart)

        subtitle = Text(chart.kind) if chart.kind != "bar" else None
        return Panel(body, title=title, subtitle=subtitle, border_style=theme.muted)

    def _bar(self, value: float, scale: float, color: str) -> Text:
        length = int(round(abs(value) / scale * self.bar_width)) if scale else 0
        return Text(BAR_CHAR * length, style=color)

    def _bar_table(self, chart: NormalizedChart) -> RenderableType:
        theme = self.context.theme
        scale = max((abs(p.value) for s in chart.series for p in s.points), default=0.0)
        multi = len(chart.series) > 1

        table = Table(show_header=False, box=None, padding=(0, 1), expand=False)
        table.add_column("label", style="bold", no_wrap=True)
        table.add_column("bar", no_wrap=True)
        table.add_column("value", justify="right", no_wrap=True)

        length = max(len(s.points) for s in chart.series)
        for i in range(length):
            label = _label(chart.categories, i)
            for index, s in enumerate(chart.series):
                if i >= len(s.points):
                    continue
                value = s.points[i].value
                table.add_row(Text(label) if index == 0 else "", self._bar(value, scale, theme.color(index)),
                              format_value(value))

        if not multi:
            return table
        legend = Text()
        for index, s in enumerate(chart.series):
            legend.append(f"{BAR_CHAR} ", style=theme.color(index))
            legend.append(f"{s.name}  ")
        return Group(table, legend)

    def _share_table(self, chart: NormalizedChart) -> RenderableType:
        theme = self.context.theme
        points = chart.series[0].points
        total = sum(p.value for p in points)

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("label", style="bold", no_wrap=True)
        table.add_column("bar", no_wrap=True)
        table.add_column("share", justify="right", no_wrap=True)
        table.add_column("value", justify="right", style=theme.muted, no_wrap=True)

        for index, point in enumerate(points):
            share = point.value / total if total else 0.0
            table.add_row(Text(point.label), self._bar(share, 1.0, theme.color(index)),
                          f"{share * 100:.1f}%", format_value(point.value))
        return table

    def _treemap_table(self, chart: NormalizedChart) -> RenderableType:
        theme = self.context.theme
        points = sorted(chart.series[0].points, key=lambda p: p.value, reverse=True)
        scale = max((abs(p.value) for p in points), default=0.0)

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("label", style="bold", no_wrap=True)
        table.add_column("bar", no_wrap=True)
        table.add_column("value", justify="right", no_wrap=True)
        for index, point in enumerate(points):
            table.add_row(Text(point.label), self._bar(point.value, scale, theme.color(index)),
                          format_value(point.value))
        return table
