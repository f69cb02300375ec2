"""Placeholder shown while a structured block or math span is still arriving."""

from rich.console import RenderableType
from rich.panel import Panel
from rich.spinner import Spinner

from .context import RenderContext

ANALYZING = {
    "ko": "분석 중...",
    "en": "Analyzing...",
    "es": "Analizando...",
    "fr": "Analyse en cours...",
}


class PendingRenderer:

    def __init__(self, context: RenderContext):
        self.context = context

    def render(self, payload=None) -> RenderableType:
        spinner = Spinner("dots", text=self.context.pick(ANALYZING), style=self.context.theme.muted)
        return Panel(spinner, border_style="dim", padding=(0, 1))
