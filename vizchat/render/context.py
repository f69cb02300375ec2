"""
Render context injected into every renderer.

Renderers never look up ambient state (terminal theme, audio device)
themselves; the dispatch layer hands them one read-only RenderContext.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Tuple

from rich.color import Color, ColorParseError
from rich.text import Text


# Eight-colour series palette shared by charts and sequence highlights
PALETTE: Tuple[str, ...] = (
    "#6366f1",  # indigo
    "#8b5cf6",  # violet
    "#ec4899",  # pink
    "#10b981",  # emerald
    "#f59e0b",  # amber
    "#3b82f6",  # blue
    "#f43f5e",  # rose
    "#06b6d4",  # cyan
)

LANGUAGES = ("ko", "en", "es", "fr")


@dataclass(frozen=True)
class Theme:
    dark: bool = True
    palette: Tuple[str, ...] = PALETTE

    @property
    def code_theme(self) -> str:
        return "monokai" if self.dark else "friendly"

    @property
    def foreground(self) -> str:
        return "#e2e8f0" if self.dark else "#1e293b"

    @property
    def muted(self) -> str:
        return "#94a3b8" if self.dark else "#64748b"

    @property
    def accent(self) -> str:
        return "#fbbf24" if self.dark else "#f59e0b"

    def color(self, index: int) -> str:
        return self.palette[index % len(self.palette)]

    @classmethod
    def detect(cls) -> "Theme":
        """Guess the terminal background from COLORFGBG ("fg;bg"); dark when unknown."""
        value = os.environ.get("COLORFGBG", "")
        try:
            background = int(value.split(";")[-1])
        except ValueError:
            return cls(dark=True)
        return cls(dark=background in (0, 1, 2, 3, 4, 5, 6, 8))

    @classmethod
    def from_name(cls, name: str) -> "Theme":
        if name == "dark":
            return cls(dark=True)
        if name == "light":
            return cls(dark=False)
        return cls.detect()


class AudioPlayer(Protocol):
    """Playback capability for synthesized speech."""

    def play(self, audio: bytes) -> None:
        ...

    def stop(self) -> None:
        ...


class BioStructureClient(Protocol):
    """Resolves a structure-database identifier to entry metadata."""

    def fetch_entry(self, pdb_id: str) -> dict:
        ...


@dataclass(frozen=True)
class RenderContext:
    theme: Theme = field(default_factory=Theme)
    language: str = "en"
    audio_player: Optional[AudioPlayer] = None
    structure_client: Optional[BioStructureClient] = None
    observer_location: Tuple[float, float] = (37.5665, 126.9780)
    physics_steps: int = 90
    width: int = 72

    def pick(self, labels: dict) -> str:
        """Localized label with English fallback."""
        return labels.get(self.language) or labels["en"]


def safe_color(value: Optional[str], fallback: str) -> str:
    """A colour rich can parse, or the fallback."""
    if not value:
        return fallback
    try:
        Color.parse(value)
    except ColorParseError:
        return fallback
    return value


def plain(value: Any) -> Optional[Text]:
    """Model-written text for titles and table cells, never parsed as markup."""
    if value is None or value == "":
        return None
    return Text(str(value))
