"""Pytest configuration and fixtures."""

from io import StringIO

import pytest
from rich.console import Console

from vizchat.render.context import RenderContext, Theme


def render_to_text(renderable, width: int = 100) -> str:
    """Plain text of a rich renderable as it would appear in a terminal."""
    console = Console(record=True, width=width, color_system=None, file=StringIO())
    console.print(renderable)
    return console.export_text()


@pytest.fixture
def console():
    return Console(width=100, color_system=None, file=StringIO())


@pytest.fixture
def context():
    return RenderContext(theme=Theme(dark=True), language="en", width=96)


@pytest.fixture
def ko_context():
    return RenderContext(theme=Theme(dark=False), language="ko", width=96)


@pytest.fixture
def render_text():
    return render_to_text
