"""Cosmetic fix-ups applied to prose segments before rendering."""

import re
from typing import Callable, Sequence

TextPostProcessor = Callable[[str], str]

_NUMERIC_TILDE = re.compile(r"(\d)~(?=\d)")


def normalize_numeric_tilde(text: str) -> str:
    """Rewrite a tilde between digits ("1~10") as its numeric entity.

    Markdown engines with strikethrough support can otherwise pair two such
    tildes and strike the text between them.
    """
    return _NUMERIC_TILDE.sub(r"\1&#126;", text)


DEFAULT_POSTPROCESSORS: Sequence[TextPostProcessor] = (normalize_numeric_tilde,)


def apply_postprocessors(text: str, postprocessors: Sequence[TextPostProcessor]) -> str:
    for processor in postprocessors:
        text = processor(text)
    return text
