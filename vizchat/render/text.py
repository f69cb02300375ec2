"""
Prose renderer: Markdown with LaTeX math converted to Unicode.

Terminals cannot typeset LaTeX, so math spans are run through pylatexenc and
caret superscripts are mapped to Unicode superscript characters before the
text is handed to rich's Markdown renderer. Fenced code is never touched.

The numeric-range entity written by the scanner ("1&#126;5") is decoded by
the Markdown parser, which shows a plain "~" without starting strikethrough.
"""

import logging
import re

from pylatexenc.latex2text import LatexNodes2Text
from rich.markdown import Markdown

from .context import RenderContext

logger = logging.getLogger(__name__)

SUPERSCRIPTS = {
    '0': '⁰', '1': '¹', '2': '²', '3': '³', '4': '⁴', '5': '⁵',
    '6': '⁶', '7': '⁷', '8': '⁸', '9': '⁹', '-': '⁻', '+': '⁺',
    '(': '⁽', ')': '⁾', '=': '⁼', 'n': 'ⁿ', 'i': 'ⁱ', 'x': 'ˣ',
    'y': 'ʸ', 'z': 'ᶻ', 'a': 'ᵃ', 'b': 'ᵇ', 'c': 'ᶜ', 'd': 'ᵈ',
    'e': 'ᵉ', 'f': 'ᶠ', 'g': 'ᵍ', 'h': 'ʰ', 'j': 'ʲ', 'k': 'ᵏ',
    'l': 'ˡ', 'm': 'ᵐ', 'o': 'ᵒ', 'p': 'ᵖ', 'r': 'ʳ', 's': 'ˢ',
    't': 'ᵗ', 'u': 'ᵘ', 'v': 'ᵛ', 'w': 'ʷ',
}

_CODE_FENCE_RE = re.compile(r"(```.*?(?:```|$))", re.DOTALL)
_DISPLAY_BRACKET_RE = re.compile(r"\\\[(.*?)\\\]", re.DOTALL)
_DISPLAY_DOLLAR_RE = re.compile(r"\$\$(.*?)\$\$", re.DOTALL)
_INLINE_RE = re.compile(r"(?<!\$)\$([^$\n]+)\$(?!\$)")
_CARET_RE = re.compile(r"\^\{([^{}]{1,8})\}|\^([\da-zA-Z+-]{1,5})")

_converter = LatexNodes2Text(
    keep_inline_math=False,
    keep_comments=False,
    strict_latex_spaces=False,
)


def convert_caret_superscripts(text: str) -> str:
    """x^2 -> x², e^{-x} -> e⁻ˣ. Unmapped characters are kept as-is."""

    def replace(match):
        chars = match.group(1) or match.group(2)
        if not all(c in SUPERSCRIPTS for c in chars):
            return match.group(0)
        return ''.join(SUPERSCRIPTS[c] for c in chars)

    return _CARET_RE.sub(replace, text)


def latex_to_unicode(latex: str) -> str:
    """Best-effort LaTeX -> Unicode; the input comes back unchanged on failure."""
    try:
        converted = _converter.latex_to_text(latex)
    except Exception as e:
        logger.debug("LaTeX conversion failed for %r: %s", latex[:80], e)
        return latex
    return convert_caret_superscripts(converted.strip())


def _convert_prose_math(text: str) -> str:
    def display(match):
        return "\n\n" + latex_to_unicode(match.group(1)) + "\n\n"

    def inline(match):
        body = match.group(1)
        # Currency ("$5 and $10") and table cells are not math
        if '|' in body or not body.strip() or body[0].isspace() or body[-1].isspace():
            return match.group(0)
        return latex_to_unicode(body)

    text = _DISPLAY_BRACKET_RE.sub(display, text)
    text = _DISPLAY_DOLLAR_RE.sub(display, text)
    return _INLINE_RE.sub(inline, text)


def improve_latex_display(content: str) -> str:
    """Convert math spans outside fenced code blocks."""
    parts = _CODE_FENCE_RE.split(content)
    return ''.join(
        part if part.startswith("```") else _convert_prose_math(part)
        for part in parts
    )


class TextRenderer:
    """Markdown + math prose."""

    def __init__(self, context: RenderContext):
        self.context = context

    def render(self, payload: str) -> Markdown:
        return Markdown(
            improve_latex_display(payload),
            code_theme=self.context.theme.code_theme,
        )
