"""Tests for the prose renderer's math handling."""

from vizchat.render.text import (
    TextRenderer,
    convert_caret_superscripts,
    improve_latex_display,
    latex_to_unicode,
)


class TestLatexConversion:

    def test_caret_superscripts(self):
        assert convert_caret_superscripts("x^2 + e^{-x}") == "x² + e⁻ˣ"

    def test_unmappable_superscript_kept(self):
        assert convert_caret_superscripts("x^{Q}") == "x^{Q}"

    def test_greek_letters(self):
        assert latex_to_unicode(r"\alpha + \beta") == "α + β"

    def test_inline_math_converted(self):
        assert improve_latex_display(r"Energy $E = mc^2$ holds") == "Energy E = mc² holds"

    def test_display_math_gets_own_paragraph(self):
        result = improve_latex_display(r"Before $$\alpha$$ after")

        assert result == "Before \n\nα\n\n after"

    def test_currency_is_not_math(self):
        text = "It costs $5 and $10 today"

        assert improve_latex_display(text) == text

    def test_code_fences_untouched(self):
        text = "```python\nprice = '$x$'\n```"

        assert improve_latex_display(text) == text


class TestTextRenderer:

    def test_tilde_entity_shows_plain_tilde(self, context, render_text):
        output = render_text(TextRenderer(context).render("rated 1&#126;10 and 2&#126;3"))

        assert "rated 1~10 and 2~3" in output

    def test_markdown_rendered(self, context, render_text):
        output = render_text(TextRenderer(context).render("# Title\n\n- item"))

        assert "Title" in output
        assert "item" in output
        assert "#" not in output
