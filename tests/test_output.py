"""Tests for Markdown report and HTML export generation."""

from __future__ import annotations

import re

from codeclarity.output.html import _md_to_html, render_analysis_html
from codeclarity.output.markdown import render_analysis_markdown, render_conversation_markdown
from codeclarity.schemas.analysis import (
    AlternativeSuggestion,
    BugSuggestion,
    CodeAnalysis,
    SyntaxErrorEntry,
)
from codeclarity.schemas.conversation import ConversationTurn, Role
from codeclarity.shared.learn_more import build_learn_more_links
from codeclarity.shared.normalizer import raw_fallback


def _make_analysis() -> CodeAnalysis:
    return CodeAnalysis(
        language="Python",
        explanation_markdown="### What it does\nAdds **two** numbers.",
        style_suggestions=["Add type hints"],
        bug_suggestions=[BugSuggestion(bug="str + int fails", fix_suggestion="Validate input")],
        alternative_suggestions=[AlternativeSuggestion(description="Use sum", code="sum([a, b])")],
        syntax_errors=[SyntaxErrorEntry(error="missing colon", line_number=2)],
        learn_more_links=build_learn_more_links(["python functions"]),
    )


class TestMarkdown:
    def test_sections_present(self) -> None:
        md = render_analysis_markdown(_make_analysis(), code="def add(a, b): return a + b")
        assert "**Language:** Python" in md
        assert "```\ndef add(a, b): return a + b\n```" in md
        assert "### Style & Formatting" in md
        assert "- **Bug:** str + int fails" in md
        assert "```\nsum([a, b])\n```" in md
        assert "- Line 2: missing colon" in md
        assert "[python functions](https://www.google.com/search?q=python%20functions)" in md

    def test_learn_more_title_cannot_inject_link(self) -> None:
        analysis = CodeAnalysis(
            explanation_markdown="x",
            learn_more_links=build_learn_more_links(
                ["python x](https://evil.example/phish) y", "see <https://evil.example/a>"]
            ),
        )
        md = render_analysis_markdown(analysis)

        targets = re.findall(r"(?<!\\)\]\(([^)\s]*)\)", md)
        assert len(targets) == 2
        assert all(t.startswith("https://www.google.com/search?q=") for t in targets)
        assert "python x\\]\\(https://evil.example/phish\\) y" in md
        assert "\\<https://evil.example/a\\>" in md

    def test_empty_sections_omitted(self) -> None:
        md = render_analysis_markdown(CodeAnalysis(explanation_markdown="Only this."))
        assert "Only this." in md
        assert "## Review" not in md
        assert "## Learn More" not in md

    def test_parse_failure_notice(self) -> None:
        md = render_analysis_markdown(raw_fallback("raw model text"))
        assert "shown as received" in md
        assert "raw model text" in md

    def test_conversation_transcript(self) -> None:
        turns = [
            ConversationTurn(role=Role.USER, content="What is x?"),
            ConversationTurn(role=Role.ASSISTANT, content="A variable."),
        ]
        md = render_conversation_markdown(turns)
        assert md.index("**You:**") < md.index("**Mentor:**")
        assert "A variable." in md


class TestHtml:
    def test_model_text_is_escaped(self) -> None:
        analysis = CodeAnalysis(
            language="<b>Py</b>",
            explanation_markdown='<script>alert("x")</script> and **bold**',
            warnings=["<img src=x onerror=alert(1)>"],
        )
        html = render_analysis_html(analysis, code="<tag>")
        assert "<script>alert" not in html
        assert "&lt;script&gt;" in html
        assert "<img src=x" not in html
        assert "<b>Py</b>" not in html
        assert "&lt;tag&gt;" in html
        assert "<strong>bold</strong>" in html

    def test_links_point_to_search(self) -> None:
        html = render_analysis_html(_make_analysis())
        assert 'href="https://www.google.com/search?q=python%20functions"' in html
        assert "Line 2: missing colon" in html

    def test_conversation_and_insight_included(self) -> None:
        turns = [ConversationTurn(role=Role.ASSISTANT, content="<i>hi</i>")]
        html = render_analysis_html(_make_analysis(), turns=turns, insight="**Key concepts**")
        assert "Mentor Conversation" in html
        assert "&lt;i&gt;hi&lt;/i&gt;" in html
        assert "<strong>Key concepts</strong>" in html

    def test_md_to_html_code_blocks_and_lists(self) -> None:
        html = _md_to_html("- one\n- two\n\n```python\nif a < b:\n    pass\n```")
        assert "<ul>\n<li>one</li>\n<li>two</li>\n</ul>" in html
        assert "<pre><code>if a &lt; b:\n    pass</code></pre>" in html

    def test_md_to_html_headings(self) -> None:
        html = _md_to_html("### What it does\nText")
        assert "<h3>What it does</h3>" in html
        assert "<p>Text</p>" in html
