"""Static HTML export — renders an analysis to a self-contained HTML page."""

from __future__ import annotations

import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup, escape

from codeclarity.schemas.analysis import CodeAnalysis
from codeclarity.schemas.conversation import ConversationTurn

_TEMPLATE_DIR = Path(__file__).parent / "templates"

_FENCE_RE = re.compile(r"^(`{3,})[^\n`]*\n(.*?)\n\1[ \t]*$", re.DOTALL | re.MULTILINE)
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")


def _inline(text: str) -> str:
    """Inline markdown on already-escaped text."""
    text = _INLINE_CODE_RE.sub(r"<code>\1</code>", text)
    text = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", text)
    text = re.sub(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])", r"<em>\1</em>", text)
    return text


def _md_to_html(text: str) -> Markup:
    """Minimal markdown-to-HTML for model-written text.

    The input is HTML-escaped first, so only the tags produced here reach
    the page.  Fenced code blocks become ``<pre><code>`` and are otherwise
    left untouched.
    """
    blocks: list[str] = []

    def _stash_code(match: re.Match[str]) -> str:
        blocks.append(f"<pre><code>{match.group(2)}</code></pre>")
        return f"\x00{len(blocks) - 1}\x00"

    text = _FENCE_RE.sub(_stash_code, str(escape(text)))

    result: list[str] = []
    in_ul = False
    in_ol = False

    def _close_lists() -> None:
        nonlocal in_ul, in_ol
        if in_ul:
            result.append("</ul>")
            in_ul = False
        if in_ol:
            result.append("</ol>")
            in_ol = False

    for line in text.split("\n"):
        stripped = line.strip()

        code_match = re.fullmatch(r"\x00(\d+)\x00", stripped)
        if code_match:
            _close_lists()
            result.append(blocks[int(code_match.group(1))])
            continue

        heading_match = re.match(r"^(#{1,4})\s+(.+)$", stripped)
        if heading_match:
            _close_lists()
            level = len(heading_match.group(1))
            result.append(f"<h{level}>{_inline(heading_match.group(2))}</h{level}>")
            continue

        if stripped.startswith(("- ", "* ")):
            if in_ol:
                result.append("</ol>")
                in_ol = False
            if not in_ul:
                result.append("<ul>")
                in_ul = True
            result.append(f"<li>{_inline(stripped[2:])}</li>")
            continue

        ol_match = re.match(r"^\d+\.\s+(.+)$", stripped)
        if ol_match:
            if in_ul:
                result.append("</ul>")
                in_ul = False
            if not in_ol:
                result.append("<ol>")
                in_ol = True
            result.append(f"<li>{_inline(ol_match.group(1))}</li>")
            continue

        if not stripped and (in_ul or in_ol):
            continue
        _close_lists()
        if stripped:
            result.append(f"<p>{_inline(stripped)}</p>")

    _close_lists()
    return Markup("\n".join(result))


def render_analysis_html(
    analysis: CodeAnalysis,
    *,
    code: str = "",
    turns: list[ConversationTurn] | None = None,
    insight: str | None = None,
) -> str:
    """Render an analysis, plus optional chat turns and insight, into one HTML page."""
    env = Environment(loader=FileSystemLoader(str(_TEMPLATE_DIR)), autoescape=True)
    env.filters["markdown"] = _md_to_html
    template = env.get_template("analysis.html")

    return template.render(
        analysis=analysis,
        code=code,
        explanation_html=_md_to_html(analysis.explanation_markdown),
        insight_html=_md_to_html(insight) if insight else "",
        turns=turns or [],
    )
