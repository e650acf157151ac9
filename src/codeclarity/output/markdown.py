"""Markdown report builder — renders an analysis and a chat transcript."""

from __future__ import annotations

import re
from collections.abc import Iterable

from codeclarity.agents.prompt_builder import fence_code
from codeclarity.schemas.analysis import CodeAnalysis
from codeclarity.schemas.conversation import ConversationTurn, Role

_LINK_TEXT_SPECIALS = re.compile(r"([\\\[\]()<>])")


def _link_text(text: str) -> str:
    """Backslash-escape characters that could close or open a Markdown link."""
    return _LINK_TEXT_SPECIALS.sub(r"\\\1", text)


def _bullets(title: str, items: list[str]) -> list[str]:
    if not items:
        return []
    return [f"### {title}\n", *(f"- {item}" for item in items), ""]


def render_analysis_markdown(analysis: CodeAnalysis, *, code: str = "") -> str:
    """Render a ``CodeAnalysis`` into a Markdown string.

    Empty sections are left out.  Model text is inserted as-is; Markdown
    is the model's own output format.
    """
    sections: list[str] = ["# Code Explanation\n", f"**Language:** {analysis.language}\n"]

    if analysis.parse_failed:
        sections.append("> The response could not be split into sections; it is shown as received.\n")

    if code:
        sections.append("## Code\n")
        sections.append(fence_code(code) + "\n")

    sections.append("## Analysis\n")
    sections.append(analysis.explanation_markdown.strip() + "\n")

    if analysis.has_findings:
        sections.append("## Review\n")
    sections.extend(_bullets("Style & Formatting", analysis.style_suggestions))
    sections.extend(_bullets("Code Smells", analysis.code_smells))
    sections.extend(_bullets("Security", analysis.security_vulnerabilities))

    if analysis.bug_suggestions:
        sections.append("### Potential Bugs\n")
        for entry in analysis.bug_suggestions:
            sections.append(f"- **Bug:** {entry.bug}")
            sections.append(f"  **Fix:** {entry.fix_suggestion}")
        sections.append("")

    if analysis.alternative_suggestions:
        sections.append("### Alternative Approaches\n")
        for entry in analysis.alternative_suggestions:
            sections.append(f"{entry.description}\n")
            sections.append(fence_code(entry.code) + "\n")

    if analysis.syntax_errors:
        sections.append("### Syntax Errors\n")
        for entry in analysis.syntax_errors:
            where = f"Line {entry.line_number}: " if entry.line_number else ""
            sections.append(f"- {where}{entry.error}")
        sections.append("")

    sections.extend(_bullets("Warnings", analysis.warnings))

    if analysis.learn_more_links:
        sections.append("## Learn More\n")
        for link in analysis.learn_more_links:
            sections.append(f"- [{_link_text(link.title)}]({link.url})")
        sections.append("")

    return "\n".join(sections).rstrip() + "\n"


def render_conversation_markdown(turns: Iterable[ConversationTurn]) -> str:
    """Render mentor turns as a Markdown transcript."""
    lines: list[str] = ["# Mentor Conversation\n"]
    for turn in turns:
        speaker = "You" if turn.role is Role.USER else "Mentor"
        lines.append(f"**{speaker}:**\n")
        lines.append(turn.content.strip() + "\n")
    return "\n".join(lines).rstrip() + "\n"
