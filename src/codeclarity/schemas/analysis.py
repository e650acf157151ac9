"""Pydantic models for a normalized code analysis, plus the section table.

``ANALYSIS_SECTIONS`` is the one place the bolded section labels live.  The
full-analysis prompt enumerates them and the normalizer scans for them, so
the prompt contract and the parser read from the same list.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, Field

UNKNOWN_LANGUAGE = "Unknown"


class SectionShape(str, Enum):
    """How a section's content maps onto a ``CodeAnalysis`` field."""

    TEXT = "text"
    STRING_LIST = "string_list"
    RECORD_LIST = "record_list"


class AnalysisSection(NamedTuple):
    label: str
    field: str
    shape: SectionShape
    instruction: str


ANALYSIS_SECTIONS: tuple[AnalysisSection, ...] = (
    AnalysisSection(
        "Detected Language", "language", SectionShape.TEXT,
        "The programming language of the snippet, as a single name (e.g. Python). "
        "Use Unknown if it cannot be determined.",
    ),
    AnalysisSection(
        "Comprehensive Analysis", "explanation_markdown", SectionShape.TEXT,
        "A markdown explanation with a \"What it does\" part walking through the "
        "logic step by step, followed by a short \"Summary\" part.",
    ),
    AnalysisSection(
        "Style & Formatting Suggestions", "style_suggestions", SectionShape.STRING_LIST,
        "Bulleted naming, formatting and idiom suggestions.",
    ),
    AnalysisSection(
        "Code Smell Detection", "code_smells", SectionShape.STRING_LIST,
        "Bulleted maintainability problems (duplication, long functions, magic values).",
    ),
    AnalysisSection(
        "Security Vulnerability Checks", "security_vulnerabilities", SectionShape.STRING_LIST,
        "Bulleted security risks (injection, unsafe input handling, secrets in code).",
    ),
    AnalysisSection(
        "Potential Bug Identification & Fix Suggestions", "bug_suggestions",
        SectionShape.RECORD_LIST,
        "A JSON array of objects with \"bug\" and \"fix_suggestion\" string fields.",
    ),
    AnalysisSection(
        "Alternative Code Approaches", "alternative_suggestions", SectionShape.RECORD_LIST,
        "A JSON array of objects with \"description\" and \"code\" string fields.",
    ),
    AnalysisSection(
        "General Warnings & Suggestions", "warnings", SectionShape.STRING_LIST,
        "Bulleted caveats that do not fit the sections above.",
    ),
    AnalysisSection(
        "Syntax Errors", "syntax_errors", SectionShape.RECORD_LIST,
        "A JSON array of objects with an \"error\" string and an optional integer "
        "\"line_number\" (1-based).",
    ),
    AnalysisSection(
        "Learn More Links", "learn_more_queries", SectionShape.STRING_LIST,
        "2-3 bulleted search-engine query phrases about the concepts used. "
        "Plain phrases only, never URLs.",
    ),
)


class BugSuggestion(BaseModel):
    """A suspected bug and how to fix it."""

    bug: str
    fix_suggestion: str


class AlternativeSuggestion(BaseModel):
    """Another way to write the snippet."""

    description: str
    code: str


class SyntaxErrorEntry(BaseModel):
    """A syntax error, with a 1-based line number when the model gave one."""

    error: str
    line_number: int | None = Field(default=None, ge=1)


class LearnMoreLink(BaseModel):
    """A search link built locally from a query phrase."""

    title: str
    query: str
    url: str


class CodeAnalysis(BaseModel):
    """Normalized result of one full-analysis request.

    Every list field is always present.  ``parse_failed`` marks the raw
    fallback produced when the completion could not be mapped onto the
    sections at all.
    """

    language: str = UNKNOWN_LANGUAGE
    explanation_markdown: str
    warnings: list[str] = []
    style_suggestions: list[str] = []
    code_smells: list[str] = []
    security_vulnerabilities: list[str] = []
    bug_suggestions: list[BugSuggestion] = []
    alternative_suggestions: list[AlternativeSuggestion] = []
    syntax_errors: list[SyntaxErrorEntry] = []
    learn_more_links: list[LearnMoreLink] = []
    parse_failed: bool = False

    @property
    def has_findings(self) -> bool:
        return any((
            self.warnings,
            self.style_suggestions,
            self.code_smells,
            self.security_vulnerabilities,
            self.bug_suggestions,
            self.alternative_suggestions,
            self.syntax_errors,
        ))
