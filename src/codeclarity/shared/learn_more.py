"""Search-link builder for "Learn More" phrases.

Links are never taken from the model.  The model supplies plain query
phrases; the URL is built here from a fixed template, with the phrase
percent-encoded so nothing in it can change the link's destination.
"""

from __future__ import annotations

import re
from urllib.parse import quote

from codeclarity.schemas.analysis import UNKNOWN_LANGUAGE, LearnMoreLink

SEARCH_URL_TEMPLATE = "https://www.google.com/search?q={query}"

# General topics offered for a language when the model gave no phrases.
LANGUAGE_CONCEPTS: tuple[str, ...] = (
    "Basics",
    "Syntax",
    "Functions",
    "Control Flow (if/else, loops)",
    "Data Structures (arrays, objects/maps)",
    "Error Handling",
    "Asynchronous Programming",
    "Classes and Objects",
    "Modules/Imports",
    "Best Practices",
)

_MD_LINK_RE = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_MAX_QUERY_LENGTH = 200


def clean_query(phrase: str) -> str:
    """Reduce a model-written bullet to a bare search phrase.

    Markdown links keep only their text, and surrounding quotes, backticks
    and list punctuation are stripped.
    """
    text = _MD_LINK_RE.sub(r"\1", phrase)
    text = " ".join(text.split())
    text = text.strip(" \t\"'`*_-•")
    return text[:_MAX_QUERY_LENGTH]


def search_url(query: str) -> str:
    """Percent-encode ``query`` (no safe characters) into the search template."""
    return SEARCH_URL_TEMPLATE.format(query=quote(query, safe=""))


def build_learn_more_links(phrases: list[str]) -> list[LearnMoreLink]:
    """One link per distinct non-empty phrase, in order."""
    links: list[LearnMoreLink] = []
    seen: set[str] = set()
    for phrase in phrases:
        query = clean_query(phrase)
        if not query or query.lower() in seen:
            continue
        seen.add(query.lower())
        links.append(LearnMoreLink(title=query, query=query, url=search_url(query)))
    return links


def language_concept_links(language: str) -> list[LearnMoreLink]:
    """Tutorial searches for general concepts of ``language``.

    Empty when the language is unknown.
    """
    language = language.strip()
    if not language or language == UNKNOWN_LANGUAGE:
        return []
    links = []
    for concept in LANGUAGE_CONCEPTS:
        query = f"{language} {concept} tutorial"
        links.append(LearnMoreLink(title=f"{language}: {concept}", query=query, url=search_url(query)))
    return links
