"""Response normalizer — maps a raw completion onto ``CodeAnalysis``.

The model is asked for bolded, labeled sections (see ``ANALYSIS_SECTIONS``)
but may answer with a JSON object instead, wrap either in a code fence,
omit sections, or ignore the format entirely.  ``normalize_analysis``
handles all of these without raising:

1. Object payloads (JSON mode) and text that decodes to a JSON object are
   coerced field by field through ``FIELD_RULES``.
2. Otherwise the text is scanned for ``**<Label>**: <content>`` sections.
3. If neither path yields an explanation, the raw payload is returned as a
   single-section analysis flagged with ``parse_failed``.

Normalization is a pure function of the payload.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from codeclarity.schemas.analysis import (
    ANALYSIS_SECTIONS,
    UNKNOWN_LANGUAGE,
    AlternativeSuggestion,
    BugSuggestion,
    CodeAnalysis,
    SectionShape,
    SyntaxErrorEntry,
)
from codeclarity.shared.learn_more import build_learn_more_links

logger = logging.getLogger(__name__)

PARSE_FAILURE_WARNING = (
    "The AI response could not be parsed into the expected structure, "
    "so it is shown unformatted."
)
MISSING_EXPLANATION = "The AI response did not include an explanation for this code."
EMPTY_RESPONSE = "The AI returned an empty response."

_EMPTY_MARKERS = frozenset({
    "", "[]", "-", "none", "none found", "n/a", "na", "nil", "no issues found",
    "no issues", "nothing found", "not applicable", "no syntax errors", "no syntax errors found",
})


# ----------------------------------------------------------------------
# Field rules
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class FieldRule:
    """How one ``CodeAnalysis`` field is read from a candidate object.

    Text fields fall back to ``default``.  List fields become ``[]`` when
    absent or not a list.  Record lists keep an element only when every
    ``required`` sub-field is a non-blank string.
    """

    shape: SectionShape
    aliases: tuple[str, ...] = ()
    default: str | None = None
    required: tuple[str, ...] = ()
    model: type[BaseModel] | None = None


FIELD_RULES: dict[str, FieldRule] = {
    "language": FieldRule(SectionShape.TEXT, default=UNKNOWN_LANGUAGE),
    "explanation_markdown": FieldRule(
        SectionShape.TEXT, aliases=("explanation",), default=MISSING_EXPLANATION,
    ),
    "warnings": FieldRule(SectionShape.STRING_LIST),
    "style_suggestions": FieldRule(SectionShape.STRING_LIST),
    "code_smells": FieldRule(SectionShape.STRING_LIST),
    "security_vulnerabilities": FieldRule(SectionShape.STRING_LIST),
    "bug_suggestions": FieldRule(
        SectionShape.RECORD_LIST, required=("bug", "fix_suggestion"), model=BugSuggestion,
    ),
    "alternative_suggestions": FieldRule(
        SectionShape.RECORD_LIST, required=("description", "code"), model=AlternativeSuggestion,
    ),
    "syntax_errors": FieldRule(
        SectionShape.RECORD_LIST, required=("error",), model=SyntaxErrorEntry,
    ),
    "learn_more_queries": FieldRule(
        SectionShape.STRING_LIST, aliases=("learn_more", "learn_more_links"),
    ),
}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _lookup(obj: dict[str, Any], name: str, aliases: tuple[str, ...] = ()) -> Any:
    """Value for ``name``, its camelCase spelling, or an alias; else None."""
    for key in (name, _camel(name), *aliases):
        if key in obj:
            return obj[key]
    return None


def _coerce_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _coerce_string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


_MAX_LINE_DIGITS = 9


def _parse_line(text: str) -> int | None:
    """Decimal digit string to int, or None when it is not a usable line number."""
    text = text.strip()
    if not text.isdecimal() or len(text) > _MAX_LINE_DIGITS:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def _coerce_line_number(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = _parse_line(value)
    if isinstance(value, int) and value >= 1:
        return value
    return None


def _coerce_records(field: str, value: Any) -> list[BaseModel]:
    """Keep only complete records, in their original order."""
    if not isinstance(value, list):
        return []

    rule = FIELD_RULES[field]
    records: list[BaseModel] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        values: dict[str, Any] = {}
        for sub in rule.required:
            sub_value = _lookup(item, sub)
            if not isinstance(sub_value, str) or not sub_value.strip():
                break
            # Leading indentation is significant in code
            values[sub] = sub_value.strip("\n").rstrip() if sub == "code" else sub_value.strip()
        else:
            if field == "syntax_errors":
                values["line_number"] = _coerce_line_number(_lookup(item, "line_number", ("line",)))
            records.append(rule.model(**values))  # type: ignore[misc]
    dropped = len(value) - len(records)
    if dropped:
        logger.debug("Dropped %d incomplete %s entries", dropped, field)
    return records


def _assemble(fields: dict[str, Any]) -> CodeAnalysis:
    queries = fields.pop("learn_more_queries", [])
    return CodeAnalysis(
        language=fields.pop("language", None) or UNKNOWN_LANGUAGE,
        explanation_markdown=fields.pop("explanation_markdown", None) or MISSING_EXPLANATION,
        learn_more_links=build_learn_more_links(queries),
        **fields,
    )


def _from_object(obj: dict[str, Any]) -> CodeAnalysis | None:
    """Coerce a candidate object; None when it holds no recognised content."""
    fields: dict[str, Any] = {}
    for name, rule in FIELD_RULES.items():
        raw = _lookup(obj, name, rule.aliases)
        if rule.shape is SectionShape.TEXT:
            value = _coerce_text(raw)
        elif rule.shape is SectionShape.STRING_LIST:
            value = _coerce_string_list(raw)
        else:
            value = _coerce_records(name, raw)
        if value:
            fields[name] = value

    if not fields:
        return None
    if "explanation_markdown" not in fields:
        logger.warning("Structured response had no explanation; using placeholder")
    return _assemble(fields)


# ----------------------------------------------------------------------
# JSON decoding
# ----------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```[\w+\-.]*[ \t]*\n?(.*?)\n?[ \t]*```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove one code fence wrapping the whole text, if there is one."""
    text = text.strip()
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def _load_json(text: str) -> Any:
    """``json.loads`` that reports failure as None instead of raising."""
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def _decode_object(text: str) -> dict[str, Any] | None:
    """Decode text that is (or fences, or string-encodes) a JSON object."""
    body = strip_code_fence(text)
    if not body.startswith(("{", '"')):
        return None

    value = _load_json(body)
    if value is None and body.startswith("{"):
        # Valid object followed by trailing commentary
        try:
            value, _ = json.JSONDecoder().raw_decode(body)
        except (ValueError, RecursionError):
            return None

    if isinstance(value, str):
        value = _load_json(strip_code_fence(value))
    return value if isinstance(value, dict) else None


# ----------------------------------------------------------------------
# Labeled markdown sections
# ----------------------------------------------------------------------


def _label_key(label: str) -> str:
    return " ".join(label.lower().replace("&", " and ").split())


def _label_pattern(label: str) -> str:
    return re.escape(label).replace(r"\&", r"(?:&|and)").replace(r"\ ", r"\s+")


_SECTION_BY_KEY = {_label_key(section.label): section for section in ANALYSIS_SECTIONS}

_LABEL_RE = re.compile(
    # optional line prefix: heading hashes, list numbering or a bullet
    r"(?:^[ \t]*(?:#{1,6}[ \t]*|\d+[.)][ \t]*|[-*•][ \t]+)?)?"
    r"\*\*[ \t]*(?P<label>"
    + "|".join(_label_pattern(section.label) for section in ANALYSIS_SECTIONS)
    + r")[ \t]*(?P<inner_colon>:)?[ \t]*\*\*[ \t]*(?P<outer_colon>:)?",
    re.IGNORECASE | re.MULTILINE,
)

_TRAILING_RULE_RE = re.compile(r"(?:\n[ \t]*(?:-{3,}|\*{3,}|_{3,})[ \t]*)+\s*$")
_BULLET_RE = re.compile(r"^[ \t]*(?:[-*•+]|\d+[.)])[ \t]+(?P<item>.*)$")


def _is_empty_marker(text: str) -> bool:
    return text.strip().strip(".!").strip().lower() in _EMPTY_MARKERS


def _split_sections(text: str) -> dict[str, str]:
    """Map field name -> raw section content; the first occurrence of a label wins.

    A bold label counts when it carries a colon or starts its own line, so
    a label name mentioned in bold mid-sentence does not split the text.
    """
    matches = []
    for match in _LABEL_RE.finditer(text):
        at_line_start = match.start() == 0 or text[match.start() - 1] == "\n"
        if match.group("inner_colon") or match.group("outer_colon") or at_line_start:
            matches.append(match)

    sections: dict[str, str] = {}
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        section = _SECTION_BY_KEY.get(_label_key(match.group("label")))
        if section is None or section.field in sections:
            continue
        content = _TRAILING_RULE_RE.sub("", text[match.end():end])
        sections[section.field] = content.strip()
    return sections


def _split_bullets(content: str, *, joiner: str = " ") -> list[str]:
    """Split on leading bullet markers; other lines continue the previous item.

    Lines inside fenced code blocks never start a new item.
    """
    items: list[str] = []
    in_fence = False
    for line in content.splitlines():
        stripped = line.strip()
        match = None if in_fence else _BULLET_RE.match(line)
        if stripped.startswith("```"):
            in_fence = not in_fence
        if match:
            items.append(match.group("item").strip())
        elif stripped or in_fence:
            text = line if joiner == "\n" else stripped
            if items:
                items[-1] = f"{items[-1]}{joiner}{text}"
            else:
                items.append(text)
    return [item.strip() for item in items if item.strip()]


def _looks_like_json_array(content: str) -> bool:
    body = strip_code_fence(content)
    return body.startswith("[") and body.endswith("]")


def _language_from(content: str) -> str:
    for line in content.splitlines():
        value = line.strip().strip("`*_").strip().rstrip(".").strip()
        if value and not _is_empty_marker(value):
            return value
    return UNKNOWN_LANGUAGE


def _string_list_from_section(content: str) -> list[str]:
    if _is_empty_marker(content):
        return []
    if _looks_like_json_array(content):
        parsed = _load_json(strip_code_fence(content))
        if isinstance(parsed, list):
            return _coerce_string_list(parsed)
    return [item for item in _split_bullets(content) if not _is_empty_marker(item)]


_BUG_LABEL_RE = re.compile(r"^(?:\*\*)?\s*(?:potential\s+)?bug\s*(?:\*\*)?\s*:\s*(?:\*\*)?\s*", re.IGNORECASE)
_FIX_MARKER_RE = re.compile(
    r"(?:\*\*)?\b(?:suggested\s+fix|fix\s+suggestion|fix|suggestion)\b\s*(?:\*\*)?\s*:\s*(?:\*\*)?"
    r"|\s(?:→|->|=>)\s",
    re.IGNORECASE,
)
_ALT_LABEL_RE = re.compile(r"^(?:\*\*)?\s*alternative(?:\s+\d+)?\s*(?:\*\*)?\s*:\s*(?:\*\*)?\s*", re.IGNORECASE)
_CODE_BLOCK_RE = re.compile(r"```[\w+\-.]*[ \t]*\n(?P<code>.*?)\n?[ \t]*```", re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`(?P<code>[^`]+)`\s*\.?$")
_LINE_PREFIX_RE = re.compile(
    r"^(?:\*\*)?\s*line\s+(?P<line>\d+)\s*(?:\*\*)?\s*[:\-–—]?\s*(?:\*\*)?\s*", re.IGNORECASE,
)
_LINE_ANYWHERE_RE = re.compile(r"\bline\s+(?P<line>\d+)\b", re.IGNORECASE)


def _bug_from_bullet(item: str) -> BugSuggestion | None:
    match = _FIX_MARKER_RE.search(item)
    if not match:
        return None
    bug = _BUG_LABEL_RE.sub("", item[:match.start()]).strip().rstrip("-–—;,").strip()
    fix = item[match.end():].strip()
    if not bug or not fix:
        return None
    return BugSuggestion(bug=" ".join(bug.split()), fix_suggestion=" ".join(fix.split()))


def _alternative_from_bullet(item: str) -> AlternativeSuggestion | None:
    match = _CODE_BLOCK_RE.search(item) or _INLINE_CODE_RE.search(item)
    if not match:
        return None
    description = _ALT_LABEL_RE.sub("", item[:match.start()]).strip().rstrip(":").strip()
    code = match.group("code").strip("\n").rstrip()
    if not description or not code.strip():
        return None
    return AlternativeSuggestion(description=" ".join(description.split()), code=code)


def _syntax_error_from_bullet(item: str) -> SyntaxErrorEntry | None:
    line_number = None
    prefix = _LINE_PREFIX_RE.match(item)
    if prefix:
        line_number = _parse_line(prefix.group("line"))
        item = item[prefix.end():]
    else:
        anywhere = _LINE_ANYWHERE_RE.search(item)
        if anywhere:
            line_number = _parse_line(anywhere.group("line"))
    error = " ".join(item.split())
    if not error:
        return None
    return SyntaxErrorEntry(error=error, line_number=line_number if line_number and line_number >= 1 else None)


_BULLET_RECORD_PARSERS = {
    "bug_suggestions": _bug_from_bullet,
    "alternative_suggestions": _alternative_from_bullet,
    "syntax_errors": _syntax_error_from_bullet,
}


def _records_from_section(field: str, content: str) -> list[BaseModel]:
    if _is_empty_marker(content):
        return []
    if _looks_like_json_array(content):
        parsed = _load_json(strip_code_fence(content))
        if isinstance(parsed, list):
            return _coerce_records(field, parsed)
        logger.debug("%s section looked like JSON but did not parse; splitting bullets", field)

    parse_bullet = _BULLET_RECORD_PARSERS[field]
    records: list[BaseModel] = []
    for item in _split_bullets(content, joiner="\n"):
        if _is_empty_marker(item):
            continue
        record = parse_bullet(item)
        if record is None:
            logger.debug("Dropping incomplete %s entry: %.80s", field, item)
            continue
        records.append(record)
    return records


def _from_sections(sections: dict[str, str]) -> CodeAnalysis | None:
    """Build an analysis from labeled sections; None without an explanation."""
    explanation = sections.get("explanation_markdown", "")
    if _is_empty_marker(explanation):
        return None

    fields: dict[str, Any] = {
        "explanation_markdown": explanation,
        "language": _language_from(sections.get("language", "")),
    }
    for section in ANALYSIS_SECTIONS:
        content = sections.get(section.field)
        if content is None or section.shape is SectionShape.TEXT:
            continue
        if section.shape is SectionShape.STRING_LIST:
            fields[section.field] = _string_list_from_section(content)
        else:
            fields[section.field] = _records_from_section(section.field, content)
    return _assemble(fields)


# ----------------------------------------------------------------------
# Public entry points
# ----------------------------------------------------------------------


def raw_fallback(text: str) -> CodeAnalysis:
    """Single-section analysis showing the unparsed payload verbatim."""
    return CodeAnalysis(
        language=UNKNOWN_LANGUAGE,
        explanation_markdown=text if text.strip() else EMPTY_RESPONSE,
        warnings=[PARSE_FAILURE_WARNING],
        parse_failed=True,
    )


def normalize_analysis(payload: str | dict[str, Any] | None) -> CodeAnalysis:
    """Turn one raw full-analysis completion into a ``CodeAnalysis``. Never raises."""
    if isinstance(payload, dict):
        analysis = _from_object(payload)
        if analysis is not None:
            return analysis
        logger.warning("Structured response held none of the expected fields")
        return raw_fallback(json.dumps(payload, indent=2, ensure_ascii=False, default=str))

    text = payload if isinstance(payload, str) else ("" if payload is None else str(payload))

    candidate = _decode_object(text)
    if candidate is not None:
        analysis = _from_object(candidate)
        if analysis is not None:
            return analysis
        logger.debug("Response was a JSON object without expected fields; trying sections")

    analysis = _from_sections(_split_sections(strip_code_fence(text)))
    if analysis is not None:
        return analysis

    logger.warning("Could not parse response into analysis sections (%d chars)", len(text))
    return raw_fallback(text)


def completion_text(body: Any) -> str | None:
    """Text of ``{"content": ...}`` or ``{"choices": [{"message": {"content": ...}}]}``."""
    if not isinstance(body, dict):
        return None

    content = body.get("content")
    if isinstance(content, str) and content.strip():
        return content

    choices = body.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str) and content.strip():
                return content
    return None


def normalize_chat_reply(payload: str | dict[str, Any] | None) -> str:
    """Chat replies are used verbatim; objects yield their main text content."""
    if isinstance(payload, str):
        return payload
    if payload is None:
        return ""
    if isinstance(payload, dict):
        text = completion_text(payload)
        if text is not None:
            return text
        return json.dumps(payload, ensure_ascii=False, default=str)
    return str(payload)
