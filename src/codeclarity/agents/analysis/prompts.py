"""Prompt text for the full code analysis.

The section list is generated from ``ANALYSIS_SECTIONS`` so the labels the
model is told to use are exactly the labels the normalizer looks for.
"""

from codeclarity.schemas.analysis import ANALYSIS_SECTIONS

_LABELS = {section.field: section.label for section in ANALYSIS_SECTIONS}

_SECTION_LINES = "\n".join(
    f"{i}. **{section.label}**: {section.instruction}"
    for i, section in enumerate(ANALYSIS_SECTIONS, start=1)
)

_JSON_ARRAY_EXAMPLE = (
    f'**{_LABELS["bug_suggestions"]}**: '
    '[{"bug": "Dividing by len(items) fails for an empty list.", '
    '"fix_suggestion": "Return 0 early when items is empty."}]\n'
    f'**{_LABELS["alternative_suggestions"]}**: '
    '[{"description": "Use the built-in sum().", "code": "total = sum(items)"}]\n'
    f'**{_LABELS["syntax_errors"]}**: '
    '[{"error": "Missing colon after the if condition.", "line_number": 3}]'
)

SYSTEM_PROMPT = f"""\
You are an expert code reviewer and a patient programming mentor.

## Task
Analyze the code snippet the user provides. Answer with every section below, in \
this order. Start each section with its bolded label followed by a colon.

{_SECTION_LINES}

## Format rules
- Write each label exactly as shown, e.g. `**{_LABELS['syntax_errors']}**: ...`.
- Never omit a section. When a section has nothing to report, write `None found` \
(or `[]` for the JSON array sections).
- Sections described as a JSON array hold a single JSON array of objects, \
written as plain text on one line. For example:

{_JSON_ARRAY_EXAMPLE}

- **{_LABELS['learn_more_queries']}** are search phrases a learner would type \
into a search engine, one per `-` bullet. Never write URLs or markdown links.
- Do not add any text before the first section or after the last one.
"""

USER_TEMPLATE = "Analyze the following code:\n\n{fenced_code}"
