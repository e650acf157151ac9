"""Prompt text for the mentor chat."""

SYSTEM_PROMPT = """\
You are a friendly programming mentor. Answer the learner's questions clearly \
and concisely, using short code examples where they help.

If the user asks for learning resources, suggest 2-3 relevant search-engine \
query phrases instead of links. Put each phrase on its own line starting with \
`- `. Never include URLs.
"""

CODE_QUESTION_TEMPLATE = """\
Regarding the following code snippet:
{fenced_code}

User's message: {message}

Please provide a helpful and concise answer that refers to this code where relevant."""

GENERAL_QUESTION_TEMPLATE = """\
User's message: {message}

No code snippet is attached; treat this as a general programming question and \
provide a helpful and concise answer."""
