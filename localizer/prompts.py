"""Instructions and question wrapping sent to the translation provider."""

from __future__ import annotations

import re

SYSTEM_PROMPT_TEMPLATE = """You are a professional translator. Translate text taken from a {file_type} file from {source} to {target} accurately.
{context}
Requirements:
- Keep the original format of the text; for Markdown keep lists, emphasis, links and code exactly as they are
- Keep the tone, style and level of formality of the original
- Preserve special characters, placeholders and variables untouched
- Keep technical terms consistent and make the result read naturally for the target audience

Reply with the translation only, in the same format as the original, without notes, quotes, labels or extra blank lines."""

CONTEXT_TEMPLATE = '''
Context:
"""
{context}
"""
'''

QUESTION_TEMPLATE = 'Text to translate:\n"""\n{text}\n"""'

QUESTION_PATTERN = re.compile(r'\AText to translate:\n"""\n([\s\S]*)\n"""\Z')


def build_system_prompt(file_type: str, source: str, target: str, context: str = "") -> str:
    """Render the instruction for one file type and locale pair."""

    context_block = CONTEXT_TEMPLATE.format(context=context.strip()) if context.strip() else ""
    return SYSTEM_PROMPT_TEMPLATE.format(
        file_type=file_type,
        source=source,
        target=target,
        context=context_block,
    )


def build_question(text: str) -> str:
    return QUESTION_TEMPLATE.format(text=text)


def unwrap_question(question: str) -> str:
    """Return the text embedded in a question built by :func:`build_question`."""

    match = QUESTION_PATTERN.match(question)
    return match.group(1) if match else question
