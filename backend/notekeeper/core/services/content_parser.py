"""Extract structured signals from note bodies.

Everything here is pure except ``PromptTrigger``, which remembers the last
prompt it fired so live-typing callers don't re-trigger on every keystroke.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import NamedTuple

from bs4 import BeautifulSoup

TAG_PATTERN = re.compile(r"#(\w+)")
DUE_DATE_PATTERN = re.compile(r"\[(\d{2})/(\d{2})\]")

_BLOCK_TAGS = [
    "p", "div", "br", "li", "ul", "ol", "blockquote", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6", "tr",
]


class PromptKind(str, Enum):
    """AI provider selected by the delimiter wrapped around a prompt."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    PERPLEXITY = "perplexity"


# Delimited text never spans lines; a "//" right after ":" is a URL scheme
_PROMPT_PATTERNS: dict[PromptKind, re.Pattern[str]] = {
    PromptKind.OPENAI: re.compile(r"\\\\(.*?)\\\\"),
    PromptKind.ANTHROPIC: re.compile(r"(?<!:)//(.*?)//"),
    PromptKind.PERPLEXITY: re.compile(r"\[\[(.*?)\]\]"),
}


class DueDateMarker(NamedTuple):
    day: str
    month: str


class PromptSpan(NamedTuple):
    kind: PromptKind
    prompt: str
    preceding_text: str
    start: int
    end: int

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.start}:{self.prompt}"


def html_to_text(markup: str | None) -> str:
    """Render rich-text markup as plain text.

    Block elements become line breaks and entities are decoded. Script and
    style contents and attribute values are never part of the result.
    Plain text comes back unchanged.
    """
    if not markup:
        return ""
    if "<" not in markup and "&" not in markup:
        return markup
    soup = BeautifulSoup(markup, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()
    for element in soup.find_all(_BLOCK_TAGS):
        element.insert_before("\n")
        element.insert_after("\n")
    text = soup.get_text()
    return re.sub(r"\n{2,}", "\n", text).strip("\n")


def ordered_tags(text: str | None) -> list[str]:
    """Hashtags in first-occurrence order, without the leading ``#``."""
    tags: list[str] = []
    for match in TAG_PATTERN.finditer(text or ""):
        tag = match.group(1)
        if tag not in tags:
            tags.append(tag)
    return tags


def extract_tags(text: str | None) -> set[str]:
    return set(ordered_tags(text))


def extract_due_date_marker(text: str | None) -> DueDateMarker | None:
    """Return the first ``[DD/MM]`` marker in ``text``, if any."""
    match = DUE_DATE_PATTERN.search(text or "")
    if not match:
        return None
    return DueDateMarker(match.group(1), match.group(2))


def extract_prompt_spans(text: str | None) -> list[PromptSpan]:
    """Find the actionable AI prompt in ``text``.

    Only the last delimited prompt (by end offset, across all delimiter
    kinds) is actionable, so the result holds at most one span. Blank or
    unterminated prompts are ignored.
    """
    if not text:
        return []

    latest: PromptSpan | None = None
    for kind, pattern in _PROMPT_PATTERNS.items():
        for match in pattern.finditer(text):
            prompt = match.group(1).strip()
            if not prompt:
                continue
            span = PromptSpan(
                kind=kind,
                prompt=prompt,
                preceding_text=text[: match.start()],
                start=match.start(),
                end=match.end(),
            )
            if latest is None or span.end > latest.end:
                latest = span
    return [latest] if latest else []


def replace_prompt_span(text: str, span: PromptSpan, replacement: str) -> str:
    """Splice ``replacement`` over the delimited prompt, delimiters included."""
    return text[: span.start] + replacement + text[span.end:]


class PromptTrigger:
    """Fire each actionable prompt once while the user keeps typing.

    Keyed on kind, position and prompt text: retyping the same prompt at a
    new position fires again, an unchanged prompt does not.
    """

    def __init__(self) -> None:
        self.last_key: str | None = None

    def feed(self, text: str | None) -> PromptSpan | None:
        spans = extract_prompt_spans(text)
        if not spans:
            return None
        span = spans[0]
        if span.key == self.last_key:
            return None
        self.last_key = span.key
        return span

    def reset(self) -> None:
        self.last_key = None
