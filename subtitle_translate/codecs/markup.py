"""Inline markup tokenizer: one subtitle text line → StyledSpans.

WHY: Subtitle lines mix prose with styling tags (``<i>``, ``<font>``,
``<c.yellow>``) and, in the wild, markup from other tools (ASS override
blocks like ``{\\an8}``, karaoke timestamps). The translator must only
see prose, and every tag must come back exactly where it was.

HOW: A codec-supplied regex finds tag tokens; everything between them is
text. Walking the tokens in order:
  - recognised opening tags accumulate and attach to the next text run
  - recognised closing tags attach to the run they follow
  - unrecognised tags become standalone opaque spans
Because spans are emitted in token order and each keeps its raw
markup, ``render_line(split_spans(line))`` always equals ``line``.

RULES:
- Recognition is decided per codec (SRT and WebVTT know different tags)
- A closing tag is any tag starting with ``</``
- Dangling opening tags at end of line become an empty-text span
- Never raises: malformed markup is simply text or an opaque span
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional, Pattern

from subtitle_translate.core.model import Line, StyledSpan

# Tag token patterns. SRT files often carry ASS-style {...} override blocks.
ANGLE_TAG_RE = re.compile(r"<[^<>]*>")
ANGLE_OR_BRACE_TAG_RE = re.compile(r"<[^<>]*>|\{[^{}]*\}")


class _SpanBuilder:
    """Accumulates spans for one line while tokens stream in."""

    def __init__(self) -> None:
        self.spans: List[StyledSpan] = []
        self._opening = ""
        self._current: Optional[List[str]] = None  # [text, opening, closing]

    def _flush(self) -> None:
        if self._current is not None:
            text, opening, closing = self._current
            self.spans.append(StyledSpan(text=text, opening=opening, closing=closing))
            self._current = None

    def _flush_opening(self) -> None:
        if self._opening:
            self.spans.append(StyledSpan(text="", opening=self._opening))
            self._opening = ""

    def text(self, text: str) -> None:
        self._flush()
        self._current = [text, self._opening, ""]
        self._opening = ""

    def opening_tag(self, raw: str) -> None:
        self._flush()
        self._opening += raw

    def closing_tag(self, raw: str) -> None:
        if self._current is None:
            self._current = ["", self._opening, ""]
            self._opening = ""
        self._current[2] += raw

    def opaque(self, raw: str) -> None:
        self._flush()
        self._flush_opening()
        self.spans.append(StyledSpan(text=raw, opaque=True))

    def finish(self) -> Line:
        self._flush()
        self._flush_opening()
        return tuple(self.spans)


def split_spans(
    line: str,
    tag_re: Pattern[str],
    is_recognised: Callable[[str], bool],
) -> Line:
    """Tokenize a subtitle line into StyledSpans.

    Args:
        line: One line of cue text, without its newline.
        tag_re: Pattern matching markup tokens for the codec.
        is_recognised: Predicate telling styling markup from unknown markup.

    Returns:
        Tuple of spans whose rendered concatenation equals ``line``.
    """
    builder = _SpanBuilder()
    pos = 0
    for match in tag_re.finditer(line):
        if match.start() > pos:
            builder.text(line[pos:match.start()])
        raw = match.group()
        if not is_recognised(raw):
            builder.opaque(raw)
        elif raw.startswith("</"):
            builder.closing_tag(raw)
        else:
            builder.opening_tag(raw)
        pos = match.end()
    if pos < len(line):
        builder.text(line[pos:])
    return builder.finish()
