"""SubRip (.srt) codec.

WHY: SRT is the most common subtitle format and the one the tool has
always written. Real-world SRT files are loosely produced: missing cue
numbers, ``.`` instead of ``,`` in timestamps, stray blank lines inside
cue text, ASS override blocks pasted into the text. The codec accepts
these while still rejecting files whose timing cannot be trusted.

HOW: Lines are walked block by block. A block is an optional counter
line, a timing line, and text lines up to the next blank line. Text that
follows a blank line without starting a new block is treated as more
text for the previous cue, blank lines included. Text lines are split
into StyledSpans by the shared markup tokenizer.

RULES:
- Timestamps: H+:MM:SS,mmm (``.`` accepted on input, ``,`` on output)
- Cue counters must strictly increase; output is renumbered 1..n
- A cue may not start before its predecessor (OUT_OF_ORDER_CUE)
- start < end for every cue (MALFORMED_TIMESTAMP otherwise)
- A counter followed by a blank line or EOF is UNTERMINATED_BLOCK
- Text after the end timestamp is kept verbatim in Cue.settings
- Recognised markup: <i> <b> <u> <s> <font ...>; anything else in <...>
  or {...} is an opaque span
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import List, Optional

from subtitle_translate.codecs.base import (
    TIMING_RE,
    BaseCodec,
    footer_text,
    format_timestamp,
    header_text,
)
from subtitle_translate.codecs.markup import ANGLE_OR_BRACE_TAG_RE, split_spans
from subtitle_translate.core.errors import ParseError, ParseErrorKind
from subtitle_translate.core.model import Cue, Document, Line, SubtitleFormat, render_line

_COUNTER_RE = re.compile(r"^\d+$")
_TIMESTAMP_RE = re.compile(r"^(\d+):([0-5]\d):([0-5]\d)[,.](\d{3})$")
_KNOWN_TAG_RE = re.compile(r"</?(?:i|b|u|s)>|<font\b[^>]*>|</font>", re.IGNORECASE)


def _is_known_tag(raw: str) -> bool:
    return _KNOWN_TAG_RE.fullmatch(raw) is not None


def parse_timestamp(value: str, line_no: int) -> int:
    """Parse an SRT timestamp into milliseconds."""
    match = _TIMESTAMP_RE.match(value)
    if match is None:
        raise ParseError(
            ParseErrorKind.MALFORMED_TIMESTAMP, line_no, f"Invalid SRT timestamp '{value}'"
        )
    hours, minutes, seconds, millis = (int(g) for g in match.groups())
    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + millis


def _split_line(line: str) -> Line:
    return split_spans(line, ANGLE_OR_BRACE_TAG_RE, _is_known_tag)


class SubRipCodec(BaseCodec):
    """Codec for SubRip (.srt) subtitles."""

    format = SubtitleFormat.SRT
    default_header = ""

    @property
    def name(self) -> str:
        return "SubRip"

    @classmethod
    def sniff(cls, text: str) -> bool:
        for line in text.split("\n"):
            stripped = line.strip()
            if stripped:
                return bool(_COUNTER_RE.match(stripped)) or "-->" in stripped
        return False

    def parse_lines(self, lines: List[str]) -> Document:
        """Parse SRT lines into a Document.

        WHY: Most SRT damage is cosmetic (numbering, blank lines) and
        should not stop a translation; broken timing should.

        HOW: Walks lines with an index. Each non-blank line where a block
        is expected is either a counter, a timing line, or continuation
        text for the previous cue.

        Raises:
            ParseError: on malformed timestamps, out-of-order cues, or a
            counter with no timing line.
        """
        n = len(lines)
        i = 0
        while i < n and not lines[i].strip():
            i += 1
        first_block = i

        cues: List[Cue] = []
        last_content = -1
        prev_counter: Optional[int] = None

        while i < n:
            stripped = lines[i].strip()
            if not stripped:
                i += 1
                continue

            counter: Optional[int] = None
            if _COUNTER_RE.match(stripped):
                next_line = lines[i + 1] if i + 1 < n else ""
                if not next_line.strip():
                    raise ParseError(
                        ParseErrorKind.UNTERMINATED_BLOCK,
                        i + 1,
                        f"Cue number {stripped} is not followed by a timing line",
                    )
                if "-->" not in next_line and cues:
                    i = self._extend_previous(cues, lines, last_content, i)
                    last_content = i - 1
                    continue
                counter = int(stripped)
                if prev_counter is not None and counter <= prev_counter:
                    raise ParseError(
                        ParseErrorKind.OUT_OF_ORDER_CUE,
                        i + 1,
                        f"Cue number {counter} follows cue number {prev_counter}",
                    )
                prev_counter = counter
                i += 1
            elif "-->" not in stripped:
                if not cues:
                    raise ParseError(
                        ParseErrorKind.MALFORMED_TIMESTAMP,
                        i + 1,
                        "Expected a cue number or timing line",
                    )
                i = self._extend_previous(cues, lines, last_content, i)
                last_content = i - 1
                continue

            cue = self._parse_cue(lines, i, len(cues) + 1)
            if cues and cue.start_ms < cues[-1].start_ms:
                raise ParseError(
                    ParseErrorKind.OUT_OF_ORDER_CUE,
                    i + 1,
                    "Cue {} starts before cue {}".format(cue.index, cues[-1].index),
                )
            cues.append(cue)
            i += 1 + len(cue.lines)
            last_content = i - 1

        if not cues:
            return Document(cues=(), format=self.format, header="\n".join(lines))

        return Document(
            cues=tuple(cues),
            format=self.format,
            header=header_text(lines, first_block),
            footer=footer_text(lines, last_content),
        )

    def _parse_cue(self, lines: List[str], timing_idx: int, index: int) -> Cue:
        match = TIMING_RE.match(lines[timing_idx])
        if match is None:
            raise ParseError(
                ParseErrorKind.MALFORMED_TIMESTAMP,
                timing_idx + 1,
                f"Invalid timing line '{lines[timing_idx].strip()}'",
            )
        start_ms = parse_timestamp(match.group(1), timing_idx + 1)
        end_ms = parse_timestamp(match.group(2), timing_idx + 1)
        if end_ms <= start_ms:
            raise ParseError(
                ParseErrorKind.MALFORMED_TIMESTAMP,
                timing_idx + 1,
                "Cue ends at or before its start",
            )

        text_lines = []
        j = timing_idx + 1
        while j < len(lines) and lines[j].strip():
            text_lines.append(_split_line(lines[j]))
            j += 1

        return Cue(
            index=index,
            start_ms=start_ms,
            end_ms=end_ms,
            lines=tuple(text_lines),
            settings=match.group(3) or "",
        )

    @staticmethod
    def _extend_previous(cues: List[Cue], lines: List[str], last_content: int, i: int) -> int:
        """Append stray text (and the blank lines before it) to the last cue.

        Returns the index of the first line after the appended text.
        """
        j = i
        while j < len(lines) and lines[j].strip():
            j += 1
        extra = tuple(_split_line(line) for line in lines[last_content + 1:j])
        cues[-1] = replace(cues[-1], lines=cues[-1].lines + extra)
        return j

    def render_blocks(self, document: Document) -> List[str]:
        blocks = []
        for i, cue in enumerate(document.cues, 1):
            timing = "{} --> {}".format(
                format_timestamp(cue.start_ms, ","),
                format_timestamp(cue.end_ms, ","),
            )
            if cue.settings:
                timing += " " + cue.settings
            block = [str(i), timing]
            block.extend(render_line(line) for line in cue.lines)
            blocks.append("\n".join(block))
        return blocks
