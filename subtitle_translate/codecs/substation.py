"""SubStation Alpha (.ssa) and Advanced SubStation Alpha (.ass) input codecs.

WHY: Anime and fansub releases ship ASS/SSA far more often than SRT, so
the tool has to read them. Writing them back would need the styles,
fonts and layout sections, which the Document model does not carry, so
a Document read from SubStation is written out as SubRip.

HOW: Lines are walked section by section and only [Events] is read. Its
Format line names the comma-separated fields; each Dialogue line is
split into at most that many fields so commas inside the Text field
survive. Comment events are skipped. Text is split into lines on the
\\N and \\n break codes, {...} override blocks become opaque spans and
\\h hard spaces become no-break spaces. An event drawn as a vector
shape (\\p1 and up) is kept whole as one opaque span.

RULES:
- Input only: serialising goes through another codec (SRT by default)
- Timestamps: H:MM:SS.cc (centiseconds; 1-3 fraction digits accepted)
- Events are sorted by start time, keeping file order for ties; files
  list events per layer and style rather than in display order
- A Dialogue line with too few fields, or a Format line without
  Start/End/Text, is MALFORMED_EVENT
- Events that end at or before their start are skipped with a warning
"""

from __future__ import annotations

import logging
import re
from typing import List, Sequence, Tuple

from subtitle_translate.codecs.base import BaseCodec
from subtitle_translate.codecs.markup import split_spans
from subtitle_translate.core.errors import ParseError, ParseErrorKind
from subtitle_translate.core.model import Cue, Document, Line, StyledSpan, SubtitleFormat

logger = logging.getLogger(__name__)

_TIMESTAMP_RE = re.compile(r"^(\d+):(\d{1,2}):(\d{1,2})[.:](\d{1,3})$")
_V4_PLUS_RE = re.compile(
    r"^\s*(?:\[v4\+ styles\]|scripttype:\s*v4\.00\+)\s*$",
    re.IGNORECASE | re.MULTILINE,
)
_OVERRIDE_RE = re.compile(r"\{[^{}]*\}")
_BREAK_RE = re.compile(r"\\[Nn]")
_DRAWING_RE = re.compile(r"\{[^{}]*\\p[1-9][^{}]*\}")
_REQUIRED_FIELDS = ("start", "end", "text")


def parse_timestamp(value: str, line_no: int) -> int:
    """Parse a SubStation timestamp into milliseconds."""
    match = _TIMESTAMP_RE.match(value.strip())
    if match is None:
        raise ParseError(
            ParseErrorKind.MALFORMED_TIMESTAMP,
            line_no,
            f"Invalid SubStation timestamp '{value.strip()}'",
        )
    hours, minutes, seconds, fraction = match.groups()
    millis = int(fraction.ljust(3, "0"))
    return ((int(hours) * 60 + int(minutes)) * 60 + int(seconds)) * 1000 + millis


def _never_styling(raw: str) -> bool:
    return False


def split_event_text(text: str) -> Tuple[Line, ...]:
    """Turn a Dialogue Text field into cue lines of StyledSpans."""
    if _DRAWING_RE.search(text):
        return ((StyledSpan(text=text, opaque=True),),)
    parts = _BREAK_RE.split(text.replace("\\h", "\u00a0"))
    return tuple(
        split_spans(part, _OVERRIDE_RE, _never_styling)
        for part in parts
        if part.strip()
    )


def _first_line(text: str) -> str:
    for line in text.split("\n"):
        if line.strip():
            return line.strip()
    return ""


class _SubStationCodec(BaseCodec):
    """Shared reader for both SubStation flavours."""

    writable = False
    advanced: bool
    default_fields: Sequence[str]

    @classmethod
    def sniff(cls, text: str) -> bool:
        if _first_line(text).lower() != "[script info]":
            return False
        return bool(_V4_PLUS_RE.search(text)) == cls.advanced

    def parse_lines(self, lines: List[str]) -> Document:
        """Read the [Events] section into a Document.

        Raises:
            ParseError: on malformed timestamps, a Format line missing a
            required field, or a Dialogue line with too few fields.
        """
        section = ""
        fields = list(self.default_fields)
        events: List[Tuple[int, int, str]] = []

        for line_no, line in enumerate(lines, 1):
            stripped = line.strip()
            if stripped.startswith("[") and stripped.endswith("]"):
                section = stripped.lower()
                continue
            if section != "[events]":
                continue
            key, sep, value = line.partition(":")
            if not sep:
                continue
            key = key.strip().lower()

            if key == "format":
                fields = [name.strip().lower() for name in value.split(",")]
                missing = [name for name in _REQUIRED_FIELDS if name not in fields]
                if missing:
                    raise ParseError(
                        ParseErrorKind.MALFORMED_EVENT,
                        line_no,
                        "Events Format line has no {} field".format(", ".join(missing)),
                    )
            elif key == "dialogue":
                values = value.lstrip().split(",", len(fields) - 1)
                if len(values) < len(fields):
                    raise ParseError(
                        ParseErrorKind.MALFORMED_EVENT,
                        line_no,
                        "Dialogue line has {} fields, expected {}".format(
                            len(values), len(fields)
                        ),
                    )
                record = dict(zip(fields, values))
                start_ms = parse_timestamp(record["start"], line_no)
                end_ms = parse_timestamp(record["end"], line_no)
                if end_ms <= start_ms:
                    logger.warning(
                        "Skipping event on line %d: it ends at or before its start", line_no
                    )
                    continue
                events.append((start_ms, end_ms, record["text"]))

        events.sort(key=lambda event: event[0])
        cues = tuple(
            Cue(index=i, start_ms=start_ms, end_ms=end_ms, lines=split_event_text(text))
            for i, (start_ms, end_ms, text) in enumerate(events, 1)
        )
        logger.debug("Read %d dialogue events from %s", len(cues), self.name)
        return Document(cues=cues, format=self.format, footer="\n" if cues else "")

    def render_blocks(self, document: Document) -> List[str]:
        raise NotImplementedError(f"{self.name} output is not supported")


class AdvancedSubStationCodec(_SubStationCodec):
    """Codec for Advanced SubStation Alpha (.ass, v4.00+) subtitles."""

    format = SubtitleFormat.ASS
    advanced = True
    default_fields = (
        "layer", "start", "end", "style", "name",
        "marginl", "marginr", "marginv", "effect", "text",
    )

    @property
    def name(self) -> str:
        return "Advanced SubStation Alpha"


class SubStationAlphaCodec(_SubStationCodec):
    """Codec for SubStation Alpha (.ssa, v4.00) subtitles."""

    format = SubtitleFormat.SSA
    advanced = False
    default_fields = (
        "marked", "start", "end", "style", "name",
        "marginl", "marginr", "marginv", "effect", "text",
    )

    @property
    def name(self) -> str:
        return "SubStation Alpha"
