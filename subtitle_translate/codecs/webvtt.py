"""WebVTT (.vtt) codec.

WHY: WebVTT is the web's subtitle format and carries more structure
than SRT: a signature header, STYLE/REGION/NOTE blocks, optional cue
identifiers, cue settings, and a richer tag set (classes, voices,
language spans, karaoke timestamps). A translation tool has to echo all
of it back untouched.

HOW: The ``WEBVTT`` line and everything up to the first cue (header
lines, STYLE, REGION, NOTE blocks) is kept raw as Document.header.
Blocks are then read one at a time: NOTE blocks between cues are
attached to the following cue, everything else must be a cue.

RULES:
- Timestamps: [H+:]MM:SS.mmm; hour-less input sets compact_timestamps
- A cue identifier must be followed by a timing line (UNTERMINATED_BLOCK)
- A cue may not start before its predecessor (OUT_OF_ORDER_CUE)
- start < end for every cue (MALFORMED_TIMESTAMP otherwise)
- Recognised markup: <i> <b> <u> <ruby> <rt> <c.cls> <v who> <lang xx>;
  timestamp tags and anything else in <...> are opaque spans
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import List, Tuple

from subtitle_translate.codecs.base import (
    TIMING_RE,
    BaseCodec,
    footer_text,
    format_timestamp,
    header_text,
)
from subtitle_translate.codecs.markup import ANGLE_TAG_RE, split_spans
from subtitle_translate.core.errors import ParseError, ParseErrorKind
from subtitle_translate.core.model import Cue, Document, SubtitleFormat, render_line

_SIGNATURE_RE = re.compile(r"^WEBVTT(?=[ \t\n]|\Z)")
_TIMESTAMP_RE = re.compile(r"^(?:(\d+):)?([0-5]\d):([0-5]\d)\.(\d{3})$")
_NON_CUE_BLOCK_RE = re.compile(r"^(?:NOTE(?:[ \t]|$)|STYLE[ \t]*$|REGION[ \t]*$)")
_KNOWN_TAG_RE = re.compile(
    r"</?(?:i|b|u|ruby|rt)>"
    r"|<c(?:\.[^\s.<>]+)*>|</c>"
    r"|<v(?:\.[^\s.<>]+)*(?:[ \t][^<>]*)?>|</v>"
    r"|<lang[ \t][^<>]+>|</lang>"
)


def _is_known_tag(raw: str) -> bool:
    return _KNOWN_TAG_RE.fullmatch(raw) is not None


def parse_timestamp(value: str, line_no: int) -> Tuple[int, bool]:
    """Parse a WebVTT timestamp.

    Returns:
        (milliseconds, whether the hour field was omitted).
    """
    match = _TIMESTAMP_RE.match(value)
    if match is None:
        raise ParseError(
            ParseErrorKind.MALFORMED_TIMESTAMP, line_no, f"Invalid WebVTT timestamp '{value}'"
        )
    hours_raw, minutes, seconds, millis = match.groups()
    hours = int(hours_raw) if hours_raw is not None else 0
    ms = ((hours * 60 + int(minutes)) * 60 + int(seconds)) * 1000 + int(millis)
    return ms, hours_raw is None


class WebVTTCodec(BaseCodec):
    """Codec for WebVTT (.vtt) subtitles."""

    format = SubtitleFormat.WEBVTT
    default_header = "WEBVTT\n\n"

    @property
    def name(self) -> str:
        return "WebVTT"

    @classmethod
    def sniff(cls, text: str) -> bool:
        return _SIGNATURE_RE.match(text) is not None

    def parse_lines(self, lines: List[str]) -> Document:
        if not lines or not _SIGNATURE_RE.match(lines[0]):
            raise ParseError(
                ParseErrorKind.UNRECOGNIZED_FORMAT, 1, "WebVTT files must start with 'WEBVTT'"
            )

        n = len(lines)
        i = 1
        while i < n and lines[i].strip():
            i += 1

        cues: List[Cue] = []
        notes: List[str] = []
        first_block = -1
        last_content = -1
        compact = False

        while i < n:
            if not lines[i].strip():
                i += 1
                continue

            end = i
            while end < n and lines[end].strip():
                end += 1
            block = lines[i:end]

            if _NON_CUE_BLOCK_RE.match(block[0]):
                # Before the first cue these belong to the raw header.
                if cues:
                    notes.append("\n".join(block))
                i = end
                continue

            if "-->" in block[0]:
                identifier = None
                timing_idx = i
            else:
                if len(block) < 2 or "-->" not in block[1]:
                    raise ParseError(
                        ParseErrorKind.UNTERMINATED_BLOCK,
                        i + 1,
                        f"Cue identifier '{block[0].strip()}' is not followed by a timing line",
                    )
                identifier = block[0]
                timing_idx = i + 1

            match = TIMING_RE.match(lines[timing_idx])
            if match is None:
                raise ParseError(
                    ParseErrorKind.MALFORMED_TIMESTAMP,
                    timing_idx + 1,
                    f"Invalid timing line '{lines[timing_idx].strip()}'",
                )
            start_ms, start_compact = parse_timestamp(match.group(1), timing_idx + 1)
            end_ms, end_compact = parse_timestamp(match.group(2), timing_idx + 1)
            compact = compact or start_compact or end_compact
            if end_ms <= start_ms:
                raise ParseError(
                    ParseErrorKind.MALFORMED_TIMESTAMP,
                    timing_idx + 1,
                    "Cue ends at or before its start",
                )
            if cues and start_ms < cues[-1].start_ms:
                raise ParseError(
                    ParseErrorKind.OUT_OF_ORDER_CUE,
                    timing_idx + 1,
                    "Cue {} starts before cue {}".format(len(cues) + 1, len(cues)),
                )

            if not cues:
                first_block = i
            text_lines = tuple(
                split_spans(line, ANGLE_TAG_RE, _is_known_tag)
                for line in lines[timing_idx + 1:end]
            )
            cues.append(Cue(
                index=len(cues) + 1,
                start_ms=start_ms,
                end_ms=end_ms,
                lines=text_lines,
                identifier=identifier,
                settings=match.group(3) or "",
                notes=tuple(notes),
            ))
            notes = []
            last_content = end - 1
            i = end

        if not cues:
            return Document(cues=(), format=self.format, header="\n".join(lines))

        return Document(
            cues=tuple(cues),
            format=self.format,
            header=header_text(lines, first_block),
            footer=footer_text(lines, last_content),
            compact_timestamps=compact,
        )

    def render_blocks(self, document: Document) -> List[str]:
        compact = document.compact_timestamps
        blocks = []
        for cue in document.cues:
            blocks.extend(cue.notes)
            block = []
            if cue.identifier is not None:
                block.append(cue.identifier)
            timing = "{} --> {}".format(
                format_timestamp(cue.start_ms, ".", compact),
                format_timestamp(cue.end_ms, ".", compact),
            )
            if cue.settings:
                timing += " " + cue.settings
            block.append(timing)
            block.extend(render_line(line) for line in cue.lines)
            blocks.append("\n".join(block))
        return blocks

    def adopt(self, document: Document) -> Document:
        # SRT text may contain blank lines, which would end a WebVTT cue early.
        adopted = super().adopt(document)
        if adopted is document:
            return document
        cues = tuple(
            replace(cue, lines=tuple(line for line in cue.lines if render_line(line).strip()))
            for cue in adopted.cues
        )
        return replace(adopted, cues=cues)
