"""Immutable document model shared by codecs and the translation engine.

WHY: SRT, WebVTT and SubStation spell cues, timestamps, and markup
differently, but the translation engine only cares about ordered, timed
text runs. The model gives every codec and every engine stage one
well-typed form to agree on, decoupling syntax from translation.

HOW: Three frozen dataclasses form a hierarchy:
  StyledSpan — one text run plus the raw markup wrapping it
  Cue        — one timed subtitle entry made of lines of spans
  Document   — ordered cues plus the file-level boilerplate to echo back

RULES:
- All dataclasses are frozen; stages build new objects with replace()
- Timestamps are integer milliseconds, start_ms < end_ms
- Cue.index is 1-based and contiguous; cues are stored in file order
- Markup is kept raw (opening/closing/opaque text) so serialisation is
  a plain concatenation and round-trips byte-for-byte
- Opaque spans are never translated and never merged with neighbours
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Tuple


class SubtitleFormat(str, enum.Enum):
    """Closed set of subtitle formats the codecs understand."""

    SRT = "srt"
    WEBVTT = "vtt"
    ASS = "ass"
    SSA = "ssa"


@dataclass(frozen=True)
class StyledSpan:
    """A run of text together with the raw markup immediately around it.

    WHY: Styling markers like ``<i>`` are not translatable tokens. Keeping
    them outside ``text`` means the translator only ever sees prose, and
    putting them back is a concatenation.

    HOW: A codec tokenizes each line into text and tags. Recognised
    opening tags directly before a run land in ``opening``; recognised
    closing tags directly after it land in ``closing``. Unrecognised
    markup becomes its own span with ``opaque=True`` and the raw markup
    in ``text``.

    RULES:
    - Serialised form is opening + text + closing
    - An opaque span's text is markup, never prose
    - text may be empty (e.g. ``<i></i>``)
    """

    text: str
    opening: str = ""
    closing: str = ""
    opaque: bool = False

    def render(self) -> str:
        return self.opening + self.text + self.closing

    def with_text(self, text: str) -> StyledSpan:
        return StyledSpan(text=text, opening=self.opening, closing=self.closing, opaque=self.opaque)


Line = Tuple[StyledSpan, ...]


def render_line(line: Line) -> str:
    """Serialise one line of spans back to its on-disk text."""
    return "".join(span.render() for span in line)


@dataclass(frozen=True)
class Cue:
    """One timed subtitle entry.

    WHY: The cue is the unit of timing. Translation may rewrite the text
    of its spans but must never touch anything else here.

    RULES:
    - index: 1-based position in the document
    - start_ms / end_ms: non-negative integer milliseconds, start < end
    - lines: tuple of lines, each a tuple of StyledSpan
    - identifier: WebVTT cue identifier, None for SRT
    - settings: raw text after the end timestamp (VTT cue settings,
      SRT coordinates); "" when absent
    - notes: raw WebVTT NOTE blocks that precede this cue
    """

    index: int
    start_ms: int
    end_ms: int
    lines: Tuple[Line, ...] = ()
    identifier: str | None = None
    settings: str = ""
    notes: Tuple[str, ...] = ()

    @property
    def text(self) -> str:
        """Visible text: markup and opaque spans dropped, lines joined by newlines."""
        return "\n".join(
            "".join(span.text for span in line if not span.opaque)
            for line in self.lines
        )

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


@dataclass(frozen=True)
class Document:
    """A complete parsed subtitle file.

    WHY: Besides cues, a subtitle file carries boilerplate (VTT headers,
    BOMs, trailing blank lines) that a faithful tool must echo back
    untouched. The Document keeps it next to the cues.

    HOW: Built by a codec from input bytes; consumed and replaced, never
    mutated, by the pipeline so a translation run is side-effect-free
    and can be retried.

    RULES:
    - cues: ordered by file position (which is also start order)
    - format: the codec that produced (or will serialise) the document
    - header / footer: raw text before the first cue / after the last cue
    - newline: "\\n" or "\\r\\n", reused when serialising
    - bom: True if the input started with a UTF-8 byte order mark
    - compact_timestamps: WebVTT input used hour-less timestamps
    """

    cues: Tuple[Cue, ...]
    format: SubtitleFormat
    header: str = ""
    footer: str = ""
    newline: str = "\n"
    bom: bool = False
    compact_timestamps: bool = False

    def __len__(self) -> int:
        return len(self.cues)

    @property
    def text(self) -> str:
        """Visible text of all cues, separated by blank lines."""
        return "\n\n".join(cue.text for cue in self.cues)
