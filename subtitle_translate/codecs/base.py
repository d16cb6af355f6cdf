"""Abstract base codec and shared text/timestamp helpers.

WHY: Every subtitle format reads into and writes out of the same
Document model. This base class enforces a consistent interface so the
registry, the CLI, and the tests can work with any codec generically,
and it owns the byte-level concerns (encoding, BOM, newline style) that
are identical across formats.

HOW: BaseCodec is an ABC. Subclasses implement ``sniff()`` (content
signature), ``parse_lines()`` (format syntax → Document), and
``render_blocks()`` (Document → text blocks). decode() turns
bytes into newline-normalised text; serialize() re-applies the BOM and
newline style on output.

RULES:
- Subclasses MUST set ``format`` and implement the three hooks
- Read-only codecs set ``writable = False``; their documents are
  written through another codec
- parse_lines() receives lines without newline characters
- Serialised text is header + blocks joined by one blank line + footer
- Parsing never returns a partial Document; it raises ParseError

To add a new subtitle format:
1. Create a new file in codecs/
2. Subclass BaseCodec
3. Implement sniff(), parse_lines(), render_blocks()
4. Register in CODECS dict in codecs/__init__.py
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import List, Sequence, Tuple

from subtitle_translate.core.errors import ParseError, ParseErrorKind
from subtitle_translate.core.model import Document, SubtitleFormat

# "start --> end [settings]", shared by SRT and WebVTT.
TIMING_RE = re.compile(r"^\s*(\S+?)\s*-->\s*(\S+)(?:[ \t]+(.*?))?\s*$")


def decode(raw: bytes, encoding: str = "utf-8") -> Tuple[str, bool, str]:
    """Decode subtitle bytes and normalise newlines.

    Returns:
        (text with "\\n" newlines, whether a BOM was present, original newline).

    Raises:
        ParseError: INVALID_ENCODING when the bytes do not decode.
    """
    try:
        text = raw.decode(encoding)
    except UnicodeDecodeError as exc:
        raise ParseError(
            ParseErrorKind.INVALID_ENCODING,
            0,
            f"Input is not valid {encoding}: {exc.reason} at byte {exc.start}",
        ) from exc
    except LookupError as exc:
        raise ParseError(
            ParseErrorKind.INVALID_ENCODING, 0, f"Unknown encoding '{encoding}'"
        ) from exc

    bom = text.startswith("\ufeff")
    if bom:
        text = text[1:]
    newline = "\r\n" if "\r\n" in text else "\n"
    return text.replace("\r\n", "\n"), bom, newline


def format_timestamp(ms: int, separator: str, compact: bool = False) -> str:
    """Render milliseconds as ``HH:MM:SS<sep>mmm`` (``MM:SS.mmm`` when compact)."""
    hours, rest = divmod(ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    if compact and hours == 0:
        return "{:02d}:{:02d}{}{:03d}".format(minutes, seconds, separator, millis)
    return "{:02d}:{:02d}:{:02d}{}{:03d}".format(hours, minutes, seconds, separator, millis)


def header_text(lines: Sequence[str], first_block: int) -> str:
    """Raw text before the first cue block, newlines included."""
    return "".join(line + "\n" for line in lines[:first_block])


def footer_text(lines: Sequence[str], last_content: int) -> str:
    """Raw text after the last cue's final line, newlines included."""
    return "".join("\n" + line for line in lines[last_content + 1:])


class BaseCodec(ABC):
    """Abstract base for all subtitle codecs.

    WHY: A closed set of formats share one Document model. Keeping the
    per-format code behind one interface lets format selection be a dict
    lookup after content sniffing, with no engine changes per format.

    HOW: ``parse_text()`` hands decoded lines to ``parse_lines()``.
    ``serialize()`` joins ``render_blocks()`` output with blank lines and
    restores the document's newline style and BOM.
    """

    format: SubtitleFormat
    default_header: str = ""
    writable: bool = True

    @property
    def name(self) -> str:
        """Human-readable format name, e.g. 'SubRip'."""
        return self.format.value

    @classmethod
    @abstractmethod
    def sniff(cls, text: str) -> bool:
        """Return True if ``text`` (BOM stripped) looks like this format."""

    @abstractmethod
    def parse_lines(self, lines: List[str]) -> Document:
        """Build a Document from newline-free lines.

        The returned Document uses "\\n" and no BOM; ``parse()`` fills
        those in from the raw input.
        """

    @abstractmethod
    def render_blocks(self, document: Document) -> List[str]:
        """Render every cue (and interstitial block) as text without trailing newline."""

    def parse_text(self, text: str, bom: bool = False, newline: str = "\n") -> Document:
        document = self.parse_lines(text.split("\n"))
        return replace(document, bom=bom, newline=newline)

    def serialize(self, document: Document, encoding: str = "utf-8") -> bytes:
        text = document.header + "\n\n".join(self.render_blocks(document)) + document.footer
        if document.newline != "\n":
            text = text.replace("\n", document.newline)
        if document.bom:
            text = "\ufeff" + text
        return text.encode(encoding)

    def adopt(self, document: Document) -> Document:
        """Re-target a Document parsed from another format to this codec.

        RULES:
        - Same format → returned unchanged
        - Identifiers, settings and notes do not carry across formats
        - Header resets to the format default; footer to a single newline
        """
        if document.format == self.format:
            return document
        cues = tuple(
            replace(cue, identifier=None, settings="", notes=()) for cue in document.cues
        )
        return replace(
            document,
            cues=cues,
            format=self.format,
            header=self.default_header,
            footer="\n" if cues else "",
            compact_timestamps=False,
        )
