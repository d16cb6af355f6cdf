"""Subtitle codec registry — content-sniffed, closed set of formats.

WHY: The CLI and the pipeline need one place to turn bytes into a
Document and back without knowing which format they hold. A central
dict keeps the set of formats closed and explicit: the Document model
is fixed, so a new format is a new codec class plus one line here.

HOW: CODECS maps format keys to codec *classes* (not instances).
detect_format() asks each codec to sniff the text in registry order;
parse() and serialize() are the two public entry points.

RULES:
- Keys match SubtitleFormat values ("srt", "vtt", "ass", "ssa")
- Sniffing order matters: signatures (WEBVTT, [Script Info]) are
  checked before SRT's looser counter/timing test
- ASS and SSA are input only; their documents serialise as SRT unless
  another writable format is asked for
- serialize() converts to another format when ``fmt`` differs from the
  document's own
"""

from __future__ import annotations

from subtitle_translate.codecs.base import BaseCodec, decode
from subtitle_translate.codecs.srt import SubRipCodec
from subtitle_translate.codecs.substation import AdvancedSubStationCodec, SubStationAlphaCodec
from subtitle_translate.codecs.webvtt import WebVTTCodec
from subtitle_translate.core.errors import ParseError, ParseErrorKind
from subtitle_translate.core.model import Document, SubtitleFormat

CODECS: dict[str, type[BaseCodec]] = {
    "vtt": WebVTTCodec,
    "ass": AdvancedSubStationCodec,
    "ssa": SubStationAlphaCodec,
    "srt": SubRipCodec,
}

WRITABLE_FORMATS = tuple(sorted(key for key, codec in CODECS.items() if codec.writable))
"""Format keys that serialize() can produce."""


def get_codec(fmt: SubtitleFormat | str) -> BaseCodec:
    """Instantiate the codec for a format key or SubtitleFormat."""
    key = SubtitleFormat(fmt).value
    return CODECS[key]()


def _writer(fmt: SubtitleFormat | str) -> BaseCodec:
    codec = get_codec(fmt)
    if not codec.writable:
        raise ValueError(
            "{} output is not supported (choose one of {})".format(
                codec.name, ", ".join(WRITABLE_FORMATS)
            )
        )
    return codec


def output_format(document: Document) -> SubtitleFormat:
    """Format a Document is written in when no format is requested."""
    if CODECS[document.format.value].writable:
        return document.format
    return SubtitleFormat.SRT


def detect_format(text: str) -> SubtitleFormat:
    """Identify the subtitle format of decoded, BOM-stripped text.

    Raises:
        ParseError: UNRECOGNIZED_FORMAT when no codec claims the text.
    """
    for codec_cls in CODECS.values():
        if codec_cls.sniff(text):
            return codec_cls.format
    raise ParseError(
        ParseErrorKind.UNRECOGNIZED_FORMAT,
        1,
        "Input is not a recognised subtitle format (expected {})".format(
            ", ".join(sorted(CODECS))
        ),
    )


def parse(raw: bytes, encoding: str = "utf-8") -> Document:
    """Parse subtitle bytes of any supported format into a Document."""
    text, bom, newline = decode(raw, encoding)
    codec = get_codec(detect_format(text))
    return codec.parse_text(text, bom=bom, newline=newline)


def convert(document: Document, fmt: SubtitleFormat | str) -> Document:
    """Re-target a Document to another format (no-op for the same format).

    Raises:
        ValueError: if ``fmt`` is an input-only format.
    """
    return _writer(fmt).adopt(document)


def serialize(
    document: Document,
    fmt: SubtitleFormat | str | None = None,
    encoding: str = "utf-8",
) -> bytes:
    """Serialise a Document, converting it first when ``fmt`` is given.

    Raises:
        ValueError: if ``fmt`` is an input-only format.
    """
    codec = _writer(fmt if fmt is not None else output_format(document))
    return codec.serialize(codec.adopt(document), encoding=encoding)


__all__ = [
    "CODECS",
    "WRITABLE_FORMATS",
    "AdvancedSubStationCodec",
    "BaseCodec",
    "SubRipCodec",
    "SubStationAlphaCodec",
    "WebVTTCodec",
    "convert",
    "detect_format",
    "get_codec",
    "output_format",
    "parse",
    "serialize",
]
