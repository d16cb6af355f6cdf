"""Shared test fixtures for the subtitle_translate test suite.

WHY: Codec, engine and CLI tests all need the same small subtitle files
and the same in-memory translators. Centralizing them here avoids
duplication and keeps every test on the same sample data.

HOW: Sample SRT, WebVTT and ASS files are module-level byte strings
exposed as fixtures. Fake backends implement TranslationBackend without
any network access: one upper-cases text, one fails on a schedule, one
returns the wrong number of texts.

RULES:
- Sample SRT and WebVTT files are canonical: they round-trip byte-for-byte
- SAMPLE_ASS is input only; SAMPLE_ASS_AS_SRT is what it serialises to
- Fake backends record every call for assertions
- No test in the suite touches the network unless explicitly marked e2e
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Sequence

import pytest

from subtitle_translate.backends.base import TranslationBackend, TranslationBackendError


# ---------------------------------------------------------------------------
# Sample subtitle files
# ---------------------------------------------------------------------------

SAMPLE_SRT = (
    b"1\n"
    b"00:00:01,000 --> 00:00:03,500\n"
    b"Hello there!\n"
    b"\n"
    b"2\n"
    b"00:00:04,000 --> 00:00:06,000\n"
    b"<i>I went to the market</i>\n"
    b"\n"
    b"3\n"
    b"00:00:06,200 --> 00:00:08,000\n"
    b"yesterday morning.\n"
    b"- Did you?\n"
    b"\n"
    b"4\n"
    b"00:00:09,000 --> 00:00:10,000\n"
    b"{\\an8}Look up.\n"
)

SAMPLE_VTT = (
    b"WEBVTT - sample\n"
    b"\n"
    b"STYLE\n"
    b"::cue { color: yellow }\n"
    b"\n"
    b"intro\n"
    b"00:01.000 --> 00:03.000 align:start\n"
    b"<v Anna>Good morning</v>\n"
    b"\n"
    b"NOTE translator: keep names\n"
    b"\n"
    b"00:03.500 --> 00:05.000\n"
    b"Where are you going\n"
    b"so early?\n"
)


SAMPLE_ASS = (
    b"[Script Info]\n"
    b"Title: sample\n"
    b"ScriptType: v4.00+\n"
    b"\n"
    b"[V4+ Styles]\n"
    b"Format: Name, Fontname, Fontsize\n"
    b"Style: Default,Arial,20\n"
    b"\n"
    b"[Events]\n"
    b"Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"
    b"Dialogue: 0,0:00:04.00,0:00:06.00,Default,,0,0,0,,{\\i1}Where are you going{\\i0}\\Nso early?\n"
    b"Comment: 0,0:00:02.00,0:00:03.00,Default,,0,0,0,,Timing note\n"
    b"Dialogue: 0,0:00:01.00,0:00:03.50,Default,,0,0,0,,Hello, there!\n"
    b"Dialogue: 1,0:00:07.00,0:00:09.00,Sign,,0,0,0,,{\\an8\\pos(10,10)\\p1}m 0 0 l 100 0{\\p0}\n"
)

# SAMPLE_ASS read and written as SubRip: events sorted, comment dropped.
SAMPLE_ASS_AS_SRT = (
    b"1\n00:00:01,000 --> 00:00:03,500\nHello, there!\n\n"
    b"2\n00:00:04,000 --> 00:00:06,000\n{\\i1}Where are you going{\\i0}\nso early?\n\n"
    b"3\n00:00:07,000 --> 00:00:09,000\n{\\an8\\pos(10,10)\\p1}m 0 0 l 100 0{\\p0}\n"
)


@pytest.fixture
def sample_srt() -> bytes:
    return SAMPLE_SRT


@pytest.fixture
def sample_vtt() -> bytes:
    return SAMPLE_VTT


@pytest.fixture
def sample_ass() -> bytes:
    return SAMPLE_ASS


# ---------------------------------------------------------------------------
# Fake backends
# ---------------------------------------------------------------------------


class UpperBackend(TranslationBackend):
    """Translates by upper-casing; records every batch it receives."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: List[List[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self) -> str:
        return "Upper"

    async def translate_batch(
        self,
        fragments: Sequence[str],
        target_language: str,
        source_language: str = "auto",
    ) -> list[str]:
        self.calls.append(list(fragments))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return [text.upper() for text in fragments]
        finally:
            self.in_flight -= 1


class ScriptedBackend(TranslationBackend):
    """Runs a per-call script: each entry is an exception to raise or None to succeed.

    Calls past the end of the script succeed. ``respond`` customises the
    successful reply (default: upper-case).
    """

    def __init__(
        self,
        script: Sequence[Optional[BaseException]] = (),
        respond: Optional[Callable[[List[str]], List[str]]] = None,
    ) -> None:
        self.script = list(script)
        self.respond = respond or (lambda texts: [t.upper() for t in texts])
        self.calls: List[List[str]] = []

    @property
    def name(self) -> str:
        return "Scripted"

    async def translate_batch(
        self,
        fragments: Sequence[str],
        target_language: str,
        source_language: str = "auto",
    ) -> list[str]:
        index = len(self.calls)
        self.calls.append(list(fragments))
        if index < len(self.script) and self.script[index] is not None:
            raise self.script[index]
        return self.respond(list(fragments))


def transient(message: str = "503 Service Unavailable") -> TranslationBackendError:
    return TranslationBackendError(message, transient=True, status_code=503)


def permanent(message: str = "400 unsupported language") -> TranslationBackendError:
    return TranslationBackendError(message, transient=False, status_code=400)


@pytest.fixture
def upper_backend() -> UpperBackend:
    return UpperBackend()


async def no_sleep(_seconds: float) -> None:
    """Drop-in for asyncio.sleep that yields without waiting."""
    await asyncio.sleep(0)
