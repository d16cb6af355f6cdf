"""Segmentation of a Document into translation batches plus a coordinate map.

WHY: Translators want whole sentences; subtitle files cut sentences
across lines and cues. Sending cue-by-cue fragments degrades the
translation, sending the whole file loses alignment. The segmenter
chains the spans of a sentence into one fragment and records exactly
which slice of which span each part came from, so the reassembler can
put the translation back.

HOW: Spans are walked in document order. A translatable span either
extends the current chain (same sentence, no markup on the boundary,
budget permitting) or starts a new one. A span too long for the budget
on its own is cut at whitespace into ``split`` fragments. Fragments are
then packed greedily into batches up to the budget. The coordinate map
is a flat tuple of Placement records, one per (fragment, span slice).

RULES:
- A span is translatable if it is not opaque and has an alphanumeric char
- Chains break at sentence ends (. ! ? and CJK forms, ellipses excluded),
  at any markup on the boundary, at dialogue dashes, and at
  non-translatable spans
- Chained span texts are joined with single spaces; fragment text is
  always stripped
- Split fragments' placements partition the span text, whitespace
  included, so rejoining needs no added spacing
- Every fragment and batch respects max_batch_size (characters); a
  batch holds at least one fragment
- Pure and deterministic: same (document, budget) → same output
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from subtitle_translate.core.model import Document, StyledSpan

# Sentence-final punctuation, optionally followed by closing quotes/brackets.
_SENTENCE_END_RE = re.compile(r"[.!?。！？]['\"”’»)\]」』]*$")
_ELLIPSIS_END_RE = re.compile(r"(?:\.\.\.|…)['\"”’»)\]」』]*$")
_DIALOGUE_RE = re.compile(r"^[-–—]\s*\w")


@dataclass(frozen=True)
class Placement:
    """One record of the coordinate map.

    RULES:
    - cue_index / line_index / span_index are 0-based positions in the Document
    - start / end is the char range of the span text this record covers
    - fragment_id links back to the Fragment that carries the text
    """

    fragment_id: int
    cue_index: int
    line_index: int
    span_index: int
    start: int
    end: int

    @property
    def char_range(self) -> Tuple[int, int]:
        return self.start, self.end


@dataclass(frozen=True)
class Fragment:
    """The smallest translatable unit sent to a backend.

    RULES:
    - text: stripped text as sent to the translator
    - placement_start / placement_end: slice of SegmentMap.placements
    - split: True when this is one piece of a span cut at whitespace
    """

    id: int
    text: str
    placement_start: int
    placement_end: int
    split: bool = False


@dataclass(frozen=True)
class Batch:
    """Fragments sent to the translator in one call. Owns no Document reference."""

    index: int
    fragments: Tuple[Fragment, ...]

    @property
    def texts(self) -> List[str]:
        return [fragment.text for fragment in self.fragments]

    @property
    def size(self) -> int:
        return sum(len(fragment.text) for fragment in self.fragments)


@dataclass(frozen=True)
class SegmentMap:
    """Reversible mapping from fragment ids to span slices."""

    placements: Tuple[Placement, ...]
    fragment_count: int

    def grouped(self) -> List[List[Placement]]:
        """Placements grouped by fragment id, in fragment order."""
        groups: List[List[Placement]] = [[] for _ in range(self.fragment_count)]
        for placement in self.placements:
            groups[placement.fragment_id].append(placement)
        return groups


@dataclass(frozen=True)
class _SpanRef:
    cue_index: int
    line_index: int
    span_index: int
    span: StyledSpan


def is_translatable(span: StyledSpan) -> bool:
    """True for prose spans that contain at least one letter or digit."""
    return not span.opaque and any(ch.isalnum() for ch in span.text)


def ends_sentence(text: str) -> bool:
    stripped = text.rstrip()
    return bool(_SENTENCE_END_RE.search(stripped)) and not _ELLIPSIS_END_RE.search(stripped)


def _continues(previous: StyledSpan, following: StyledSpan) -> bool:
    """True if ``following`` reads as the same sentence as ``previous``."""
    if previous.closing or following.opening:
        return False
    if ends_sentence(previous.text):
        return False
    return not _DIALOGUE_RE.match(following.text.lstrip())


def _walk(document: Document) -> Iterator[_SpanRef]:
    for ci, cue in enumerate(document.cues):
        for li, line in enumerate(cue.lines):
            for si, span in enumerate(line):
                yield _SpanRef(ci, li, si, span)


def _split_cores(text: str, budget: int) -> List[Tuple[int, int]]:
    """Cut the stripped region of ``text`` into pieces of at most ``budget`` chars.

    Cuts go at the last whitespace inside the budget; a run without
    whitespace is cut hard at the budget.
    """
    pos = len(text) - len(text.lstrip())
    core_end = len(text.rstrip())
    pieces: List[Tuple[int, int]] = []
    while core_end - pos > budget:
        window = text[pos + 1:pos + budget + 1]
        space_at = max((k for k, ch in enumerate(window) if ch.isspace()), default=-1)
        if space_at < 0:
            piece_end = next_start = pos + budget
        else:
            piece_end = next_start = pos + 1 + space_at
            while piece_end > pos and text[piece_end - 1].isspace():
                piece_end -= 1
            while next_start < core_end and text[next_start].isspace():
                next_start += 1
        pieces.append((pos, piece_end))
        pos = next_start
    pieces.append((pos, core_end))
    return pieces


class _Builder:
    """Accumulates fragments and placements while spans are walked."""

    def __init__(self, budget: int) -> None:
        self.budget = budget
        self.fragments: List[Fragment] = []
        self.placements: List[Placement] = []
        self.chain: List[_SpanRef] = []
        self.chain_len = 0

    def close_chain(self) -> None:
        if not self.chain:
            return
        fragment_id = len(self.fragments)
        start = len(self.placements)
        for ref in self.chain:
            self.placements.append(Placement(
                fragment_id, ref.cue_index, ref.line_index, ref.span_index, 0, len(ref.span.text),
            ))
        text = " ".join(ref.span.text.strip() for ref in self.chain)
        self.fragments.append(Fragment(fragment_id, text, start, len(self.placements)))
        self.chain = []
        self.chain_len = 0

    def add(self, ref: _SpanRef) -> None:
        core = ref.span.text.strip()
        if len(core) > self.budget:
            self.close_chain()
            self._add_split(ref)
            return
        if (
            self.chain
            and _continues(self.chain[-1].span, ref.span)
            and self.chain_len + 1 + len(core) <= self.budget
        ):
            self.chain.append(ref)
            self.chain_len += 1 + len(core)
            return
        self.close_chain()
        self.chain = [ref]
        self.chain_len = len(core)

    def _add_split(self, ref: _SpanRef) -> None:
        text = ref.span.text
        cores = _split_cores(text, self.budget)
        bounds = [0] + [start for start, _ in cores[1:]] + [len(text)]
        for k, (core_start, core_end) in enumerate(cores):
            fragment_id = len(self.fragments)
            self.placements.append(Placement(
                fragment_id, ref.cue_index, ref.line_index, ref.span_index, bounds[k], bounds[k + 1],
            ))
            self.fragments.append(Fragment(
                fragment_id,
                text[core_start:core_end],
                len(self.placements) - 1,
                len(self.placements),
                split=True,
            ))


def _pack(fragments: List[Fragment], budget: int) -> Tuple[Batch, ...]:
    batches: List[Batch] = []
    current: List[Fragment] = []
    size = 0
    for fragment in fragments:
        if current and size + len(fragment.text) > budget:
            batches.append(Batch(len(batches), tuple(current)))
            current = []
            size = 0
        current.append(fragment)
        size += len(fragment.text)
    if current:
        batches.append(Batch(len(batches), tuple(current)))
    return tuple(batches)


def segment(document: Document, max_batch_size: int) -> Tuple[Tuple[Batch, ...], SegmentMap]:
    """Group a Document's text into translation batches.

    Args:
        document: Parsed subtitle document.
        max_batch_size: Character budget per fragment and per batch.

    Returns:
        (batches in document order, coordinate map for the reassembler).

    Raises:
        ValueError: if max_batch_size is smaller than 1.
    """
    if max_batch_size < 1:
        raise ValueError("max_batch_size must be at least 1, got {}".format(max_batch_size))

    builder = _Builder(max_batch_size)
    for ref in _walk(document):
        if is_translatable(ref.span):
            builder.add(ref)
        else:
            builder.close_chain()
    builder.close_chain()

    mapping = SegmentMap(tuple(builder.placements), len(builder.fragments))
    return _pack(builder.fragments, max_batch_size), mapping
