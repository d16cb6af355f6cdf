"""Reassembly of translated fragments into a target-language Document.

WHY: The translator sees sentences, the file stores cues. When one
sentence spans three cues, its translation has to be cut back into
three pieces that read naturally and keep the original timing. Spans,
markup and every timestamp must come out exactly where they went in.

HOW: Results are flattened into one text per fragment. Each fragment's
placements are looked up in the SegmentMap. A single placement takes
the whole translation; several placements share it in proportion to
their source lengths, cut at the whitespace gap nearest each
proportional position. The new span texts are then written into fresh
copies of the affected cues with dataclasses.replace.

RULES:
- Flattened text count must equal SegmentMap.fragment_count
- Each slice keeps its own leading/trailing whitespace
- Whitespace runs inside a translation collapse to single spaces
- A line emptied by its translation is dropped from the cue
- Fallback results write every slice back verbatim
- Only span text changes: cue count, indices, timing, settings,
  identifiers, notes, markup and opaque spans are untouched
- Runs single-threaded after every batch result is in
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import replace
from typing import Dict, List, Tuple

from subtitle_translate.core.driver import TranslationResult
from subtitle_translate.core.errors import DriverError, DriverErrorKind
from subtitle_translate.core.model import Cue, Document, render_line
from subtitle_translate.core.segmenter import Placement, SegmentMap

logger = logging.getLogger(__name__)

_GAP_RE = re.compile(r"\s+")

SpanKey = Tuple[int, int, int]


def _flatten(results: Sequence[TranslationResult]) -> List[Tuple[str, bool]]:
    return [(text, result.fallback) for result in results for text in result.texts]


def _source_slice(document: Document, placement: Placement) -> str:
    span = document.cues[placement.cue_index].lines[placement.line_index][placement.span_index]
    return span.text[placement.start:placement.end]


def _rewrap(source: str, translated: str) -> str:
    """Put ``translated`` between the whitespace that surrounded ``source``."""
    core = source.strip()
    if not core:
        return source
    lead = source[:len(source) - len(source.lstrip())]
    trail = source[len(source.rstrip()):]
    return lead + translated + trail


def distribute(text: str, weights: Sequence[int]) -> List[str]:
    """Cut ``text`` into ``len(weights)`` pieces sized in proportion to ``weights``.

    WHY: A sentence that spanned several cues must be split back so each
    cue shows roughly the share of the sentence it had in the source.

    HOW: Computes the ideal cumulative cut positions, then moves each cut
    to the start of the nearest whitespace gap, keeping cuts in order and
    leaving enough gaps for the cuts still to come. When the text has too
    few gaps (CJK, single long words) cuts fall on character positions.

    RULES:
    - Returns exactly len(weights) pieces, each stripped
    - Whitespace consumed by a cut is dropped
    - Zero total weight shares the text evenly
    """
    count = len(weights)
    if count == 0:
        return []
    if count == 1:
        return [text]

    total = sum(weights)
    if total <= 0:
        weights = [1] * count
        total = count
    targets = []
    running = 0
    for weight in weights[:-1]:
        running += weight
        targets.append(len(text) * running / total)

    gaps = [(m.start(), m.end()) for m in _GAP_RE.finditer(text)]
    if len(gaps) >= count - 1:
        pieces = []
        pos = 0
        lo = 0
        for k, target in enumerate(targets):
            hi = len(gaps) - (count - 2 - k)
            best = min(range(lo, hi), key=lambda g: abs(gaps[g][0] - target))
            start, end = gaps[best]
            pieces.append(text[pos:start])
            pos = end
            lo = best + 1
        pieces.append(text[pos:])
        return [piece.strip() for piece in pieces]

    pieces = []
    pos = 0
    length = len(text)
    for k, target in enumerate(targets):
        remaining = count - 1 - k
        cut = round(target)
        if length >= count:
            cut = max(pos + 1, min(cut, length - remaining))
        else:
            cut = max(pos, min(cut, length))
        pieces.append(text[pos:cut])
        pos = cut
    pieces.append(text[pos:])
    return [piece.strip() for piece in pieces]


def reassemble(
    document: Document,
    mapping: SegmentMap,
    results: Sequence[TranslationResult],
) -> Document:
    """Write translated fragments back into a copy of ``document``.

    Args:
        document: The source Document the mapping was built from.
        mapping: Coordinate map returned by segment().
        results: Driver results in batch order.

    Returns:
        A new Document with translated span text and identical structure.

    Raises:
        DriverError: FRAGMENT_COUNT_MISMATCH if the results do not cover
        exactly the mapped fragments.
    """
    texts = _flatten(results)
    if len(texts) != mapping.fragment_count:
        raise DriverError(
            DriverErrorKind.FRAGMENT_COUNT_MISMATCH,
            "Got {} translated fragments for {} source fragments".format(
                len(texts), mapping.fragment_count
            ),
        )

    replacements: Dict[SpanKey, List[str]] = {}
    for placements, (translated, fallback) in zip(mapping.grouped(), texts):
        sources = [_source_slice(document, p) for p in placements]
        if fallback:
            parts = sources
        else:
            # Backend line breaks would add lines (or blank lines) to a cue.
            flat = _GAP_RE.sub(" ", translated).strip()
            cores = distribute(flat, [len(s.strip()) for s in sources])
            parts = [_rewrap(src, core) for src, core in zip(sources, cores)]
        for placement, part in zip(placements, parts):
            key = (placement.cue_index, placement.line_index, placement.span_index)
            replacements.setdefault(key, []).append(part)

    touched = {key[0] for key in replacements}
    cues: List[Cue] = []
    for ci, cue in enumerate(document.cues):
        if ci not in touched:
            cues.append(cue)
            continue
        lines = []
        for li, line in enumerate(cue.lines):
            new_line = tuple(
                span.with_text("".join(replacements[(ci, li, si)]))
                if (ci, li, si) in replacements
                else span
                for si, span in enumerate(line)
            )
            # A line the translation left blank would end the cue on disk.
            if render_line(line).strip() and not render_line(new_line).strip():
                continue
            lines.append(new_line)
        cues.append(replace(cue, lines=tuple(lines)))

    logger.debug("Reassembled %d fragments into %d cues", len(texts), len(touched))
    return replace(document, cues=tuple(cues))


def fallback_cues(mapping: SegmentMap, results: Sequence[TranslationResult]) -> List[int]:
    """1-based numbers of the cues that kept source text in a degraded run."""
    grouped = mapping.grouped()
    cue_numbers = set()
    fragment_id = 0
    for result in results:
        for _ in result.texts:
            if result.fallback and fragment_id < len(grouped):
                cue_numbers.update(p.cue_index + 1 for p in grouped[fragment_id])
            fragment_id += 1
    return sorted(cue_numbers)
