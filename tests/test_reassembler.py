"""Tests for writing translations back into the document structure.

WHY: Reassembly is where a translation run can silently corrupt a file:
a cut in the wrong place moves words between cues, a lost space glues
words together, a touched timestamp desynchronises the video.

HOW: Documents are segmented for real, results are fabricated as the
driver would return them, and the reassembled Document is inspected.

RULES:
- Structure (cue count, timing, markup) must be identical before and after
- Fallback results restore source text exactly
"""

from __future__ import annotations

import pytest

from conftest import SAMPLE_SRT
from subtitle_translate.codecs import parse, serialize
from subtitle_translate.core.driver import TranslationResult
from subtitle_translate.core.errors import DriverError, DriverErrorKind
from subtitle_translate.core.model import Cue, Document, StyledSpan, SubtitleFormat
from subtitle_translate.core.reassembler import distribute, fallback_cues, reassemble
from subtitle_translate.core.segmenter import segment


def _results(batches, translate=str.upper, fallback_batches=()):
    results = []
    for batch in batches:
        if batch.index in fallback_batches:
            results.append(TranslationResult(batch.index, tuple(batch.texts), fallback=True))
        else:
            results.append(TranslationResult(batch.index, tuple(translate(t) for t in batch.texts)))
    return results


class TestDistribute:
    def test_single_weight_takes_everything(self):
        assert distribute("Bonjour le monde", [5]) == ["Bonjour le monde"]

    def test_cuts_at_nearest_gap(self):
        parts = distribute("Je suis allé au marché hier matin.", [20, 18])
        assert parts == ["Je suis allé au", "marché hier matin."]

    def test_three_way_split_keeps_order(self):
        parts = distribute("one two three four five six", [3, 3, 3])
        assert len(parts) == 3
        assert " ".join(parts) == "one two three four five six"
        assert all(parts)

    def test_too_few_gaps_cuts_characters(self):
        parts = distribute("我昨天早上去了市场。", [10, 10])
        assert "".join(parts) == "我昨天早上去了市场。"
        assert len(parts) == 2
        assert all(parts)

    def test_more_pieces_than_characters(self):
        parts = distribute("ab", [1, 1, 1])
        assert len(parts) == 3
        assert "".join(parts) == "ab"

    def test_zero_weights_split_evenly(self):
        assert distribute("aa bb", [0, 0]) == ["aa", "bb"]


class TestReassemble:
    def test_structure_is_untouched(self, sample_srt):
        doc = parse(sample_srt)
        batches, mapping = segment(doc, 1000)
        out = reassemble(doc, mapping, _results(batches))
        assert len(out) == len(doc)
        for before, after in zip(doc.cues, out.cues):
            assert (before.index, before.start_ms, before.end_ms) == (
                after.index, after.start_ms, after.end_ms
            )
        assert out.cues[1].lines[0][0] == StyledSpan(
            "I WENT TO THE MARKET", opening="<i>", closing="</i>"
        )
        assert out.cues[3].lines[0][0] == doc.cues[3].lines[0][0]
        assert out.header == doc.header and out.footer == doc.footer

    def test_serialised_translation(self, sample_srt):
        doc = parse(sample_srt)
        batches, mapping = segment(doc, 1000)
        out = serialize(reassemble(doc, mapping, _results(batches)))
        assert out == sample_srt.replace(b"Hello there!", b"HELLO THERE!").replace(
            b"I went to the market", b"I WENT TO THE MARKET"
        ).replace(b"yesterday morning.", b"YESTERDAY MORNING.").replace(
            b"- Did you?", b"- DID YOU?"
        ).replace(b"Look up.", b"LOOK UP.")

    def test_sentence_redistributed_over_cues(self):
        doc = parse(
            b"1\n00:00:01,000 --> 00:00:03,000\nI went to the market\n\n"
            b"2\n00:00:03,000 --> 00:00:05,000\nyesterday morning.\n"
        )
        batches, mapping = segment(doc, 1000)
        results = [
            TranslationResult(0, ("Je suis allé au marché hier matin.",)),
        ]
        assert len(batches) == 1
        out = reassemble(doc, mapping, results)
        assert [c.text for c in out.cues] == ["Je suis allé au", "marché hier matin."]

    def test_split_span_rejoins_with_original_whitespace(self):
        cue = Cue(index=1, start_ms=0, end_ms=1000, lines=((StyledSpan(" Hello world foo "),),))
        doc = Document(cues=(cue,), format=SubtitleFormat.SRT)
        batches, mapping = segment(doc, 13)
        out = reassemble(doc, mapping, _results(batches))
        assert out.cues[0].lines[0][0].text == " HELLO WORLD FOO "

    def test_line_breaks_in_translation_collapse(self, sample_vtt):
        doc = parse(sample_vtt)
        batches, mapping = segment(doc, 1000)
        out = reassemble(
            doc, mapping, _results(batches, lambda t: t.upper().replace(" ", "\n\n"))
        )
        reparsed = parse(serialize(out))
        assert len(reparsed) == len(doc)
        assert [c.text for c in reparsed.cues] == [
            "GOOD MORNING",
            "WHERE ARE YOU GOING\nSO EARLY?",
        ]

    def test_line_emptied_by_translation_is_dropped(self, sample_srt):
        doc = parse(sample_srt)
        batches, mapping = segment(doc, 1000)
        out = reassemble(
            doc, mapping, _results(batches, lambda t: "" if t.startswith("- Did") else t.upper())
        )
        assert out.cues[2].text == "YESTERDAY MORNING."
        assert len(out.cues[2].lines) == 1
        assert len(parse(serialize(out))) == len(doc)

    def test_fallback_restores_source(self, sample_srt):
        doc = parse(sample_srt)
        batches, mapping = segment(doc, 20)
        results = _results(batches, fallback_batches={1})
        out = reassemble(doc, mapping, results)
        assert out.cues[1] == doc.cues[1]
        assert out.cues[0].text == "HELLO THERE!"
        assert fallback_cues(mapping, results) == [2]

    def test_no_fallback_cues(self, sample_srt):
        doc = parse(sample_srt)
        batches, mapping = segment(doc, 1000)
        assert fallback_cues(mapping, _results(batches)) == []

    def test_count_mismatch(self, sample_srt):
        doc = parse(sample_srt)
        batches, mapping = segment(doc, 1000)
        short = [TranslationResult(0, tuple(batches[0].texts[:-1]))]
        with pytest.raises(DriverError) as exc_info:
            reassemble(doc, mapping, short)
        assert exc_info.value.kind is DriverErrorKind.FRAGMENT_COUNT_MISMATCH

    def test_source_document_unchanged(self, sample_srt):
        doc = parse(sample_srt)
        batches, mapping = segment(doc, 1000)
        reassemble(doc, mapping, _results(batches))
        assert serialize(doc) == sample_srt
