"""subtitle-translate — structure-preserving subtitle translation engine.

WHY: Machine translation works best on whole sentences, but subtitle
files slice sentences across timed cues and wrap text in inline markup.
Translating cue-by-cue hurts quality; translating the whole file loses
cue alignment. This package translates sentence-sized units and writes
the result back into the original cue/line/span structure.

HOW: Four-stage pipeline — parse (codecs), segment (core.segmenter),
drive (core.driver, concurrent rate-limited backend calls), reassemble
(core.reassembler). core.pipeline composes the stages behind a single
translate() call that the CLI uses.

RULES:
- The Document model is immutable; translation always yields a new Document
- Cue count, cue order and timestamps are never changed by translation
- Markup is never sent to the translator
- SRT and WebVTT are read and written; ASS/SSA are read and written as SRT
- Adding a subtitle format = one new codec module, no engine changes
"""

__version__ = "0.1.0"
