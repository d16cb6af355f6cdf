"""Core engine: document model, segmentation, driving, and reassembly.

WHY: The core package contains the stable heart of the translator —
the immutable Document model and the three stages that turn one
Document into another. These are consumed by the CLI and by every
codec and must remain format-agnostic.

HOW: model.py defines the data structures, segmenter.py flattens a
Document into translation batches plus a coordinate mapping, driver.py
sends batches to a backend, reassembler.py writes results back, and
pipeline.py composes them. errors.py holds the typed failures.

RULES:
- Model dataclasses are the contract — change with care
- No format-specific logic here; codecs own syntax
- No network code here; backends own transport
"""
