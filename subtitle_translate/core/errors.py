"""Typed failures surfaced by the engine.

WHY: The CLI must choose an exit code and a message for every failure
without parsing exception strings. Each failure type therefore carries
a machine-readable ``kind``.

HOW: Two exception classes, each paired with a str-valued enum of kinds:
  ParseError  — the input document is structurally invalid
  DriverError — a translation run failed as a whole (or, in degraded
                mode, one batch failed and the error is attached to its
                fallback result)

RULES:
- Kinds inherit from str so they print and compare cleanly
- ParseError.position is a 1-based line number (0 when not applicable)
- DriverError.batch_index is None for run-level failures (cancellation)
"""

from __future__ import annotations

import enum


class ParseErrorKind(str, enum.Enum):
    """Why a subtitle document could not be parsed."""

    MALFORMED_TIMESTAMP = "malformed_timestamp"
    OUT_OF_ORDER_CUE = "out_of_order_cue"
    UNTERMINATED_BLOCK = "unterminated_block"
    MALFORMED_EVENT = "malformed_event"
    UNRECOGNIZED_FORMAT = "unrecognized_format"
    INVALID_ENCODING = "invalid_encoding"


class DriverErrorKind(str, enum.Enum):
    """Why a translation run (or one of its batches) failed.

    RULES:
    - fragment_count_mismatch: backend returned a different number of
      fragments than it was sent; never retried
    - cancelled: the external cancellation signal fired
    - retries_exhausted: transient failures used up the attempt budget
    - backend_rejected: the backend reported a non-transient failure
    """

    FRAGMENT_COUNT_MISMATCH = "fragment_count_mismatch"
    CANCELLED = "cancelled"
    RETRIES_EXHAUSTED = "retries_exhausted"
    BACKEND_REJECTED = "backend_rejected"


class ParseError(ValueError):
    """Raised when subtitle input is structurally invalid.

    Parsing never yields a partial Document: any structural problem
    aborts the whole parse with one of these.
    """

    def __init__(self, kind: ParseErrorKind, position: int, message: str) -> None:
        self.kind = kind
        self.position = position
        self.message = message
        super().__init__(f"{message} (line {position})" if position else message)


class DriverError(Exception):
    """Raised when a translation run cannot produce a complete result.

    WHY: The orchestrator and CLI need to tell a cancelled run from an
    exhausted retry budget or a misbehaving backend.

    HOW: Wraps a DriverErrorKind, a message, and the batch that failed.
    """

    def __init__(
        self,
        kind: DriverErrorKind,
        message: str,
        batch_index: int | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.batch_index = batch_index
        prefix = f"batch {batch_index}: " if batch_index is not None else ""
        super().__init__(f"{prefix}{message}")
