"""Pipeline orchestrator: segment → drive → reassemble.

WHY: Callers (the CLI, tests, library users) want one entry point that
takes a parsed Document and hands back a translated one, with the
degraded-mode summary alongside.

HOW: translate_document() composes the three engine stages and logs
each one. translate() is a synchronous wrapper for callers without an
event loop.

RULES:
- The input Document is never modified; a new one is returned
- A cancelled run raises DriverError(CANCELLED), never a partial Document
- The backend is opened and closed by the caller (async with ...)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List

from subtitle_translate.backends.base import TranslationBackend
from subtitle_translate.config import DEFAULT_MAX_BATCH_CHARS
from subtitle_translate.core.driver import DriverSettings, TranslationDriver
from subtitle_translate.core.errors import DriverError
from subtitle_translate.core.model import Document
from subtitle_translate.core.reassembler import fallback_cues, reassemble
from subtitle_translate.core.segmenter import segment

logger = logging.getLogger(__name__)


@dataclass
class TranslationReport:
    """Outcome of a translation run.

    RULES:
    - document: the translated Document (complete, structurally valid)
    - fallback_cues: 1-based numbers of cues that kept source text
    - failures: the DriverError behind each fallen-back batch
    """

    document: Document
    fallback_cues: List[int] = field(default_factory=list)
    failures: List[DriverError] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


async def translate_document(
    document: Document,
    target_language: str,
    backend: TranslationBackend,
    *,
    source_language: str = "auto",
    max_batch_size: int = DEFAULT_MAX_BATCH_CHARS,
    settings: DriverSettings | None = None,
    cancel: asyncio.Event | None = None,
) -> TranslationReport:
    """Translate every cue of ``document`` into ``target_language``.

    Args:
        document: Parsed source Document.
        target_language: Target language code, e.g. "de".
        backend: An entered TranslationBackend.
        source_language: Source language code, or "auto".
        max_batch_size: Character budget per request.
        settings: Driver throttling/retry/policy settings.
        cancel: Optional event that aborts the run when set.

    Returns:
        TranslationReport with the translated Document.

    Raises:
        DriverError: on cancellation, or on any batch failure in STRICT mode.
        ValueError: if max_batch_size is smaller than 1.
    """
    batches, mapping = segment(document, max_batch_size)
    logger.info(
        "Segmented %d cues into %d fragments in %d batches",
        len(document),
        mapping.fragment_count,
        len(batches),
    )

    driver = TranslationDriver(backend, settings)
    results = await driver.run(batches, target_language, source_language, cancel=cancel)

    translated = reassemble(document, mapping, results)
    failures = [r.error for r in results if r.fallback and r.error is not None]
    cues = fallback_cues(mapping, results)
    if cues:
        logger.warning("%d of %d cues kept their source text", len(cues), len(document))
    logger.info("Reassembled %d cues", len(translated))
    return TranslationReport(document=translated, fallback_cues=cues, failures=failures)


def translate(
    document: Document,
    target_language: str,
    backend: TranslationBackend,
    **kwargs,
) -> Document:
    """Synchronous wrapper around translate_document() returning only the Document.

    Opens and closes ``backend`` around the run.
    """

    async def _run() -> Document:
        async with backend:
            report = await translate_document(document, target_language, backend, **kwargs)
        return report.document

    return asyncio.run(_run())
