"""Backend that returns its input unchanged.

Used for dry runs (checking that a file parses, segments and
re-serialises cleanly) and for format conversion without translation.
"""

from __future__ import annotations

from collections.abc import Sequence

from subtitle_translate.backends.base import TranslationBackend


class PassthroughBackend(TranslationBackend):
    """Echoes every fragment back as its own translation."""

    @property
    def name(self) -> str:
        return "Passthrough"

    async def translate_batch(
        self,
        fragments: Sequence[str],
        target_language: str,
        source_language: str = "auto",
    ) -> list[str]:
        return list(fragments)
