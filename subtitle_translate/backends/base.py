"""Abstract translation backend.

WHY: The engine only needs one capability from a translator: turn an
ordered list of texts into an ordered list of translations of the same
length. Hiding every service behind that interface keeps HTTP details
out of the driver and lets tests use in-memory fakes.

HOW: TranslationBackend is an ABC with a single coroutine,
``translate_batch()``, plus async context-manager hooks for backends
that hold connections. Failures are reported as TranslationBackendError
flagged transient or permanent; the driver decides what to do.

RULES:
- translate_batch() returns one string per input, in input order
- Raise TranslationBackendError(transient=True) for failures worth
  retrying (timeouts, rate limiting, server errors)
- Raise TranslationBackendError(transient=False) for rejected requests
- Backends never retry on their own

To add a new backend:
1. Create a new file in backends/
2. Subclass TranslationBackend
3. Implement name and translate_batch()
4. Register in BACKENDS dict in backends/__init__.py
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence


class TranslationBackendError(Exception):
    """Raised when a backend cannot translate a batch.

    RULES:
    - transient: True if the same request may succeed when repeated
    - status_code: HTTP status when the failure came from a response
    """

    def __init__(
        self,
        message: str,
        transient: bool = False,
        status_code: int | None = None,
    ) -> None:
        self.message = message
        self.transient = transient
        self.status_code = status_code
        super().__init__(message)


class TranslationBackend(ABC):
    """Abstract base for all translation backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name, e.g. 'LibreTranslate'."""

    @abstractmethod
    async def translate_batch(
        self,
        fragments: Sequence[str],
        target_language: str,
        source_language: str = "auto",
    ) -> list[str]:
        """Translate ``fragments`` into ``target_language``.

        Args:
            fragments: Texts to translate, in order.
            target_language: Target language code, e.g. "de".
            source_language: Source language code, or "auto" to detect.

        Returns:
            One translated string per fragment, in the same order.

        Raises:
            TranslationBackendError: on any failure.
        """

    async def __aenter__(self) -> TranslationBackend:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        return None
