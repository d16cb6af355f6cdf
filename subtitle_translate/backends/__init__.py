"""Translation backend registry.

WHY: The CLI picks a backend by name from a flag or environment
variable. A central dict keeps that lookup in one place: a new service
is a new backend class, one import and one line here.

HOW: BACKENDS maps string keys to backend *classes* (not instances).
Callers instantiate as needed; create_backend() does it with the
LibreTranslate connection settings the CLI collects.

RULES:
- Keys are lowercase identifiers (used in --backend and config)
- Values are TranslationBackend subclasses (not instances)
- Every backend listed here must be importable without side effects
"""

from __future__ import annotations

from subtitle_translate.backends.base import TranslationBackend, TranslationBackendError
from subtitle_translate.backends.libretranslate import LibreTranslateBackend
from subtitle_translate.backends.passthrough import PassthroughBackend

BACKENDS: dict[str, type[TranslationBackend]] = {
    "libretranslate": LibreTranslateBackend,
    "passthrough": PassthroughBackend,
}


def create_backend(
    name: str,
    url: str | None = None,
    api_key: str | None = None,
    timeout: float | None = None,
) -> TranslationBackend:
    """Instantiate a registered backend by key.

    Raises:
        KeyError: if ``name`` is not in BACKENDS.
    """
    backend_cls = BACKENDS[name]
    if backend_cls is LibreTranslateBackend:
        return LibreTranslateBackend(url=url, api_key=api_key, timeout=timeout)
    return backend_cls()


__all__ = [
    "BACKENDS",
    "LibreTranslateBackend",
    "PassthroughBackend",
    "TranslationBackend",
    "TranslationBackendError",
    "create_backend",
]
