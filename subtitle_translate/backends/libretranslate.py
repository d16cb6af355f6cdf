"""Async HTTP backend for the LibreTranslate /translate endpoint.

WHY: LibreTranslate is the open-source machine translation server the
tool was built around. It can be self-hosted or used through public
instances that require an API key and enforce rate limits.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. The backend is an
async context manager: enter it to open a connection pool, exit to
close it. translate_batch() sends the whole batch as a list in one
POST and maps HTTP failures onto TranslationBackendError.

RULES:
- Always use the async context manager (async with LibreTranslateBackend(...) as b:)
- url is the full endpoint, e.g. http://localhost:5000/translate
- 408, 429 and 5xx responses, timeouts and transport errors are transient
- Other non-2xx responses and {"error": ...} bodies are permanent
- A reply with the wrong number of texts is returned as-is; the driver
  checks fragment counts
- transport is injectable (httpx.MockTransport in tests)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from subtitle_translate.backends.base import TranslationBackend, TranslationBackendError
from subtitle_translate.backends.models import TranslateRequest, TranslateResponse
from subtitle_translate.config import (
    DEFAULT_REQUEST_TIMEOUT_S,
    LIBRETRANSLATE_URL,
    load_api_key,
)

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS = frozenset({408, 429})


def _error_message(resp: httpx.Response) -> str:
    """Best-effort error text from a LibreTranslate error reply."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text.strip() or resp.reason_phrase
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return resp.text.strip() or resp.reason_phrase


class LibreTranslateBackend(TranslationBackend):
    """Translation backend for a LibreTranslate server.

    RULES:
    - api_key defaults to load_api_key() from .env
    - url defaults to LIBRETRANSLATE_URL from config
    - Empty batches are answered locally without a request
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url or LIBRETRANSLATE_URL
        self._api_key = api_key or load_api_key()
        self._timeout = timeout if timeout is not None else DEFAULT_REQUEST_TIMEOUT_S
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "LibreTranslate"

    @property
    def url(self) -> str:
        return self._url

    async def __aenter__(self) -> LibreTranslateBackend:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=min(self._timeout, 10.0)),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "LibreTranslateBackend must be used as an async context manager: "
                "async with LibreTranslateBackend() as backend: ..."
            )
        return self._client

    async def translate_batch(
        self,
        fragments: Sequence[str],
        target_language: str,
        source_language: str = "auto",
    ) -> list[str]:
        """Translate a batch with a single POST /translate request.

        Raises:
            TranslationBackendError: transient for 408/429/5xx, timeouts
            and connection problems; permanent otherwise.
        """
        if not fragments:
            return []
        client = self._ensure_client()

        body = TranslateRequest(
            q=list(fragments),
            source=source_language,
            target=target_language,
            api_key=self._api_key,
        )
        try:
            resp = await client.post(self._url, json=body.to_dict())
        except httpx.TimeoutException as exc:
            raise TranslationBackendError(
                f"LibreTranslate request timed out: {exc}", transient=True
            ) from exc
        except httpx.TransportError as exc:
            raise TranslationBackendError(
                f"Could not reach LibreTranslate at {self._url}: {exc}", transient=True
            ) from exc

        if not resp.is_success:
            transient = resp.status_code in _TRANSIENT_STATUS or resp.status_code >= 500
            raise TranslationBackendError(
                f"LibreTranslate error {resp.status_code}: {_error_message(resp)}",
                transient=transient,
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise TranslationBackendError(
                "LibreTranslate returned a non-JSON reply", status_code=resp.status_code
            ) from exc
        if isinstance(data, dict) and "error" in data:
            raise TranslationBackendError(
                f"LibreTranslate error: {data['error']}", status_code=resp.status_code
            )
        try:
            parsed = TranslateResponse.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise TranslationBackendError(
                f"Unexpected LibreTranslate reply: {exc}", status_code=resp.status_code
            ) from exc

        if parsed.detected_languages:
            logger.debug(
                "LibreTranslate detected %s",
                ", ".join(d.language for d in parsed.detected_languages),
            )
        return parsed.translated_text
