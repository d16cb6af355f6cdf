"""Tests for the LibreTranslate backend and its request/response models.

WHY: The backend decides which HTTP failures are worth retrying. A 429
treated as permanent loses a batch for nothing; a 400 treated as
transient burns the retry budget on a request that can never succeed.

HOW: httpx.MockTransport stands in for the server, so the real
httpx.AsyncClient code path runs without a network. Handlers capture
the request body for assertions.

RULES:
- LibreTranslate is never called over the network here
- LIBRETRANSLATE_API_KEY is removed from the environment for every test
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from subtitle_translate.backends import BACKENDS, LibreTranslateBackend, create_backend
from subtitle_translate.backends.base import TranslationBackendError
from subtitle_translate.backends.models import TranslateRequest, TranslateResponse

URL = "http://lt.test/translate"


@pytest.fixture(autouse=True)
def _no_env_key(monkeypatch):
    monkeypatch.delenv("LIBRETRANSLATE_API_KEY", raising=False)


def _translate(handler, fragments, api_key=None, source="auto"):
    async def scenario():
        backend = LibreTranslateBackend(
            url=URL, api_key=api_key, transport=httpx.MockTransport(handler)
        )
        async with backend:
            return await backend.translate_batch(fragments, "de", source)

    return asyncio.run(scenario())


def _error(handler, fragments=("Hello",)):
    with pytest.raises(TranslationBackendError) as exc_info:
        _translate(handler, list(fragments))
    return exc_info.value


class TestModels:
    def test_request_body(self):
        body = TranslateRequest(q=["a", "b"], source="en", target="de").to_dict()
        assert body == {
            "q": ["a", "b"],
            "source": "en",
            "target": "de",
            "format": "text",
            "alternatives": 0,
        }

    def test_request_body_with_key(self):
        body = TranslateRequest(q=["a"], source="auto", target="de", api_key="secret").to_dict()
        assert body["api_key"] == "secret"

    def test_response_list(self):
        resp = TranslateResponse.from_dict({
            "translatedText": ["Hallo", "Welt"],
            "detectedLanguage": [
                {"language": "en", "confidence": 90},
                {"language": "en", "confidence": 85},
            ],
        })
        assert resp.translated_text == ["Hallo", "Welt"]
        assert [d.language for d in resp.detected_languages] == ["en", "en"]

    def test_response_single_string(self):
        resp = TranslateResponse.from_dict({
            "translatedText": "Hallo",
            "detectedLanguage": {"language": "en", "confidence": 90},
        })
        assert resp.translated_text == ["Hallo"]
        assert resp.detected_languages[0].confidence == 90.0

    def test_response_non_numeric_confidence(self):
        resp = TranslateResponse.from_dict({
            "translatedText": ["Hallo"],
            "detectedLanguage": {"language": "en", "confidence": "high"},
        })
        assert resp.translated_text == ["Hallo"]
        assert resp.detected_languages[0].language == "en"
        assert resp.detected_languages[0].confidence is None

    def test_response_missing_text(self):
        with pytest.raises(KeyError):
            TranslateResponse.from_dict({})


class TestTranslateBatch:
    def test_sends_batch_in_one_request(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, str(request.url), json.loads(request.content)))
            body = json.loads(request.content)
            return httpx.Response(200, json={"translatedText": [t.upper() for t in body["q"]]})

        result = _translate(handler, ["hello", "world"], source="en")
        assert result == ["HELLO", "WORLD"]
        assert len(seen) == 1
        method, url, body = seen[0]
        assert (method, url) == ("POST", URL)
        assert body == {
            "q": ["hello", "world"],
            "source": "en",
            "target": "de",
            "format": "text",
            "alternatives": 0,
        }

    def test_api_key_sent(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"translatedText": ["x"]})

        _translate(handler, ["a"], api_key="secret")
        assert seen[0]["api_key"] == "secret"

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("LIBRETRANSLATE_API_KEY", " env-key ")
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"translatedText": ["x"]})

        _translate(handler, ["a"])
        assert seen[0]["api_key"] == "env-key"

    def test_single_string_reply(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"translatedText": "Hallo"})

        assert _translate(handler, ["Hello"]) == ["Hallo"]

    def test_non_numeric_confidence_is_ignored(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "translatedText": ["Hallo"],
                "detectedLanguage": {"language": "en", "confidence": "high"},
            })

        assert _translate(handler, ["Hello"]) == ["Hallo"]

    def test_any_success_status_accepted(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"translatedText": ["Hallo"]})

        assert _translate(handler, ["Hello"]) == ["Hallo"]

    def test_wrong_count_returned_as_is(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"translatedText": ["only one"]})

        assert _translate(handler, ["a", "b"]) == ["only one"]

    def test_empty_batch_skips_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert _translate(handler, []) == []

    def test_requires_context_manager(self):
        backend = LibreTranslateBackend(url=URL)
        with pytest.raises(RuntimeError):
            asyncio.run(backend.translate_batch(["a"], "de"))


class TestErrorMapping:
    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503])
    def test_transient_statuses(self, status):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"error": "try later"})

        err = _error(handler)
        assert err.transient is True
        assert err.status_code == status
        assert "try later" in err.message

    @pytest.mark.parametrize("status", [400, 403, 404])
    def test_permanent_statuses(self, status):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"error": "xx is not supported"})

        err = _error(handler)
        assert err.transient is False
        assert err.status_code == status
        assert "xx is not supported" in err.message

    def test_non_json_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        err = _error(handler)
        assert err.transient is True
        assert "Bad Gateway" in err.message

    def test_error_in_ok_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "Invalid API key"})

        err = _error(handler)
        assert err.transient is False
        assert "Invalid API key" in err.message

    def test_malformed_ok_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        assert _error(handler).transient is False

    def test_connection_error_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        err = _error(handler)
        assert err.transient is True
        assert err.status_code is None

    def test_timeout_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        err = _error(handler)
        assert err.transient is True
        assert "timed out" in err.message


class TestRegistry:
    def test_registered_backends(self):
        assert set(BACKENDS) == {"libretranslate", "passthrough"}

    def test_create_libretranslate(self):
        backend = create_backend("libretranslate", url=URL, api_key="k", timeout=3.0)
        assert isinstance(backend, LibreTranslateBackend)
        assert backend.url == URL

    def test_create_passthrough(self):
        backend = create_backend("passthrough", url=URL)
        assert backend.name == "Passthrough"
        assert asyncio.run(backend.translate_batch(["a"], "de")) == ["a"]

    def test_unknown_backend(self):
        with pytest.raises(KeyError):
            create_backend("babelfish")
