"""LibreTranslate request and response dataclasses.

WHY: The /translate endpoint takes and returns small JSON objects whose
shape changes with the input (a string or a list for ``q``). Typed
dataclasses make the contract explicit and keep dict-poking out of the
HTTP client.

HOW: TranslateRequest.to_dict() builds the POST body;
TranslateResponse.from_dict() parses a successful reply and
normalises ``translatedText`` to a list.

RULES:
- ``q`` is always sent as a list so the reply is a list too
- ``api_key`` is omitted from the body when not set
- A string ``translatedText`` (older servers, single input) becomes a
  one-element list
- ``detectedLanguage`` is only present when source was "auto"; it is
  informational, so a malformed confidence never fails a reply
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TranslateRequest:
    """Body of POST /translate."""

    q: list[str]
    source: str
    target: str
    format: str = "text"
    alternatives: int = 0
    api_key: str | None = None

    def to_dict(self) -> dict:
        body: dict = {
            "q": list(self.q),
            "source": self.source,
            "target": self.target,
            "format": self.format,
            "alternatives": self.alternatives,
        }
        if self.api_key:
            body["api_key"] = self.api_key
        return body


@dataclass
class DetectedLanguage:
    """Language LibreTranslate detected for one input (source="auto")."""

    language: str
    confidence: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> DetectedLanguage:
        """Parse one detection; a confidence that is not a number becomes None."""
        confidence = data.get("confidence")
        try:
            confidence = float(confidence) if confidence is not None else None
        except (TypeError, ValueError):
            confidence = None
        return cls(language=str(data["language"]), confidence=confidence)


@dataclass
class TranslateResponse:
    """Successful reply from POST /translate.

    RULES:
    - translated_text has one entry per input text
    - detected_languages is empty unless the source was auto-detected
    """

    translated_text: list[str]
    detected_languages: list[DetectedLanguage] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> TranslateResponse:
        """Parse the reply body.

        Raises:
            KeyError: if translatedText is missing.
            TypeError: if translatedText is neither a string nor a list.
        """
        translated = data["translatedText"]
        if isinstance(translated, str):
            translated = [translated]
        elif not isinstance(translated, list):
            raise TypeError(
                "translatedText must be a string or a list, got {}".format(type(translated).__name__)
            )

        detected = data.get("detectedLanguage") or []
        if isinstance(detected, dict):
            detected = [detected]
        return cls(
            translated_text=[str(text) for text in translated],
            detected_languages=[DetectedLanguage.from_dict(d) for d in detected if d],
        )
