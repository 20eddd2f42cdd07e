"""HTTP client for the Gemini recognition and generation service."""
# mypy: ignore-errors

from __future__ import annotations

import base64
import json
import logging
from time import perf_counter
from typing import Any, List, Optional, Sequence

import httpx

from snapshelf import metrics
from snapshelf.config import Settings, get_settings
from snapshelf.errors import (
    EmptyResponseError,
    RecognitionUnavailableError,
    UpstreamError,
    UpstreamTimeoutError,
)
from snapshelf.models.inventory import ItemObservation
from snapshelf.recognition.parser import parse_recognition_response

logger = logging.getLogger(__name__)

_CATEGORY_PLACEHOLDER = "{categories}"

FRIDGE_PROMPT = (
    "You are an AI that analyzes a photo of the inside of a refrigerator.\n\n"
    "Detect ALL food items visible in the image. For EACH item, estimate:\n\n"
    '- "name": the item\'s common name\n'
    '- "qty": rough quantity (integer estimate)\n'
    '- "expiresInDays": approximate days until expiration (integer)\n'
    '- "category": one of [' + _CATEGORY_PLACEHOLDER + "]\n"
    '- "bbox": bounding box as [x, y, width, height] where x,y is the top-left corner, '
    "values are 0-1 (normalized to image size)\n\n"
    "Return ONLY valid JSON and NOTHING else. Use this EXACT format:\n"
    "{\n"
    '  "items": [\n'
    "    {\n"
    '      "name": "string",\n'
    '      "qty": number,\n'
    '      "expiresInDays": number,\n'
    '      "category": "string",\n'
    '      "bbox": [x, y, width, height]\n'
    "    }\n"
    "  ]\n"
    "}\n"
    "Do NOT include explanations. Do NOT add extra text."
)

_TRUNCATED_FINISH_REASONS = {"MAX_TOKENS"}


def build_fridge_prompt(categories: Sequence[str]) -> str:
    quoted = ", ".join(json.dumps(category) for category in categories)
    return FRIDGE_PROMPT.replace(_CATEGORY_PLACEHOLDER, quoted)


class GeminiClient:
    """Call the Gemini ``generateContent`` endpoint and unwrap its text output."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float,
        temperature: float,
        max_tokens: int,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not api_key:
            raise RecognitionUnavailableError("GEMINI_API_KEY is not configured")
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = max(0.1, float(timeout))
        self._temperature = max(0.0, float(temperature))
        self._max_tokens = max(1, int(max_tokens))
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    def detect_items(
        self,
        image: bytes,
        mime_type: str,
        *,
        categories: Sequence[str],
        default_category: str,
    ) -> List[ItemObservation]:
        """Send a fridge photo and return the vetted item observations."""

        parts = [
            {"text": build_fridge_prompt(categories)},
            {
                "inlineData": {
                    "mimeType": mime_type or "image/jpeg",
                    "data": base64.b64encode(image).decode("ascii"),
                }
            },
        ]
        logger.info(
            "Calling Gemini model=%s image_bytes=%s mime_type=%s",
            self._model,
            len(image),
            mime_type,
        )
        content = self._generate(parts, operation="detect")
        return parse_recognition_response(
            content,
            categories=categories,
            default_category=default_category,
        )

    def generate_text(self, prompt: str) -> str:
        """Run a text-only prompt and return the raw model output."""

        return self._generate([{"text": prompt}], operation="generate")

    def _endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    def _generate(self, parts: list[dict[str, Any]], *, operation: str) -> str:
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": self._temperature,
                "maxOutputTokens": self._max_tokens,
            },
        }
        start = perf_counter()
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    self._endpoint(),
                    params={"key": self._api_key},
                    json=payload,
                )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            elapsed = perf_counter() - start
            logger.error("Gemini request timed out after %.2fs", elapsed)
            raise UpstreamTimeoutError(
                f"Request to Gemini timed out after {self._timeout:.0f}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:1000]
            logger.error(
                "Gemini returned status=%s detail=%s", exc.response.status_code, detail
            )
            raise UpstreamError(
                f"Gemini API error: {exc.response.status_code}",
                status_code=exc.response.status_code,
                detail=detail,
            ) from exc
        except httpx.RequestError as exc:
            logger.error("No response from Gemini: %s", exc)
            raise UpstreamError(f"No response from Gemini: {exc}") from exc
        finally:
            metrics.RECOGNITION_LATENCY.labels(operation=operation).observe(
                perf_counter() - start
            )

        logger.info("Gemini responded in %.0fms", (perf_counter() - start) * 1000)
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError(
                "Gemini returned a non-JSON body",
                status_code=response.status_code,
                detail=response.text[:1000],
            ) from exc
        return extract_candidate_text(body)


def extract_candidate_text(body: dict[str, Any]) -> str:
    """Pull the text out of a ``generateContent`` response body.

    Raises ``EmptyResponseError`` when the service blocked, filtered or otherwise
    returned nothing usable.
    """

    body = body if isinstance(body, dict) else {}
    candidates = body.get("candidates") or []
    if not candidates:
        feedback = body.get("promptFeedback") or {}
        block_reason = feedback.get("blockReason")
        if block_reason:
            message = feedback.get("blockReasonMessage") or ""
            raise EmptyResponseError(
                f"Gemini blocked the request: {block_reason}. {message}".strip(),
                reason=block_reason,
            )
        raise EmptyResponseError("Gemini returned no candidates", reason="NO_CANDIDATES")

    candidate = candidates[0] or {}
    finish_reason = candidate.get("finishReason")
    if finish_reason and finish_reason != "STOP":
        if finish_reason == "SAFETY":
            ratings = json.dumps(candidate.get("safetyRatings") or [])
            raise EmptyResponseError(
                f"Content was blocked by safety filters. Safety ratings: {ratings}",
                reason=finish_reason,
            )
        if finish_reason in _TRUNCATED_FINISH_REASONS:
            logger.warning("Gemini response truncated (%s); parsing partial output", finish_reason)
        else:
            raise EmptyResponseError(
                f"Gemini finished with reason: {finish_reason}", reason=finish_reason
            )

    content = candidate.get("content") or {}
    text = "".join(
        part.get("text") or "" for part in content.get("parts") or [] if isinstance(part, dict)
    ).strip()
    if not text:
        text = (content.get("text") or candidate.get("text") or "").strip()
    if not text:
        raise EmptyResponseError(
            "Gemini returned empty content; the response may have been filtered",
            reason=finish_reason or "EMPTY",
        )
    return text


def build_gemini_client(settings: Settings | None = None) -> GeminiClient | None:
    """Create a client when an API key is configured."""

    settings = settings or get_settings()
    if not settings.gemini_api_key:
        logger.debug("Gemini API key not configured; recognition disabled.")
        return None
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.recognition_timeout,
        temperature=settings.recognition_temperature,
        max_tokens=settings.recognition_max_tokens,
    )


__all__ = ["GeminiClient", "build_fridge_prompt", "build_gemini_client", "extract_candidate_text"]
