"""Async connector for Gemini's ``generateContent`` REST endpoint."""

from __future__ import annotations

import asyncio
import json
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

import httpx

from ..categories import ADOBE_CATEGORIES, DEFAULT_CATEGORY

DEFAULT_TITLE = "Untitled"


class GenerationError(RuntimeError):
    """A batch call failed as a whole."""


class GenerationTimeout(GenerationError):
    pass


class MissingCredentialError(GenerationError):
    pass


@dataclass(frozen=True)
class BatchRequest:
    id: str
    prompt: str


@dataclass(frozen=True)
class BatchResult:
    id: str
    title: str
    keywords: str
    category: str


BATCH_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "id": {
                "type": "STRING",
                "description": "The exact ID provided in the input for this image.",
            },
            "title": {
                "type": "STRING",
                "description": "A descriptive, concise English title (must be between 7 and 10 words).",
            },
            "keywords": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "description": "20-30 single-word English keywords. No phrases.",
            },
            "category": {
                "type": "STRING",
                "format": "enum",
                "enum": list(ADOBE_CATEGORIES),
                "description": "The most appropriate Adobe Stock category.",
            },
        },
        "required": ["id", "title", "keywords", "category"],
    },
}


def build_prompt(requests: Sequence[BatchRequest]) -> str:
    listing = json.dumps(
        [{"id": request.id, "description": request.prompt} for request in requests],
        indent=2,
        ensure_ascii=False,
    )
    return "\n".join(
        [
            "You are an expert Adobe Stock metadata specialist.",
            f"Process the following list of {len(requests)} image descriptions.",
            "",
            "For EACH item in the list:",
            "1. Generate a professional English Title (7-10 words long).",
            "2. Generate 20-30 relevant English Keywords (single words only).",
            "3. Select the best Category from the allowed list.",
            "4. Return the result linked to its specific ID.",
            "",
            "Input List:",
            listing,
        ]
    )


def normalize_results(payload: object) -> List[BatchResult]:
    """Coerce a decoded response body into batch results.

    Missing titles and categories fall back to placeholders; entries that
    carry no ``id`` cannot be correlated and are dropped.
    """

    if not isinstance(payload, list):
        raise GenerationError("Gemini response was not a JSON array")
    results: List[BatchResult] = []
    for entry in payload:
        if not isinstance(entry, Mapping) or entry.get("id") in (None, ""):
            continue
        keywords = entry.get("keywords")
        if isinstance(keywords, list):
            keywords_text = ",".join("" if keyword is None else str(keyword) for keyword in keywords)
        elif keywords is None:
            keywords_text = ""
        else:
            keywords_text = str(keywords)
        results.append(
            BatchResult(
                id=str(entry["id"]),
                title=str(entry.get("title") or DEFAULT_TITLE),
                keywords=keywords_text,
                category=str(entry.get("category") or DEFAULT_CATEGORY),
            )
        )
    return results


class GeminiConnector:
    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str | None,
        timeout: float,
        logger,
        temperature: float = 0.3,
        max_batch_size: int = 5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = float(timeout)
        self.temperature = float(temperature)
        self.max_batch_size = max(1, int(max_batch_size))
        self.logger = logger
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)

    @classmethod
    def from_config(cls, config: Mapping[str, Any], logger) -> "GeminiConnector":
        generation = config.get("generation", {})
        scheduler = config.get("scheduler", {})
        return cls(
            base_url=str(generation.get("base_url")),
            model=str(generation.get("model")),
            api_key=os.getenv(str(generation.get("api_key_env", "GEMINI_API_KEY"))),
            timeout=float(generation.get("timeout", 45)),
            temperature=float(generation.get("temperature", 0.3)),
            max_batch_size=int(scheduler.get("batch_size", 5)),
            logger=logger,
        )

    async def generate_batch(self, requests: Sequence[BatchRequest]) -> List[BatchResult]:
        if not requests or len(requests) > self.max_batch_size:
            raise ValueError(f"A batch must hold between 1 and {self.max_batch_size} item(s)")
        if len({request.id for request in requests}) != len(requests):
            raise ValueError("Batch request ids must be unique")
        if not self.api_key:
            raise MissingCredentialError("API key not found")

        payload = {
            "contents": [{"role": "user", "parts": [{"text": build_prompt(requests)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": BATCH_RESPONSE_SCHEMA,
                "temperature": self.temperature,
            },
        }
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._post(payload), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise GenerationTimeout("Request timed out") from None
        except httpx.TimeoutException as exc:
            raise GenerationTimeout("Request timed out") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"HTTPError: {exc}") from exc
        elapsed = time.perf_counter() - start
        self.logger.debug("%s responded in %.2fs for %d item(s)", self.model, elapsed, len(requests))

        text = self.extract_text(response)
        if not text:
            raise GenerationError("No response from Gemini")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise GenerationError(f"ParseError: {exc}") from exc
        return normalize_results(data)

    async def _post(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        response = await self._client.post(
            f"/v1beta/models/{self.model}:generateContent",
            json=payload,
            headers={"x-goog-api-key": str(self.api_key)},
        )
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError("Gemini returned a non-JSON envelope") from exc
        return data if isinstance(data, dict) else {}

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def extract_text(payload: Mapping[str, Any]) -> str:
        candidates = payload.get("candidates") if isinstance(payload, Mapping) else None
        if isinstance(candidates, list) and candidates:
            candidate = candidates[0]
            if isinstance(candidate, Mapping):
                content = candidate.get("content")
                if isinstance(content, Mapping):
                    parts = content.get("parts")
                    if isinstance(parts, list):
                        texts = [
                            part["text"]
                            for part in parts
                            if isinstance(part, Mapping) and isinstance(part.get("text"), str)
                        ]
                        return "".join(texts).strip()
        return ""


__all__ = [
    "BATCH_RESPONSE_SCHEMA",
    "BatchRequest",
    "BatchResult",
    "GeminiConnector",
    "GenerationError",
    "GenerationTimeout",
    "MissingCredentialError",
    "build_prompt",
    "normalize_results",
]
