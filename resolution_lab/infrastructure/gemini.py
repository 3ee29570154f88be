"""Integration with the Gemini Generative Language REST API."""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator
from urllib.parse import urlparse

import httpx

from resolution_lab.core.profiles import ProfileParseError, parse_profile
from resolution_lab.core.schema import ResultProfile, WorkItem
from resolution_lab.core.settings import ModelPreset, ModelPresets, load_model_presets

from .gateway import (
    NO_SUMMARY,
    SUMMARY_FAILED,
    GatewayConfigurationError,
    GatewayError,
    PartialText,
    PathFailed,
    ProfileReady,
    StreamEvent,
    single_terminal,
)

logger = logging.getLogger("resolution_lab.gemini")


def build_resolution_prompt(item: WorkItem) -> str:
    record = json.dumps(item.source_record.model_dump(mode="json"), ensure_ascii=False)
    return (
        "INPUT CONTEXT:\n"
        f"Customer Record (JSON): {record}\n\n"
        f'Chat Transcript: "{item.transcript}"\n\n'
        "Task: Resolve the final state of the customer data based on the chat. "
        "Ensure you capture nuanced intent.\n"
    )


def build_synthesis_prompt(item: WorkItem, fast: ResultProfile, deep: ResultProfile) -> str:
    record = json.dumps(item.source_record.model_dump(mode="json"), ensure_ascii=False)
    fast_json = json.dumps(fast.model_dump(mode="json", exclude_none=True), ensure_ascii=False)
    deep_json = json.dumps(deep.model_dump(mode="json", exclude_none=True), ensure_ascii=False)
    return (
        f"Original Record: {record}\n"
        f"Chat: {item.transcript}\n\n"
        f"Fast Model Proposal: {fast_json}\n"
        f"Deep Model Proposal: {deep_json}\n\n"
        "Task: Compare both models.\n"
        "1. If they agree, return that definitive JSON.\n"
        "2. If they disagree, look at the Chat Transcript and determine the correct Golden Record.\n"
        "3. If one captured a nuance the other missed, synthesize the best combined result.\n"
        "4. Ensure updates_applied is comprehensive.\n\n"
        "Return STRICT JSON following the same profile schema.\n"
    )


class GeminiGateway:
    """Inference gateway backed by two differently tuned Gemini models."""

    def __init__(
        self,
        api_key: str | None,
        presets: ModelPresets | None = None,
        *,
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        parsed = urlparse(api_base)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("api_base must include scheme and host")

        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._presets = presets or load_model_presets()
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=5.0, read=timeout, write=10.0, pool=5.0)
        )
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _require_key(self) -> str:
        if not self._api_key:
            raise GatewayConfigurationError("API key not found. Set GEMINI_API_KEY before starting the lab.")
        return self._api_key

    def _endpoint(self, model: str, method: str) -> str:
        return f"{self._api_base}/models/{model}:{method}"

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._require_key(), "Content-Type": "application/json"}

    @staticmethod
    def _build_payload(preset: ModelPreset, prompt: str, *, json_output: bool) -> dict[str, Any]:
        generation: dict[str, Any] = {}
        if preset.temperature is not None:
            generation["temperature"] = preset.temperature
        if json_output:
            generation["responseMimeType"] = "application/json"
        if preset.thinking_budget is not None:
            generation["thinkingConfig"] = {"thinkingBudget": preset.thinking_budget}

        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation,
        }
        if preset.instruction:
            payload["systemInstruction"] = {"parts": [{"text": preset.instruction}]}
        return payload

    @staticmethod
    def _extract_text(payload: Any) -> str:
        """Concatenate the answer parts of the first candidate, skipping thought parts."""

        if not isinstance(payload, dict):
            return ""
        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise GatewayError(str(message))

        candidates = payload.get("candidates") or []
        if not candidates:
            return ""
        content = (candidates[0] or {}).get("content") or {}
        pieces: list[str] = []
        for part in content.get("parts") or []:
            if not isinstance(part, dict) or part.get("thought"):
                continue
            text = part.get("text")
            if isinstance(text, str):
                pieces.append(text)
        return "".join(pieces)

    @staticmethod
    def _http_failure(response: httpx.Response) -> GatewayError:
        detail = response.text.strip() or response.reason_phrase
        return GatewayError(f"HTTP {response.status_code}: {detail}")

    async def _stream_chunks(self, preset: ModelPreset, prompt: str) -> AsyncIterator[str]:
        headers = self._headers()
        payload = self._build_payload(preset, prompt, json_output=True)
        url = self._endpoint(preset.model, "streamGenerateContent")
        async with self._client.stream("POST", url, params={"alt": "sse"}, json=payload, headers=headers) as response:
            if response.status_code >= 400:
                await response.aread()
                raise self._http_failure(response)
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if not data or data == "[DONE]":
                    continue
                try:
                    chunk = json.loads(data)
                except json.JSONDecodeError as exc:
                    raise GatewayError(f"malformed stream chunk: {exc}") from exc
                text = self._extract_text(chunk)
                if text:
                    yield text

    async def _generate(self, preset: ModelPreset, prompt: str, *, json_output: bool) -> str:
        headers = self._headers()
        payload = self._build_payload(preset, prompt, json_output=json_output)
        response = await self._client.post(self._endpoint(preset.model, "generateContent"), json=payload, headers=headers)
        if response.status_code >= 400:
            raise self._http_failure(response)
        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise GatewayError(f"response body was not JSON: {exc}") from exc
        return self._extract_text(body)

    @single_terminal
    async def _resolve(
        self,
        item: WorkItem,
        preset: ModelPreset,
        *,
        parse_label: str,
        fault_label: str,
    ) -> AsyncIterator[StreamEvent]:
        accumulated = ""
        try:
            async for chunk in self._stream_chunks(preset, build_resolution_prompt(item)):
                accumulated += chunk
                yield PartialText(accumulated)
        except httpx.TimeoutException as exc:
            logger.warning("%s for item %s timed out: %s", preset.model, item.id, exc)
            yield PathFailed(f"Timed Out: {fault_label} after waiting on {preset.model}. {exc}")
            return
        except (httpx.HTTPError, GatewayError) as exc:
            logger.warning("%s for item %s failed: %s", preset.model, item.id, exc)
            yield PathFailed(f"{fault_label}: {exc}")
            return

        try:
            profile = parse_profile(accumulated)
        except ProfileParseError as exc:
            yield PathFailed(f"{parse_label}: {exc}")
            return
        yield ProfileReady(profile)

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def summarize(self, transcript: str) -> str:
        prompt = f'Summarize this customer support chat transcript in one concise sentence: "{transcript}"'
        try:
            text = await self._generate(self._presets.summary, prompt, json_output=False)
        except Exception as exc:
            logger.warning("summary request failed: %s", exc)
            return SUMMARY_FAILED
        return text.strip() or NO_SUMMARY

    def fast_resolve(self, item: WorkItem) -> AsyncIterator[StreamEvent]:
        return self._resolve(item, self._presets.fast, parse_label="Parse Error", fault_label="API Error")

    def deep_resolve(self, item: WorkItem) -> AsyncIterator[StreamEvent]:
        return self._resolve(item, self._presets.deep, parse_label="Structure Error", fault_label="Engine Fault")

    async def synthesize(self, item: WorkItem, fast: ResultProfile, deep: ResultProfile) -> ResultProfile:
        prompt = build_synthesis_prompt(item, fast, deep)
        try:
            text = await self._generate(self._presets.synthesis, prompt, json_output=True)
        except httpx.HTTPError as exc:
            raise GatewayError(f"synthesis request failed: {exc}") from exc
        try:
            return parse_profile(text)
        except ProfileParseError as exc:
            raise GatewayError(f"arbiter returned an invalid profile. {exc}") from exc

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


__all__ = ["GeminiGateway", "build_resolution_prompt", "build_synthesis_prompt"]
