from __future__ import annotations
import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .settings import settings

logger = logging.getLogger(__name__)

# Grounding redirect links expire quickly and are useless as citations
_REDIRECT_MARKER = "vertexaisearch.cloud.google.com/grounding-api-redirect"


class LLMError(RuntimeError):
	def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
		super().__init__(message)
		self.status_code = status_code


class QuotaExceededError(LLMError):
	"""429 from the provider. Never retried."""


class AuthenticationError(LLMError):
	"""400/401/403: bad key, missing permission or rejected request. Never retried."""


class TransientLLMError(LLMError):
	"""5xx or network failure that outlived the retry budget."""


class TruncatedResponseError(LLMError):
	"""The model stopped at MAX_TOKENS before producing any text."""


@dataclass
class GroundedText:
	text: str
	citations: List[str] = field(default_factory=list)


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		timeout: Optional[float] = None,
		max_retries: Optional[int] = None,
		retry_delay: Optional[float] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self.max_retries = settings.llm_max_retries if max_retries is None else max_retries
		self.retry_delay = settings.llm_retry_delay_seconds if retry_delay is None else retry_delay
		self._client = httpx.AsyncClient(timeout=timeout or settings.llm_timeout_seconds, transport=transport)

	async def generate(
		self,
		prompt: str,
		*,
		temperature: float = 0.7,
		max_tokens: int = 2048,
		thinking_budget: Optional[int] = None,
	) -> str:
		payload = self._build_payload(prompt, temperature, max_tokens, thinking_budget)
		data = await self._post_payload(payload)
		text, _ = self._extract_text(data)
		return text

	async def generate_with_grounding(
		self,
		prompt: str,
		*,
		temperature: float = 0.7,
		max_tokens: int = 2048,
	) -> GroundedText:
		payload = self._build_payload(prompt, temperature, max_tokens, None)
		payload["tools"] = [{"googleSearch": {}}]
		data = await self._post_payload(payload)
		text, candidate = self._extract_text(data)
		return GroundedText(text=text, citations=_grounding_citations(candidate))

	def _build_payload(
		self,
		prompt: str,
		temperature: float,
		max_tokens: int,
		thinking_budget: Optional[int],
	) -> Dict[str, Any]:
		generation_config: Dict[str, Any] = {"temperature": temperature, "maxOutputTokens": int(max_tokens)}
		if thinking_budget is not None:
			try:
				budget_tokens = int(thinking_budget)
			except Exception:
				budget_tokens = 0
			generation_config["thinkingConfig"] = {"thinkingBudget": budget_tokens}
		return {"contents": [{"parts": [{"text": prompt}]}], "generationConfig": generation_config}

	def _auth(self) -> Tuple[Dict[str, Any], Dict[str, str]]:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		return params, headers

	async def _post_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
		params, headers = self._auth()
		attempt = 0
		while True:
			try:
				r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			except httpx.TransportError as net_err:
				if attempt < self.max_retries:
					attempt += 1
					logger.warning("Gemini network error (%s), retry %d/%d", net_err, attempt, self.max_retries)
					await asyncio.sleep(self.retry_delay * attempt)
					continue
				raise TransientLLMError(f"Gemini request failed: {net_err}") from net_err
			if r.status_code >= 500 and attempt < self.max_retries:
				attempt += 1
				logger.warning("Gemini returned %d, retry %d/%d", r.status_code, attempt, self.max_retries)
				await asyncio.sleep(self.retry_delay * attempt)
				continue
			if r.status_code == 400 and "thinkingConfig" in payload.get("generationConfig", {}):
				# Not every model accepts a thinking budget; drop it once and resend
				generation_config = dict(payload["generationConfig"])
				generation_config.pop("thinkingConfig", None)
				payload = {**payload, "generationConfig": generation_config}
				continue
			if r.is_error:
				raise _classify_error(r)
			try:
				return r.json()
			except ValueError as exc:
				raise LLMError(f"Unexpected Gemini response: {r.text[:200]}") from exc

	def _extract_text(self, data: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
		candidates = data.get("candidates") or []
		if not candidates or not isinstance(candidates[0], dict):
			raise LLMError(f"Unexpected Gemini response: {json.dumps(data)[:200]}")
		candidate = candidates[0]
		finish_reason = candidate.get("finishReason")
		parts = (candidate.get("content") or {}).get("parts") or []
		text = "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))
		if not text.strip():
			if finish_reason == "MAX_TOKENS":
				raise TruncatedResponseError("Response hit MAX_TOKENS before producing text")
			raise LLMError(f"Gemini returned no text (finishReason={finish_reason})")
		if finish_reason == "MAX_TOKENS":
			logger.warning("Gemini output truncated at MAX_TOKENS (%d chars kept)", len(text))
		return text, candidate

	async def aclose(self) -> None:
		await self._client.aclose()


def _classify_error(r: httpx.Response) -> LLMError:
	try:
		body = r.json()
		message = (body.get("error") or {}).get("message") or r.text
	except Exception:
		message = r.text
	message = str(message)[:200]
	if r.status_code == 429:
		return QuotaExceededError(f"API quota exceeded (429): {message}", status_code=429)
	if r.status_code in (400, 401, 403):
		return AuthenticationError(f"API request rejected ({r.status_code}): {message}", status_code=r.status_code)
	if r.status_code >= 500:
		return TransientLLMError(f"API unavailable ({r.status_code}): {message}", status_code=r.status_code)
	return LLMError(f"API request failed ({r.status_code}): {message}", status_code=r.status_code)


def _grounding_citations(candidate: Dict[str, Any]) -> List[str]:
	chunks = (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []
	urls: List[str] = []
	for chunk in chunks:
		uri = ((chunk or {}).get("web") or {}).get("uri")
		if uri and _REDIRECT_MARKER not in uri and uri not in urls:
			urls.append(uri)
	return urls


def extract_json_object(text: str) -> Dict[str, Any]:
	"""Return the first well-formed JSON object in an LLM reply.

	Handles raw JSON, JSON inside a markdown code fence, and JSON embedded in prose.
	Raises ValueError when no object can be decoded.
	"""
	try:
		data = json.loads(text)
		if isinstance(data, dict):
			return data
	except Exception:
		pass
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
	if code_block:
		try:
			data = json.loads(code_block.group(1))
			if isinstance(data, dict):
				return data
		except Exception:
			pass
	decoder = json.JSONDecoder()
	start = text.find("{")
	while start != -1:
		try:
			data, _ = decoder.raw_decode(text, start)
		except ValueError:
			start = text.find("{", start + 1)
			continue
		if isinstance(data, dict):
			return data
		start = text.find("{", start + 1)
	raise ValueError("LLM did not return valid JSON.")


async def generate_text(llm: Any, prompt: str, *, temperature: float, max_tokens: int, **kwargs: Any) -> str:
	"""Call `llm.generate`, retrying once with a doubled token limit on truncation."""
	try:
		return await llm.generate(prompt, temperature=temperature, max_tokens=max_tokens, **kwargs)
	except TruncatedResponseError:
		logger.warning("Truncated at %d tokens, retrying with %d", max_tokens, max_tokens * 2)
		return await llm.generate(prompt, temperature=temperature, max_tokens=max_tokens * 2, **kwargs)
