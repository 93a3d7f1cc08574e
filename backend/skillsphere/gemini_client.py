from __future__ import annotations
import json
import logging
import re
import httpx
from typing import Any, AsyncIterator, Dict, List, Optional
from .settings import settings

logger = logging.getLogger(__name__)


class GeminiError(RuntimeError):
	"""The generative-AI service failed or returned something unusable."""


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
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
		timeout = settings.gemini_timeout_seconds
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.openrouter_api_key)
		self._openrouter_api_key = settings.openrouter_api_key
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=timeout, transport=transport)

	async def generate(
		self,
		prompt: str,
		*,
		system_instruction: Optional[str] = None,
		json_output: bool = False,
		temperature: Optional[float] = None,
		thinking_budget: Optional[int] = None,
	) -> str:
		messages = [{"role": "user", "content": prompt}]
		return await self.chat(
			messages,
			system_instruction=system_instruction,
			json_output=json_output,
			temperature=temperature,
			thinking_budget=thinking_budget,
		)

	async def chat(
		self,
		messages: List[Dict[str, str]],
		*,
		system_instruction: Optional[str] = None,
		json_output: bool = False,
		temperature: Optional[float] = None,
		thinking_budget: Optional[int] = None,
	) -> str:
		contents = []
		for m in messages:
			# Gemini calls the assistant side "model"
			role = "model" if m.get("role") == "assistant" else "user"
			contents.append({"role": role, "parts": [{"text": m.get("content", "")}]})
		payload: Dict[str, Any] = {"contents": contents}
		if system_instruction:
			payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
		generation_config: Dict[str, Any] = {}
		if json_output:
			generation_config["responseMimeType"] = "application/json"
		if temperature is not None:
			generation_config["temperature"] = temperature
		if generation_config:
			payload["generationConfig"] = generation_config
		fallback_messages = list(messages)
		if system_instruction:
			fallback_messages.insert(0, {"role": "system", "content": system_instruction})
		return await self._post_payload(
			payload,
			thinking_budget=thinking_budget,
			fallback_messages=fallback_messages,
		)

	async def _post_payload(
		self,
		payload: Dict[str, Any],
		*,
		thinking_budget: Optional[int] = None,
		fallback_messages: Optional[List[Dict[str, str]]],
		allow_fallback: bool = True,
	) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		if thinking_budget is not None:
			try:
				budget_tokens = int(thinking_budget)
			except (TypeError, ValueError):
				budget_tokens = 0
			config = dict(payload.get("generationConfig") or {})
			config["thinkingConfig"] = {"thinkingBudget": budget_tokens}
			payload = {**payload, "generationConfig": config}
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			if thinking_budget is not None:
				# Older models reject thinkingConfig; retry once without it
				retry_payload = dict(payload)
				config = dict(retry_payload.get("generationConfig") or {})
				config.pop("thinkingConfig", None)
				if config:
					retry_payload["generationConfig"] = config
				else:
					retry_payload.pop("generationConfig", None)
				try:
					r = await self._client.post(self.base_url, params=params, headers=headers, json=retry_payload)
					r.raise_for_status()
				except httpx.HTTPError as err:
					last_error = err
			else:
				last_error = http_err
		except httpx.RequestError as net_err:
			last_error = net_err
		if last_error is None:
			try:
				data = r.json()
				return data["candidates"][0]["content"]["parts"][0]["text"]
			except (ValueError, KeyError, IndexError, TypeError):
				last_error = GeminiError(f"Unexpected Gemini response: {r.text[:500]}")
		logger.warning("Gemini call to %s failed: %s", self.model, last_error)
		if not allow_fallback or not self._fallback_enabled or not fallback_messages:
			raise GeminiError(f"Gemini call failed: {last_error}") from last_error
		return await self._fallback_generate(fallback_messages, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, messages: List[Dict[str, str]], primary_error: Optional[Exception]) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise GeminiError("Fallback requested but OpenRouter is not configured") from primary_error
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": messages,
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as fallback_err:
			raise GeminiError(
				f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
			) from fallback_err


def extract_json_object(text: str) -> Any:
	try:
		return json.loads(text)
	except (TypeError, ValueError):
		pass
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text or "")
	if code_block:
		try:
			return json.loads(code_block.group(1))
		except ValueError:
			pass
	first = (text or "").find("{")
	last = (text or "").rfind("}")
	if first != -1 and last > first:
		try:
			return json.loads(text[first : last + 1])
		except ValueError:
			pass
	raise ValueError("Failed to parse JSON from model output")


async def get_gemini_client() -> AsyncIterator[Optional[GeminiClient]]:
	# Yields None when no key is configured; callers fall back to static content
	try:
		client = GeminiClient()
	except ValueError as err:
		logger.warning("AI client unavailable: %s", err)
		yield None
		return
	try:
		yield client
	finally:
		await client.aclose()
