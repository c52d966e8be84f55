from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, Optional, Tuple
from .errors import GenerationQuotaExhausted, GenerationRateLimited, UpstreamGenerationError
from .settings import settings

logger = logging.getLogger(__name__)

_STUDIO_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
_VERTEX_URL = (
	"https://{region}-aiplatform.googleapis.com/v1/projects/{project}"
	"/locations/{region}/publishers/google/models/{model}:generateContent"
)


def _raise_for_gateway_status(response: httpx.Response) -> None:
	# 429 and 402 are user-visible conditions, not generic failures
	if response.status_code == 429:
		raise GenerationRateLimited()
	if response.status_code == 402:
		raise GenerationQuotaExhausted()
	response.raise_for_status()


def resolve_endpoint(model: str) -> Tuple[str, bool]:
	"""Return the generateContent URL and whether the key travels as ``?key=``."""
	if settings.gemini_provider == "vertex":
		region = settings.vertex_region
		project = settings.vertex_project or "placeholder-project"
		return _VERTEX_URL.format(region=region, project=project, model=model), False
	return _STUDIO_URL.format(model=model), True


def _openrouter_headers() -> Dict[str, str]:
	headers = {
		"Authorization": f"Bearer {settings.openrouter_api_key}",
		"Content-Type": "application/json",
		"HTTP-Referer": settings.openrouter_referer or "",
		"X-Title": settings.openrouter_title or "",
	}
	return {name: value for name, value in headers.items() if value}


class GeminiClient:
	"""Text generation over the Gemini REST API with an optional OpenRouter fallback."""

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
			raise UpstreamGenerationError("Content generation is not configured")
		self.model = model or settings.gemini_model
		default_url, self._key_in_query = resolve_endpoint(self.model)
		self.base_url = base_url or default_url
		self._client = httpx.AsyncClient(timeout=settings.gemini_timeout_seconds, transport=transport)
		self._fallback: Optional[httpx.AsyncClient] = None
		if settings.openrouter_api_key:
			self._fallback = httpx.AsyncClient(timeout=settings.gemini_timeout_seconds, transport=transport)

	def _auth(self) -> Tuple[Dict[str, str], Dict[str, str]]:
		if self._key_in_query:
			return {"key": self.api_key}, {}
		return {}, {"x-goog-api-key": self.api_key}

	async def generate(self, prompt: str, *, system: Optional[str] = None) -> str:
		body: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
		if system:
			body["systemInstruction"] = {"parts": [{"text": system}]}
		params, headers = self._auth()

		failure: Optional[Exception] = None
		try:
			response = await self._client.post(self.base_url, params=params, headers=headers, json=body)
			_raise_for_gateway_status(response)
			return response.json()["candidates"][0]["content"]["parts"][0]["text"]
		except (GenerationRateLimited, GenerationQuotaExhausted) as limited:
			failure = limited
		except httpx.HTTPError as http_err:
			failure = http_err
		except (KeyError, IndexError, TypeError, ValueError):
			failure = UpstreamGenerationError("Unexpected response from the content generator")

		if self._fallback is None:
			if isinstance(failure, UpstreamGenerationError):
				raise failure
			raise UpstreamGenerationError() from failure
		logger.warning("Gemini call failed (%s); trying chat-completions fallback", failure)
		return await self._fallback_generate(prompt, system)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback is not None:
			await self._fallback.aclose()

	async def _fallback_generate(self, prompt: str, system: Optional[str]) -> str:
		messages = [{"role": "system", "content": system}] if system else []
		messages.append({"role": "user", "content": prompt})
		body = {"model": settings.openrouter_model, "messages": messages}
		try:
			response = await self._fallback.post(settings.openrouter_base_url, headers=_openrouter_headers(), json=body)
			_raise_for_gateway_status(response)
			return response.json()["choices"][0]["message"]["content"]
		except UpstreamGenerationError:
			raise
		except httpx.HTTPError as fallback_err:
			raise UpstreamGenerationError() from fallback_err
		except (KeyError, IndexError, TypeError, ValueError) as fallback_err:
			raise UpstreamGenerationError("Unexpected response from the content generator") from fallback_err
