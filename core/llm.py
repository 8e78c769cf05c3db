"""
Language-model gateway.

Stateless request/response client for OpenAI-compatible chat completion
providers. Transport and provider failures never raise: they come back as
an ``LLMResult`` carrying a typed ``LLMError``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Endpoint and credentials for one chat completion provider."""

    api_url: str
    api_key: Optional[str]
    default_model: str
    key_name: str  # settings name reported when the key is missing


@dataclass
class LLMRequest:
    """Chat-style request sent to a provider."""

    messages: List[Dict[str, str]]
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    model: Optional[str] = None


@dataclass
class LLMError:
    """Typed gateway failure.

    kind is one of: not_configured, unsupported_provider, provider_error,
    network_error, timeout, empty_response.
    """

    kind: str
    message: str
    status_code: Optional[int] = None
    provider_error: Optional[Any] = None


@dataclass
class LLMResult:
    """Either the completion text or an error."""

    text: Optional[str] = None
    error: Optional[LLMError] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None


def default_providers() -> Dict[str, ProviderConfig]:
    """Providers available from the current settings."""
    return {
        "openai": ProviderConfig(
            api_url=settings.OPENAI_API_URL,
            api_key=settings.OPENAI_API_KEY,
            default_model=settings.OPENAI_DEFAULT_MODEL,
            key_name="OPENAI_API_KEY",
        ),
        "huggingface": ProviderConfig(
            api_url=settings.HF_API_URL,
            api_key=settings.HUGGINGFACE_TOKEN,
            default_model=settings.HF_DEFAULT_MODEL,
            key_name="HUGGINGFACE_TOKEN",
        ),
    }


class LLMGateway:
    def __init__(
        self,
        providers: Optional[Dict[str, ProviderConfig]] = None,
        timeout: Optional[float] = None,
    ):
        self.providers = providers if providers is not None else default_providers()
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT

    def _build_payload(self, provider: ProviderConfig, request: LLMRequest) -> Dict[str, Any]:
        """Build an OpenAI-compatible chat completion body."""
        payload: Dict[str, Any] = {
            "model": request.model or provider.default_model,
            "messages": request.messages,
        }
        if request.max_output_tokens is not None:
            payload["max_tokens"] = request.max_output_tokens
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        return payload

    async def complete(self, provider_name: str, request: LLMRequest) -> LLMResult:
        """
        Send a chat completion request to a provider.

        Args:
            provider_name: Provider key, e.g. "openai" (case-insensitive)
            request: Messages and sampling parameters

        Returns:
            LLMResult with the first choice's message content, or an error
        """
        name = provider_name.lower()
        provider = self.providers.get(name)
        if provider is None:
            logger.warning(f"Provider {provider_name} not supported or configured.")
            return LLMResult(
                error=LLMError(
                    kind="unsupported_provider",
                    message=f"Provider {provider_name} not supported or configured.",
                )
            )

        if not provider.api_key:
            logger.error(f"{name} API key not configured.")
            return LLMResult(
                error=LLMError(
                    kind="not_configured",
                    message=f"{provider.key_name} is not configured on the server.",
                )
            )

        url = f"{provider.api_url.rstrip('/')}/chat/completions"
        headers = {
            "Authorization": f"Bearer {provider.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url,
                    json=self._build_payload(provider, request),
                    headers=headers,
                    timeout=self.timeout,
                )
        except httpx.TimeoutException as e:
            logger.error(f"{name} request timed out: {e}")
            return LLMResult(error=LLMError(kind="timeout", message="The model is taking too long to respond."))
        except httpx.HTTPError as e:
            logger.error(f"Network error calling {name}: {e}")
            return LLMResult(
                error=LLMError(kind="network_error", message=str(e) or f"Network error calling {name}")
            )

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            provider_error = data.get("error") if isinstance(data, dict) else None
            logger.error(f"{name} API error {response.status_code}: {provider_error or response.text}")
            message = (
                provider_error.get("message")
                if isinstance(provider_error, dict) and provider_error.get("message")
                else f"{name} API request failed with status {response.status_code}"
            )
            return LLMResult(
                error=LLMError(
                    kind="provider_error",
                    message=message,
                    status_code=response.status_code,
                    provider_error=provider_error,
                ),
                raw=data if isinstance(data, dict) else {},
            )

        choices = data.get("choices") if isinstance(data, dict) else None
        content = None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message") or {}
            content = message.get("content")
        if not isinstance(content, str):
            logger.error(f"{name} returned no completion content")
            return LLMResult(
                error=LLMError(kind="empty_response", message=f"{name} returned no choices."),
                raw=data if isinstance(data, dict) else {},
            )

        return LLMResult(text=content, raw=data)


llm_gateway = LLMGateway()
