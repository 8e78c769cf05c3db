"""Unit tests for the LLM gateway."""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from core.llm import LLMGateway, LLMRequest, ProviderConfig


def create_mock_client(response: MagicMock = None, error: Exception = None) -> MagicMock:
    """Create a mock httpx.AsyncClient whose post() returns response or raises error."""
    mock_client = MagicMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)

    if error:
        mock_client.post = AsyncMock(side_effect=error)
    else:
        mock_client.post = AsyncMock(return_value=response)

    return mock_client


def create_response(body=None, status_code: int = 200, text: str = "") -> MagicMock:
    """Create a mock provider response with a JSON body."""
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = text
    if body is None:
        mock_response.json.side_effect = ValueError("no json")
    else:
        mock_response.json.return_value = body
    return mock_response


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def gateway() -> LLMGateway:
    """Gateway with a configured openai provider and an unconfigured huggingface one."""
    return LLMGateway(
        providers={
            "openai": ProviderConfig(
                api_url="https://api.openai.test/v1/",
                api_key="sk-test",
                default_model="gpt-3.5-turbo",
                key_name="OPENAI_API_KEY",
            ),
            "huggingface": ProviderConfig(
                api_url="https://router.huggingface.test/v1",
                api_key=None,
                default_model="hf-model",
                key_name="HUGGINGFACE_TOKEN",
            ),
        },
        timeout=5,
    )


@pytest.fixture
def request_body() -> LLMRequest:
    return LLMRequest(messages=[{"role": "user", "content": "Hello"}])


class TestBuildPayload:
    """Tests for _build_payload."""

    def test_uses_provider_default_model(self, gateway, request_body):
        payload = gateway._build_payload(gateway.providers["openai"], request_body)

        assert payload == {"model": "gpt-3.5-turbo", "messages": request_body.messages}

    def test_includes_sampling_parameters_when_set(self, gateway):
        """max_output_tokens maps to max_tokens; an explicit model wins."""
        request = LLMRequest(
            messages=[{"role": "user", "content": "Hi"}],
            temperature=0.2,
            max_output_tokens=50,
            model="gpt-4o-mini",
        )

        payload = gateway._build_payload(gateway.providers["openai"], request)

        assert payload["model"] == "gpt-4o-mini"
        assert payload["temperature"] == 0.2
        assert payload["max_tokens"] == 50

    def test_zero_temperature_is_sent(self, gateway):
        request = LLMRequest(messages=[], temperature=0.0)

        payload = gateway._build_payload(gateway.providers["openai"], request)

        assert payload["temperature"] == 0.0


class TestComplete:
    """Tests for complete."""

    @pytest.mark.asyncio
    async def test_success_returns_first_choice_text(self, gateway, request_body):
        client = create_mock_client(create_response(completion("debug")))

        with patch("core.llm.httpx.AsyncClient", return_value=client):
            result = await gateway.complete("openai", request_body)

        assert result.ok
        assert result.text == "debug"
        assert result.raw == completion("debug")

    @pytest.mark.asyncio
    async def test_posts_to_chat_completions_with_bearer_token(self, gateway, request_body):
        client = create_mock_client(create_response(completion("ok")))

        with patch("core.llm.httpx.AsyncClient", return_value=client):
            await gateway.complete("OpenAI", request_body)

        args, kwargs = client.post.call_args
        assert args[0] == "https://api.openai.test/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["timeout"] == 5

    @pytest.mark.asyncio
    async def test_unknown_provider(self, gateway, request_body):
        with patch("core.llm.httpx.AsyncClient") as mock_client_cls:
            result = await gateway.complete("anthropic", request_body)

        assert result.error.kind == "unsupported_provider"
        mock_client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_key_is_not_configured(self, gateway, request_body):
        with patch("core.llm.httpx.AsyncClient") as mock_client_cls:
            result = await gateway.complete("huggingface", request_body)

        assert result.error.kind == "not_configured"
        assert "HUGGINGFACE_TOKEN" in result.error.message
        mock_client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout(self, gateway, request_body):
        client = create_mock_client(error=httpx.ReadTimeout("timed out"))

        with patch("core.llm.httpx.AsyncClient", return_value=client):
            result = await gateway.complete("openai", request_body)

        assert not result.ok
        assert result.error.kind == "timeout"

    @pytest.mark.asyncio
    async def test_network_error(self, gateway, request_body):
        client = create_mock_client(error=httpx.ConnectError("connection refused"))

        with patch("core.llm.httpx.AsyncClient", return_value=client):
            result = await gateway.complete("openai", request_body)

        assert result.error.kind == "network_error"
        assert "connection refused" in result.error.message

    @pytest.mark.asyncio
    async def test_non_200_carries_provider_error(self, gateway, request_body):
        body = {"error": {"message": "Rate limit exceeded", "type": "rate_limit"}}
        client = create_mock_client(create_response(body, status_code=429))

        with patch("core.llm.httpx.AsyncClient", return_value=client):
            result = await gateway.complete("openai", request_body)

        assert result.error.kind == "provider_error"
        assert result.error.status_code == 429
        assert result.error.message == "Rate limit exceeded"
        assert result.error.provider_error == body["error"]

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, gateway, request_body):
        client = create_mock_client(create_response(None, status_code=500, text="Internal Server Error"))

        with patch("core.llm.httpx.AsyncClient", return_value=client):
            result = await gateway.complete("openai", request_body)

        assert result.error.kind == "provider_error"
        assert result.error.status_code == 500
        assert "500" in result.error.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"choices": []}, {}, {"choices": [{"message": {}}]}])
    async def test_missing_choices_is_empty_response(self, gateway, request_body, body):
        client = create_mock_client(create_response(body))

        with patch("core.llm.httpx.AsyncClient", return_value=client):
            result = await gateway.complete("openai", request_body)

        assert result.error.kind == "empty_response"
