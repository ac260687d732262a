"""Chat completion provider backed by the OpenAI API."""

from abc import ABC, abstractmethod
from typing import Callable, List, Literal, Optional
import logging

from openai import AsyncOpenAI, APIConnectionError, APIStatusError
from pydantic import BaseModel, ConfigDict

from note_assistant.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class CompletionParams(BaseModel):
    model: str
    max_tokens: int
    temperature: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionParams":
        return cls(
            model=settings.openai_model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )


class CompletionError(Exception):
    """Base class for every failure of a completion request."""


class MissingAPIKeyError(CompletionError):
    def __init__(self):
        super().__init__(
            "OpenAI API key is not set. Please configure it in the settings."
        )


class ProviderError(CompletionError):
    """Transport failure or an error reported by the API."""


class MalformedResponseError(CompletionError):
    """Successful status but no message content in the body."""


class CompletionProvider(ABC):
    @abstractmethod
    async def complete(self, messages: List[Message], params: CompletionParams) -> str:
        """Send the conversation and return the assistant's reply text."""
        ...


def _error_message(body) -> Optional[str]:
    """Pull ``error.message`` out of an API error body if present."""
    if not isinstance(body, dict):
        return None
    error = body.get("error", body)
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return error
    return None


class OpenAIService(CompletionProvider):
    """Completion provider using the OpenAI chat completions endpoint.

    Credentials are read from settings on every call, so a key saved
    through the settings API takes effect for the next question.
    """

    def __init__(
        self,
        settings_getter: Callable[[], Settings] = get_settings,
        client_factory: Optional[Callable[..., AsyncOpenAI]] = None,
    ):
        self._settings_getter = settings_getter
        self._client_factory = client_factory or AsyncOpenAI

    def _client(self, settings: Settings) -> AsyncOpenAI:
        # Configure client with optional gateway base URL
        client_config = {"api_key": settings.openai_api_key}
        if settings.openai_base_url:
            client_config["base_url"] = settings.openai_base_url
        return self._client_factory(**client_config)

    async def complete(self, messages: List[Message], params: CompletionParams) -> str:
        settings = self._settings_getter()
        if not settings.openai_api_key:
            raise MissingAPIKeyError()

        client = self._client(settings)
        logger.info(
            "Requesting completion: model=%s messages=%d max_tokens=%d",
            params.model, len(messages), params.max_tokens,
        )
        try:
            response = await client.chat.completions.create(
                messages=[m.model_dump() for m in messages],
                model=params.model,
                max_tokens=params.max_tokens,
                temperature=params.temperature,
            )
        except APIStatusError as e:
            detail = _error_message(e.body) or e.message
            logger.error("Completion request failed with status %s: %s", e.status_code, detail)
            raise ProviderError(f"OpenAI API Error: {detail}") from e
        except APIConnectionError as e:
            logger.error("Completion request could not reach the API: %s", str(e))
            raise ProviderError(f"Connection error: {e}") from e
        finally:
            await client.close()

        # Some gateways answer 200 with an error object instead of choices
        body_error = getattr(response, "error", None)
        if body_error:
            detail = _error_message({"error": body_error}) or str(body_error)
            raise ProviderError(f"OpenAI API Error: {detail}")

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise MalformedResponseError("Unexpected response from OpenAI: no choices returned") from e
        if content is None:
            raise MalformedResponseError("Unexpected response from OpenAI: empty message content")

        return content.strip()
