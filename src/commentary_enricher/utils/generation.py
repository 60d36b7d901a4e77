"""Generation client: ChatOpenAI via OpenRouter with backoff and model fallback."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import openai
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from ..config import Settings
from ..models import (
    GenerationError,
    ModelUnavailableError,
    TransientRemoteError,
)
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, create_retry_policy, retry_async

logger = logging.getLogger(__name__)

JSON_RESPONSE_FORMAT = {"type": "json_object"}


@dataclass
class GenerationConfig:
    """Connection and model settings for one generation client."""

    primary_model: str
    fallback_model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: str = "https://openrouter.ai/api/v1"
    temperature: float = 0.4
    timeout: float = 60.0
    app_title: str = "commentary-enricher"

    @classmethod
    def from_settings(cls, config: Settings) -> "GenerationConfig":
        return cls(
            primary_model=config.primary_model,
            fallback_model=config.fallback_model,
            api_key=config.openrouter_api_key,
            base_url=config.llm_base_url,
            temperature=config.llm_temperature,
            timeout=config.llm_timeout,
        )


def create_chat_llm(model: str, json_mode: bool, config: GenerationConfig) -> Any:
    """Create a ChatOpenAI runnable for one model.

    Retries are owned by GenerationClient, so the SDK's own retry loop is off.
    """
    llm = ChatOpenAI(
        model=model,
        api_key=config.api_key,
        base_url=config.base_url,
        temperature=config.temperature,
        timeout=config.timeout,
        max_retries=0,
        default_headers={"X-Title": config.app_title},
    )
    if json_mode:
        return llm.bind(response_format=JSON_RESPONSE_FORMAT)
    return llm


def classify_error(error: BaseException, model: str) -> GenerationError:
    """Map an SDK or transport failure onto the pipeline's error kinds."""
    if isinstance(error, GenerationError):
        return error

    context = {"model": model, "error_type": type(error).__name__}

    # APITimeoutError is a subclass of APIConnectionError
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, openai.APIConnectionError)):
        return TransientRemoteError(f"Timed out or disconnected calling {model}: {error}", context=context)

    status_code = getattr(error, "status_code", None)
    context["status_code"] = status_code
    if status_code == 429:
        return TransientRemoteError(f"Rate limited by {model}: {error}", context=context)
    if status_code == 404:
        return ModelUnavailableError(f"Model {model} not available: {error}", context=context)

    return GenerationError(f"Generation failed on {model}: {error}", context=context)


def response_text(response: Any) -> str:
    """Extract text from an AIMessage, a list of content parts, or a plain string."""
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return "" if content is None else str(content)


class GenerationClient:
    """Remote text generation with bounded retry and one-way model fallback.

    ``current_model`` starts as the primary model. The first "model not found"
    answer switches it to the fallback for the rest of this client's life; other
    client instances are unaffected.
    """

    def __init__(
        self,
        config: GenerationConfig,
        retry_policy: Optional[RetryPolicy] = None,
        rate_limiter: Optional[RateLimiter] = None,
        llm_factory: Optional[Callable[[str, bool], Any]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy()
        self.rate_limiter = rate_limiter
        self.current_model = config.primary_model
        self.call_count = 0

        self._llm_factory = llm_factory or (
            lambda model, json_mode: create_chat_llm(model, json_mode, self.config)
        )
        self._llms: dict[tuple[str, bool], Any] = {}
        self._sleep = sleep

    @classmethod
    def from_settings(cls, config: Settings, driver_name: Optional[str] = None) -> "GenerationClient":
        return cls(
            GenerationConfig.from_settings(config),
            retry_policy=create_retry_policy(config, driver_name),
            rate_limiter=RateLimiter(config.llm_min_interval),
        )

    @property
    def using_fallback(self) -> bool:
        return self.current_model != self.config.primary_model

    async def generate(self, prompt: str, json_mode: bool = False) -> str:
        """Return the model's raw text for ``prompt``.

        Raises:
            ExhaustedRetriesError: transient failures outlasted the retry policy
            GenerationError: any failure that is not worth retrying
        """

        async def operation() -> str:
            return await self._attempt(prompt, json_mode)

        return await retry_async(operation, self.retry_policy, sleep=self._sleep)

    async def _attempt(self, prompt: str, json_mode: bool) -> str:
        model = self.current_model
        try:
            return await self._invoke_once(prompt, json_mode)
        except GenerationError as e:
            if not self.retry_policy.is_model_missing(e) or not self._switch_to_fallback(model):
                raise
            return await self._invoke_once(prompt, json_mode)

    def _switch_to_fallback(self, failed_model: str) -> bool:
        if self.current_model != failed_model:
            # Another worker already switched
            return True

        fallback = self.config.fallback_model
        if not fallback or fallback == failed_model:
            return False

        logger.warning(f"Model {failed_model} not found. Falling back to {fallback} for this run")
        self.current_model = fallback
        return True

    def _get_llm(self, model: str, json_mode: bool) -> Any:
        key = (model, json_mode)
        if key not in self._llms:
            self._llms[key] = self._llm_factory(model, json_mode)
        return self._llms[key]

    async def _invoke_once(self, prompt: str, json_mode: bool) -> str:
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        model = self.current_model
        llm = self._get_llm(model, json_mode)
        self.call_count += 1
        logger.debug(f"Generation call {self.call_count} on {model} ({len(prompt)} chars)")

        try:
            response = await asyncio.wait_for(
                llm.ainvoke([HumanMessage(content=prompt)]), timeout=self.config.timeout
            )
        except Exception as e:
            raise classify_error(e, model) from e

        return response_text(response)
