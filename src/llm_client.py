"""Generative-text client with model fallback chain and rate-limit backoff."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

import openai

from config import LLMConfig, config
from errors import ExhaustedError, ProviderError
from logging_utils import logger
from metrics import AgentMetrics

RATE_LIMIT_SIGNATURES = ("429", "too many requests", "quota")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class Completion:
    text: str
    model: str


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for provider throttling: RateLimitError, HTTP 429, or a quota message."""
    if isinstance(exc, openai.RateLimitError):
        return True
    if getattr(exc, "status_code", None) == 429:
        return True
    message = str(exc).lower()
    return any(signature in message for signature in RATE_LIMIT_SIGNATURES)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapped around model output."""
    return text.replace("```json", "").replace("```", "").strip()


class LLMClient:
    """
    Wraps chat completions behind an ordered model chain.

    Each model gets up to ``max_retries`` attempts. Rate-limit failures wait
    ``base_delay * attempt`` seconds before retrying the same model; once a
    model's attempts are spent the next model is tried. Any other failure is
    raised immediately without consulting the rest of the chain.
    """

    def __init__(
        self,
        models: Optional[List[str]] = None,
        client: Any = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        temperature: Optional[float] = None,
        sleep: SleepFn = asyncio.sleep,
        settings: Optional[LLMConfig] = None,
    ) -> None:
        self.settings = settings or config.llm
        self.models = list(models or self.settings.models)
        self.max_retries = max_retries if max_retries is not None else self.settings.max_retries
        self.base_delay = base_delay if base_delay is not None else self.settings.base_delay
        self.temperature = temperature if temperature is not None else self.settings.temperature
        self._sleep = sleep
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            # Retries are governed here, not by the SDK.
            self._client = openai.AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                max_retries=0,
            )
        return self._client

    async def _call_model(self, model: str, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
        )
        if not response.choices:
            raise ProviderError("llm", f"No choices returned from {model}")
        return response.choices[0].message.content or ""

    async def complete(self, prompt: str, metrics: Optional[AgentMetrics] = None) -> Completion:
        correlation_id = metrics.correlation_id if metrics else None

        for model in self.models:
            for attempt in range(1, self.max_retries + 1):
                if metrics:
                    metrics.record_model_attempt(model)
                logger.debug(
                    "LLM attempt",
                    extra={"extra": {"correlation_id": correlation_id, "model": model, "attempt": attempt}},
                )
                try:
                    text = await self._call_model(model, prompt)
                except Exception as exc:
                    if not is_rate_limit_error(exc):
                        logger.error(
                            "LLM call failed",
                            extra={"extra": {"correlation_id": correlation_id, "model": model, "error": str(exc)}},
                        )
                        raise
                    if attempt < self.max_retries:
                        delay = self.base_delay * attempt
                        if metrics:
                            metrics.llm_retries += 1
                        logger.warning(
                            "Rate limited, backing off",
                            extra={
                                "extra": {
                                    "correlation_id": correlation_id,
                                    "model": model,
                                    "attempt": attempt,
                                    "delay_s": delay,
                                }
                            },
                        )
                        await self._sleep(delay)
                        continue
                    logger.warning(
                        "Model quota exhausted, trying next model",
                        extra={"extra": {"correlation_id": correlation_id, "model": model}},
                    )
                    break

                if metrics:
                    metrics.model_used = model
                return Completion(text=text, model=model)

        raise ExhaustedError(self.models)
