"""
Model Router - Selects an AI backend for a chat and falls back across the
declared backend list when it fails.

Backend errors of every kind (timeouts, HTTP/auth/quota failures, missing
configuration) are normalized into a tagged ``AIResult`` and never raised
to the caller.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence

import httpx

from .prompts import build_system_prompt, build_user_prompt
from ..llm.base import LLMMessage, LLMProvider
from ..llm.factory import create_llm_provider
from ..models.chat import BackendId, ChatTopic

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = (
    "I apologize, but I'm currently experiencing technical difficulties. "
    "Please try again in a moment."
)
HEALTH_CHECK_PROMPT = "Hello, this is a health check."


@dataclass
class AIResult:
    """Outcome of a generation attempt."""
    success: bool
    backend: BackendId
    text: str = ""
    error: Optional[str] = None
    token_count: Optional[int] = None
    latency_ms: float = 0.0


@dataclass
class BackendHealth:
    available: bool
    last_checked: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None
    latency_ms: Optional[float] = None


def describe_backend_error(error: Exception) -> str:
    """Short operator-facing reason for a backend failure."""
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        if status_code in (401, 403):
            return f"authentication failed (HTTP {status_code})"
        if status_code == 429:
            return "quota or rate limit exceeded (HTTP 429)"
        return f"HTTP {status_code}"
    if isinstance(error, httpx.TimeoutException):
        return "request timed out"
    if isinstance(error, httpx.HTTPError):
        return f"connection error: {error.__class__.__name__}"
    return str(error) or error.__class__.__name__


class BackendHandler:
    """
    One AI backend in the fallback chain.
    ``provider`` is None when the backend has no credentials configured.
    """

    def __init__(self, backend_id: BackendId, provider: Optional[LLMProvider], timeout: float = 30.0):
        self.backend_id = backend_id
        self.provider = provider
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return self.provider is not None

    async def complete(self, system_prompt: str, user_prompt: str) -> AIResult:
        start_time = time.monotonic()

        def elapsed() -> float:
            return round((time.monotonic() - start_time) * 1000, 2)

        if self.provider is None:
            return AIResult(
                success=False,
                backend=self.backend_id,
                error=f"{self.backend_id.value} API key not configured",
                latency_ms=elapsed(),
            )

        messages = [
            LLMMessage.text("system", system_prompt),
            LLMMessage.text("user", user_prompt),
        ]
        try:
            response = await asyncio.wait_for(
                self.provider.chat_completion(messages),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            error = f"{self.backend_id.value} timed out after {self.timeout}s"
        except Exception as e:
            error = f"{self.backend_id.value}: {describe_backend_error(e)}"
        else:
            return AIResult(
                success=True,
                backend=self.backend_id,
                text=response.content,
                token_count=response.total_tokens,
                latency_ms=elapsed(),
            )

        return AIResult(success=False, backend=self.backend_id, error=error, latency_ms=elapsed())


class SelectionPolicy:
    """Maps a topic set to a preferred backend."""

    def select(self, topics: Sequence[ChatTopic]) -> BackendId:
        raise NotImplementedError


class TopicPreferencePolicy(SelectionPolicy):
    """
    Uses the first topic with a configured preference, otherwise the default
    backend.
    """

    def __init__(self, default: BackendId, preferences: Optional[Mapping[ChatTopic, BackendId]] = None):
        self.default = default
        self.preferences = dict(preferences or {})

    def select(self, topics: Sequence[ChatTopic]) -> BackendId:
        for topic in topics:
            if topic in self.preferences:
                return self.preferences[topic]
        return self.default


class ModelRouter:
    """
    Routes generation requests to AI backends.
    The handler list order is the fallback order.
    """

    def __init__(self, handlers: Sequence[BackendHandler], policy: Optional[SelectionPolicy] = None):
        if not handlers:
            raise ValueError("ModelRouter needs at least one backend handler")
        self.handlers: List[BackendHandler] = list(handlers)
        self._by_id: Dict[BackendId, BackendHandler] = {h.backend_id: h for h in self.handlers}
        self.policy = policy or TopicPreferencePolicy(self.handlers[0].backend_id)

    @property
    def fallback_order(self) -> List[BackendId]:
        return [h.backend_id for h in self.handlers]

    def select_backend(self, topics: Sequence[ChatTopic]) -> BackendId:
        choice = self.policy.select(topics)
        if choice not in self._by_id:
            logger.warning(f"Selected backend {choice} is not registered, using {self.handlers[0].backend_id.value}")
            return self.handlers[0].backend_id
        return choice

    def _attempt_order(self, primary: BackendId) -> List[BackendHandler]:
        return [self._by_id[primary]] + [h for h in self.handlers if h.backend_id != primary]

    async def generate(
        self,
        prompt: str,
        topics: Sequence[ChatTopic],
        preferred_backend: Optional[BackendId] = None,
        context: Optional[str] = None,
    ) -> AIResult:
        """
        Generate a reply, trying the preferred (or selected) backend first and
        then the remaining backends in declared order.

        Args:
            prompt: The user's message
            topics: Chat topics, used for the system prompt and backend choice
            preferred_backend: Optional explicit first choice
            context: Optional session memory context block

        Returns:
            AIResult: the first success, or a failure carrying FALLBACK_MESSAGE
            and the last backend error
        """
        start_time = time.monotonic()
        last_result: Optional[AIResult] = None

        try:
            system_prompt = build_system_prompt(topics)
            user_prompt = build_user_prompt(prompt, context)
            if preferred_backend in self._by_id:
                primary = preferred_backend
            else:
                primary = self.select_backend(topics)

            logger.info(
                f"Attempting to use {primary.value} for prompt: {prompt[:50]}...",
                extra={"extra_fields": {"backend": primary.value, "has_context": bool(context)}}
            )

            for handler in self._attempt_order(primary):
                result = await handler.complete(system_prompt, user_prompt)
                if result.success:
                    logger.info(
                        f"{result.backend.value} responded successfully in {result.latency_ms}ms",
                        extra={"extra_fields": {
                            "backend": result.backend.value,
                            "latency_ms": result.latency_ms,
                            "token_count": result.token_count,
                        }}
                    )
                    return result
                logger.warning(f"Backend {handler.backend_id.value} failed: {result.error}")
                last_result = result
        except Exception as e:
            logger.error(f"Unexpected error while generating AI response: {e}", exc_info=True)
            last_result = AIResult(
                success=False,
                backend=last_result.backend if last_result else self.handlers[0].backend_id,
                error=f"router error: {e}",
            )

        logger.error(
            "All AI backends failed",
            extra={"extra_fields": {"last_error": last_result.error if last_result else None}}
        )
        return AIResult(
            success=False,
            backend=last_result.backend if last_result else self.handlers[0].backend_id,
            text=FALLBACK_MESSAGE,
            error=(last_result.error if last_result else None) or "AI model unavailable",
            latency_ms=round((time.monotonic() - start_time) * 1000, 2),
        )

    async def health_check(self) -> Dict[BackendId, BackendHealth]:
        """Probe every backend with a benign prompt. Not for the hot path."""
        system_prompt = build_system_prompt([ChatTopic.EDUCATION])
        results = await asyncio.gather(
            *(h.complete(system_prompt, HEALTH_CHECK_PROMPT) for h in self.handlers)
        )
        return {
            result.backend: BackendHealth(
                available=result.success,
                error=result.error,
                latency_ms=result.latency_ms,
            )
            for result in results
        }


def build_backend_handlers(config) -> List[BackendHandler]:
    """
    Build the fallback chain from settings, in BackendId declaration order.
    Backends without credentials are kept as unconfigured handlers.
    """
    common = {
        "timeout": config.backend_timeout_seconds,
        "default_max_tokens": config.ai_max_tokens,
        "default_temperature": config.ai_temperature,
    }
    providers = {
        BackendId.GPT4: create_llm_provider(
            "openai", config.openai_api_key, config.openai_model, config.openai_base_url,
            provider_name="openai", **common,
        ),
        BackendId.CLAUDE3: create_llm_provider(
            "anthropic", config.anthropic_api_key, config.anthropic_model, config.anthropic_base_url,
            **common,
        ),
        BackendId.MISTRAL: create_llm_provider(
            "openai", config.mistral_api_key, config.mistral_model, config.mistral_base_url,
            provider_name="mistral", **common,
        ),
        # Composio has no default endpoint; both key and URL are required
        BackendId.COMPOSIO: create_llm_provider(
            "openai",
            config.composio_api_key if config.composio_base_url else None,
            config.composio_model,
            config.composio_base_url,
            provider_name="composio", **common,
        ),
    }
    return [
        BackendHandler(backend_id, providers[backend_id], timeout=config.backend_timeout_seconds)
        for backend_id in BackendId
    ]


def build_selection_policy(config) -> TopicPreferencePolicy:
    preferences = {
        ChatTopic(topic): BackendId(backend)
        for topic, backend in config.topic_backend_preferences.items()
    }
    return TopicPreferencePolicy(BackendId(config.default_backend), preferences)


# Global model router instance
_model_router: Optional[ModelRouter] = None


def init_model_router(router: ModelRouter) -> ModelRouter:
    global _model_router
    _model_router = router
    return _model_router


def get_model_router() -> ModelRouter:
    """
    Raises:
        RuntimeError: If the router has not been initialized
    """
    if _model_router is None:
        raise RuntimeError("Model router not initialized. Call init_model_router() first.")
    return _model_router
