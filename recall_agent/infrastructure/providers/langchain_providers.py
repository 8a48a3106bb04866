"""
LangChain-backed provider adapters.

Any ``langchain_core`` chat model or embeddings implementation can be
wrapped here; the default factories build the Gemini backends.
"""

import asyncio
import time
from typing import Any, List

import structlog
from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

from recall_agent.domain.models.errors import ProviderError
from recall_agent.infrastructure.config.settings import Settings
from recall_agent.infrastructure.observability.logging import metrics, turn_logger

logger = structlog.get_logger(__name__)


async def _bounded_call(provider: str, operation: str, timeout: float, coro) -> Any:
    """Await a backend call under a timeout, mapping every failure to ProviderError"""

    start = time.monotonic()
    try:
        result = await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError as e:
        duration_ms = (time.monotonic() - start) * 1000
        turn_logger.log_provider_call(provider, operation, duration_ms, success=False, error="timeout")
        metrics.increment_counter("provider.failures", tags={"provider": provider, "reason": "timeout"})
        raise ProviderError(provider, f"{operation} timed out after {timeout}s", cause=e) from e
    except ProviderError:
        raise
    except Exception as e:
        duration_ms = (time.monotonic() - start) * 1000
        turn_logger.log_provider_call(provider, operation, duration_ms, success=False, error=str(e))
        metrics.increment_counter("provider.failures", tags={"provider": provider, "reason": "error"})
        raise ProviderError(provider, f"{operation} failed: {e}", cause=e) from e

    duration_ms = (time.monotonic() - start) * 1000
    turn_logger.log_provider_call(provider, operation, duration_ms)
    metrics.record_latency(f"{provider}.{operation}", duration_ms)
    return result


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    # Multi-part content: keep only the text blocks
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class LangChainEmbeddingProvider:
    """EmbeddingProvider backed by a LangChain Embeddings model"""

    name = "embedding"

    def __init__(self, embeddings: Embeddings, timeout: float = 30.0):
        self.embeddings = embeddings
        self.timeout = timeout

    async def embed(self, text: str) -> List[float]:
        vector = await _bounded_call(self.name, "embed", self.timeout, self.embeddings.aembed_query(text))
        if not vector:
            raise ProviderError(self.name, "embed returned an empty vector")
        return [float(x) for x in vector]


class LangChainGenerationProvider:
    """GenerationProvider backed by a LangChain chat model"""

    name = "generation"

    def __init__(self, chat_model: BaseChatModel, timeout: float = 30.0):
        self.chat_model = chat_model
        self.timeout = timeout

    async def generate(self, prompt: str) -> str:
        message = await _bounded_call(self.name, "generate", self.timeout, self.chat_model.ainvoke(prompt))
        return _message_text(message)


def build_gemini_providers(settings: Settings):
    """Create the default Gemini embedding and generation providers"""

    from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings

    chat_model = ChatGoogleGenerativeAI(
        model=settings.generation_model,
        google_api_key=settings.google_api_key,
    )
    embeddings = GoogleGenerativeAIEmbeddings(
        model=settings.embedding_model,
        google_api_key=settings.google_api_key,
    )

    logger.info(
        "Gemini providers configured",
        generation_model=settings.generation_model,
        embedding_model=settings.embedding_model,
    )

    return (
        LangChainEmbeddingProvider(embeddings, timeout=settings.provider_timeout_seconds),
        LangChainGenerationProvider(chat_model, timeout=settings.provider_timeout_seconds),
    )
