from .base import EmbeddingProvider, GenerationProvider
from .langchain_providers import (
    LangChainEmbeddingProvider,
    LangChainGenerationProvider,
    build_gemini_providers,
)

__all__ = [
    "EmbeddingProvider",
    "GenerationProvider",
    "LangChainEmbeddingProvider",
    "LangChainGenerationProvider",
    "build_gemini_providers",
]
