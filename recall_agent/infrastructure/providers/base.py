from typing import List, Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into a fixed-length vector"""

    async def embed(self, text: str) -> List[float]:
        ...


@runtime_checkable
class GenerationProvider(Protocol):
    """Turns a prompt into generated text, without streaming"""

    async def generate(self, prompt: str) -> str:
        ...
