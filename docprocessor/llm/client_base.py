from abc import ABC, abstractmethod

from docprocessor.llm.models import EmbeddingVector, TextGeneration


class BaseLlmClient(ABC):
    """Contract for text-generation and embedding providers."""

    @abstractmethod
    async def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        json_output: bool = False,
    ) -> TextGeneration:
        """Return generated text with input/output token counts."""

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingVector:
        """Return a fixed-dimension vector for ``text``."""
