"""Example LLM client adapter.

Deterministic and network-free: useful for local development, tests, and as
a template for new providers. Implement BaseLlmClient and register the
provider in LlmClientFactory.
"""

import hashlib
import json

from docprocessor.llm.client_base import BaseLlmClient
from docprocessor.llm.models import EmbeddingVector, TextGeneration
from docprocessor.text.token_counter import count_tokens


class ExampleClientAdapter(BaseLlmClient):
    """Summaries are the first words of the prompt; vectors derive from a hash."""

    def __init__(self, dimensions: int = 1536, summary_words: int = 40) -> None:
        self._dimensions = dimensions
        self._summary_words = summary_words

    async def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        json_output: bool = False,
    ) -> TextGeneration:
        words = user_prompt.replace('"""', " ").split()
        if json_output:
            tags = sorted({w.strip(".,;:").lower() for w in words if len(w) > 6})[:10]
            text = json.dumps({"tags": tags})
        else:
            text = " ".join(words[-self._summary_words :])
        return TextGeneration(
            text=text,
            input_tokens=count_tokens(system_prompt) + count_tokens(user_prompt),
            output_tokens=count_tokens(text),
        )

    async def embed(self, text: str) -> EmbeddingVector:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        vector = [
            (digest[i % len(digest)] - 128) / 128.0 for i in range(self._dimensions)
        ]
        return EmbeddingVector(vector=vector, token_usage=count_tokens(text))
