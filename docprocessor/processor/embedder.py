import asyncio
from collections.abc import Sequence
from functools import partial

from docprocessor.llm.client_base import BaseLlmClient
from docprocessor.llm.models import EmbeddingVector
from docprocessor.logging.logger import Log
from docprocessor.processor.models import Embedding, EmbeddingResult, ExtractionResult
from docprocessor.text.splitter import TokenCounter, split_by_token_limit
from docprocessor.text.token_counter import count_tokens
from docprocessor.utils.batching import batched
from docprocessor.utils.retry import RetryPolicy


class Embedder:
    """Chunk-level embeddings for retrieval.

    Each page is split below ``token_budget`` tokens and every chunk is
    embedded, ``batch_size`` calls at a time. Token usage is what the
    embedding service reports.
    """

    def __init__(
        self,
        llm_client: BaseLlmClient,
        retry_policy: RetryPolicy,
        *,
        token_budget: int = 1500,
        batch_size: int = 20,
        encoding_name: str = "cl100k_base",
        token_counter: TokenCounter | None = None,
    ) -> None:
        self._llm = llm_client
        self._retry = retry_policy
        self._token_budget = token_budget
        self._batch_size = batch_size
        self._count_tokens = token_counter or partial(count_tokens, encoding_name=encoding_name)

    async def embed(self, extraction: ExtractionResult) -> EmbeddingResult:
        pieces: list[tuple[int, int, str]] = []
        for page in extraction.pages:
            chunks = split_by_token_limit(page.read_text(), self._token_budget, self._count_tokens)
            pieces.extend((page.page, index, chunk) for index, chunk in enumerate(chunks))

        vectors = await self.embed_texts([content for _, _, content in pieces])
        embeddings = [
            Embedding(content=content, vector=vector.vector, page=page, chunk_index=index)
            for (page, index, content), vector in zip(pieces, vectors)
        ]
        token_usage = sum(vector.token_usage for vector in vectors)
        Log.info(
            f"Embedded document {extraction.document.id}",
            chunks=len(embeddings),
            tokens=token_usage,
        )
        return EmbeddingResult(embeddings=embeddings, token_usage=token_usage)

    async def embed_texts(self, texts: Sequence[str]) -> list[EmbeddingVector]:
        """One vector per text, in input order."""
        vectors: list[EmbeddingVector] = []
        for batch in batched(texts, self._batch_size):
            vectors.extend(await asyncio.gather(*(self._embed_one(text) for text in batch)))
        return vectors

    async def _embed_one(self, text: str) -> EmbeddingVector:
        return await self._retry.run(lambda: self._llm.embed(text), description="chunk embedding")
