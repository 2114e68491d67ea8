"""Document summaries with recursive map-reduce for oversized texts.

A text below the token budget is summarized with one call. Larger texts are
split into parts below the budget, every part is summarized (in concurrent
waves of ``batch_size`` calls) and the joined part summaries replace the
text. This repeats until the text fits, then the final summary is generated.
Tags and the summary embedding are derived from the final summary.
"""

import asyncio
import json
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from docprocessor.llm.client_base import BaseLlmClient
from docprocessor.llm.exceptions import LlmResponseError
from docprocessor.llm.models import TextGeneration
from docprocessor.llm.prompt_loader import load_prompt
from docprocessor.logging.logger import Log
from docprocessor.processor.exceptions import SummarizationNotConvergedError
from docprocessor.processor.models import ExtractionResult, SummarizeResult
from docprocessor.text.splitter import TokenCounter, split_by_token_limit
from docprocessor.text.token_counter import count_tokens
from docprocessor.utils.batching import batched
from docprocessor.utils.retry import RetryPolicy


@dataclass
class TokenUsage:
    """Running input/output totals over every generation call of one document."""

    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, generation: TextGeneration) -> None:
        self.input_tokens += generation.input_tokens
        self.output_tokens += generation.output_tokens


def parse_tags(raw: str, max_tags: int) -> list[str]:
    """Read ``{"tags": [...]}``; duplicates and blanks are dropped, order kept.

    Raises:
        LlmResponseError: if the answer is not such an object.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LlmResponseError(f"Tags answer is not JSON: {exc}") from exc
    tags = payload.get("tags") if isinstance(payload, dict) else None
    if not isinstance(tags, list):
        raise LlmResponseError("Tags answer has no 'tags' list")

    unique: list[str] = []
    for tag in tags:
        if isinstance(tag, str) and tag.strip() and tag.strip() not in unique:
            unique.append(tag.strip())
    return unique[:max_tags]


class Summarizer:
    """Summary, tags and summary embedding for an extracted document."""

    def __init__(
        self,
        llm_client: BaseLlmClient,
        retry_policy: RetryPolicy,
        *,
        token_budget: int = 15000,
        batch_size: int = 10,
        max_levels: int = 8,
        max_tags: int = 10,
        max_words: int = 100,
        encoding_name: str = "cl100k_base",
        token_counter: TokenCounter | None = None,
        prompt_dir: Path | None = None,
    ) -> None:
        self._llm = llm_client
        self._retry = retry_policy
        self._token_budget = token_budget
        self._batch_size = batch_size
        self._max_levels = max_levels
        self._max_tags = max_tags
        self._count_tokens = token_counter or partial(count_tokens, encoding_name=encoding_name)
        self._summary_system = load_prompt("summary_system", prompt_dir).format(
            max_words=max_words
        )
        self._summary_user = load_prompt("summary_user", prompt_dir)
        self._tags_system = load_prompt("tags_system", prompt_dir).format(max_tags=max_tags)
        self._tags_user = load_prompt("tags_user", prompt_dir)
        self._max_words = max_words

    async def summarize(self, extraction: ExtractionResult) -> SummarizeResult:
        document_id = extraction.document.id
        text = "\n\n".join(page.read_text() for page in extraction.pages)
        usage = TokenUsage()

        summary = await self.summarize_text(text, usage, label=f"document {document_id}")
        tags = await self._generate_tags(summary, usage)
        embedding = await self._retry.run(
            lambda: self._llm.embed(summary),
            description=f"summary embedding of document {document_id}",
        )
        return SummarizeResult(
            summary=summary,
            tags=tags,
            embedding=embedding.vector,
            embedding_tokens=embedding.token_usage,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )

    async def summarize_text(self, text: str, usage: TokenUsage, label: str = "text") -> str:
        """Reduce ``text`` until it fits the budget, then summarize it once.

        Raises:
            SummarizationNotConvergedError: after ``max_levels`` reductions, or
                when a reduction does not shrink the text.
        """
        tokens = self._count_tokens(text)
        level = 0
        while tokens >= self._token_budget:
            if level >= self._max_levels:
                raise SummarizationNotConvergedError(
                    f"Summary of {label} failed to converge after {level} levels"
                )
            parts = split_by_token_limit(text, self._token_budget, self._count_tokens)
            Log.info(
                f"Reducing {label}",
                level=level + 1,
                tokens=tokens,
                parts=len(parts),
            )
            summaries: list[str] = []
            for batch in batched(parts, self._batch_size):
                summaries.extend(
                    await asyncio.gather(*(self._generate_summary(part, usage) for part in batch))
                )
            reduced = "\n\n".join(summaries)
            reduced_tokens = self._count_tokens(reduced)
            if reduced_tokens >= tokens:
                raise SummarizationNotConvergedError(
                    f"Summary of {label} stopped shrinking at level {level + 1} "
                    f"({tokens} -> {reduced_tokens} tokens)"
                )
            text, tokens = reduced, reduced_tokens
            level += 1

        return await self._generate_summary(text, usage)

    async def _generate_summary(self, text: str, usage: TokenUsage) -> str:
        async def operation() -> str:
            generation = await self._llm.generate(
                system_prompt=self._summary_system,
                user_prompt=self._summary_user.format(max_words=self._max_words, document=text),
            )
            usage.add(generation)
            return generation.text.strip()

        return await self._retry.run(operation, description="summary generation")

    async def _generate_tags(self, summary: str, usage: TokenUsage) -> list[str]:
        async def operation() -> list[str]:
            generation = await self._llm.generate(
                system_prompt=self._tags_system,
                user_prompt=self._tags_user.format(document=summary),
                json_output=True,
            )
            usage.add(generation)
            return parse_tags(generation.text, self._max_tags)

        return await self._retry.run(operation, description="tag generation")
