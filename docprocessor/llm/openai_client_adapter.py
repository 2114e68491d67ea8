import httpx
import openai

from docprocessor.llm.client_base import BaseLlmClient
from docprocessor.llm.exceptions import LlmNetworkError, LlmResponseError
from docprocessor.llm.models import EmbeddingVector, TextGeneration


class OpenAIClientAdapter(BaseLlmClient):
    """Text generation and embeddings via an OpenAI-compatible API.

    The SDK's own retries are disabled; callers wrap each call in
    ``RetryPolicy`` instead.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        embedding_model: str,
        timeout_seconds: int,
        base_url: str | None = None,
        temperature: float = 0.0,
    ) -> None:
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
            max_retries=0,
        )
        self._model = model
        self._embedding_model = embedding_model
        self._temperature = temperature

    async def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        json_output: bool = False,
    ) -> TextGeneration:
        try:
            if json_output:
                response = await self._client.chat.completions.create(
                    model=self._model,
                    temperature=self._temperature,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                )
            else:
                response = await self._client.chat.completions.create(
                    model=self._model,
                    temperature=self._temperature,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise LlmNetworkError(f"LLM provider network error: {exc}") from exc
        except openai.APIError as exc:
            raise LlmNetworkError(f"LLM provider API error: {exc}") from exc

        if not response.choices:
            raise LlmResponseError("LLM returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise LlmResponseError("LLM returned empty response")
        usage = response.usage
        return TextGeneration(
            text=content,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    async def embed(self, text: str) -> EmbeddingVector:
        try:
            response = await self._client.embeddings.create(
                model=self._embedding_model,
                input=text,
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise LlmNetworkError(f"Embedding provider network error: {exc}") from exc
        except openai.APIError as exc:
            raise LlmNetworkError(f"Embedding provider API error: {exc}") from exc

        if not response.data:
            raise LlmResponseError("Embedding provider returned no data")
        return EmbeddingVector(
            vector=list(response.data[0].embedding),
            token_usage=response.usage.total_tokens if response.usage else 0,
        )
