from dataclasses import dataclass, field


@dataclass(frozen=True)
class TextGeneration:
    """Generated text plus the token usage reported for the call."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class EmbeddingVector:
    """One embedding vector plus the token usage reported for the call."""

    vector: list[float] = field(default_factory=list)
    token_usage: int = 0
