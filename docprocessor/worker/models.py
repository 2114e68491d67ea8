from dataclasses import dataclass
from enum import Enum

from docprocessor.config.settings import Settings


class OutcomeStatus(str, Enum):
    """How a document left the pipeline in this run."""

    FINISHED = "finished"
    FAILED = "failed"
    REJECTED = "rejected"
    EXTRACTION_FAILED = "extraction_failed"


@dataclass(frozen=True)
class DocumentOutcome:
    """How one document's run ended, with the tokens it consumed."""

    document_id: int
    status: OutcomeStatus
    error: str | None = None
    embedding_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class RunReport:
    """Totals over one processing run."""

    found: int = 0
    attempted: int = 0
    finished: int = 0
    failed: int = 0
    rejected: int = 0
    extraction_failed: int = 0
    embedding_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    def record(self, outcome: DocumentOutcome) -> None:
        self.attempted += 1
        if outcome.status is OutcomeStatus.FINISHED:
            self.finished += 1
        elif outcome.status is OutcomeStatus.FAILED:
            self.failed += 1
        elif outcome.status is OutcomeStatus.REJECTED:
            self.rejected += 1
        else:
            self.extraction_failed += 1
        self.embedding_tokens += outcome.embedding_tokens
        self.input_tokens += outcome.input_tokens
        self.output_tokens += outcome.output_tokens

    def estimated_cost(self, settings: Settings) -> float:
        """Cost in the price settings' currency, from per-million-token prices."""
        return (
            self.input_tokens * settings.cost_per_million_input_tokens
            + self.output_tokens * settings.cost_per_million_output_tokens
            + self.embedding_tokens * settings.cost_per_million_embedding_tokens
        ) / 1_000_000
