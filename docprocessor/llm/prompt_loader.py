from pathlib import Path

from docprocessor.llm.exceptions import LlmError

_DEFAULT_PROMPT_DIR = Path(__file__).parent / "prompts"


def load_prompt(name: str, directory: Path | None = None) -> str:
    """Load ``<name>.txt`` from the prompt directory.

    Raises:
        LlmError: if the file cannot be read.
    """
    path = (directory or _DEFAULT_PROMPT_DIR) / f"{name}.txt"
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise LlmError(f"Failed to load prompt '{name}': {exc}") from exc
