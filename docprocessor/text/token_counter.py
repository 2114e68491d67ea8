from functools import lru_cache

import tiktoken

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=8)
def _encoding(name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(name)


def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    """Number of model tokens in ``text`` for the given tiktoken encoding."""
    if not text:
        return 0
    # Special-token markers occurring in document text are counted as plain text.
    return len(_encoding(encoding_name).encode(text, disallowed_special=()))
