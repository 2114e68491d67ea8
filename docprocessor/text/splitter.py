"""Token-bounded text splitting.

The text is cut into ``n`` contiguous parts of (nearly) equal character
length; ``n`` grows until every part is strictly below the token limit.
Cuts are length based, so they may fall inside a word. Joining the parts
always gives back the input.
"""

import math
from collections.abc import Callable

from docprocessor.text.token_counter import count_tokens

TokenCounter = Callable[[str], int]


def split_by_token_limit(
    text: str,
    token_limit: int,
    counter: TokenCounter = count_tokens,
) -> list[str]:
    """Split ``text`` into ordered parts with ``counter(part) < token_limit``.

    Raises:
        ValueError: if ``token_limit`` is not positive, or if the limit cannot
            be met even with one character per part.
    """
    if token_limit <= 0:
        raise ValueError(f"token_limit must be positive, got {token_limit}")
    if not text:
        return []

    total = counter(text)
    if total < token_limit:
        return [text]

    # Lower bound on the part count; splitting rarely reduces the token total.
    num_parts = max(2, math.ceil((total + 1) / token_limit))
    while num_parts <= len(text):
        parts = split_equally(text, num_parts)
        if all(counter(part) < token_limit for part in parts):
            return parts
        num_parts += 1

    raise ValueError(
        f"Cannot split text of {len(text)} chars below {token_limit} tokens per part"
    )


def split_equally(text: str, num_parts: int) -> list[str]:
    """Cut ``text`` into ``num_parts`` contiguous slices whose lengths differ by at most 1."""
    if num_parts <= 0:
        raise ValueError(f"num_parts must be positive, got {num_parts}")
    base, remainder = divmod(len(text), num_parts)
    parts: list[str] = []
    start = 0
    for index in range(num_parts):
        end = start + base + (1 if index < remainder else 0)
        parts.append(text[start:end])
        start = end
    return parts
