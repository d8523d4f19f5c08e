"""Shared tokenizer for lexical indexing, querying and excerpt anchoring."""
import re
from typing import List

_SEPARATORS = re.compile(r"[^a-z0-9\s\-]")


def tokenize(text: str) -> List[str]:
    """
    Normalize text to lowercase alphanumeric (plus hyphen) tokens.

    Any other character acts as a separator; runs of separators collapse and
    empty tokens are dropped.

    Args:
        text: Arbitrary input text

    Returns:
        Ordered list of tokens
    """
    if not text:
        return []
    return _SEPARATORS.sub(" ", text.lower()).split()
