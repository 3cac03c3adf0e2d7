"""Shared utilities for the classifier module."""


def tokenize(text: str, min_length: int) -> list[str]:
    """
    Split text on whitespace into lower-cased tokens longer than min_length.

    Args:
        text: The text to split
        min_length: Tokens of this length or shorter are dropped

    Returns:
        Tokens in their original order, repeats included
    """
    return [token for token in text.lower().split() if len(token) > min_length]


def contains_any(value: str, fragments) -> bool:
    """Check if value contains any non-empty fragment (case-insensitive)."""
    value = value.lower()
    return any(fragment and fragment.lower() in value for fragment in fragments)
