"""Custom exception types and error handling utilities for sortbox."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger("sortbox.errors")


class ErrorCode(Enum):
    """Error codes for classification and its collaborators."""

    # Classification errors
    NO_CANDIDATES = "no_candidates"

    # Configuration errors
    CONFIG_INVALID = "config_invalid"
    CONFIG_MISSING = "config_missing"

    # Import/export errors
    IMPORT_INVALID = "import_invalid"


@dataclass
class SortboxError(Exception):
    """Base exception for sortbox with structured error information."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f" ({details_str})")
        if self.cause:
            parts.append(f" caused by: {self.cause}")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }


@dataclass
class NoCandidatesError(SortboxError):
    """Classification was requested without any candidate buckets."""

    code: ErrorCode = ErrorCode.NO_CANDIDATES
    message: str = "At least one candidate bucket is required"


class ConfigError(SortboxError):
    """Configuration errors."""

    pass


class ValidationError(SortboxError):
    """Data validation errors."""

    pass


def validate_confidence(confidence: float, context: str = "") -> float:
    """
    Validate and clamp confidence value to [0.0, 1.0] range.

    Args:
        confidence: The confidence value to validate
        context: Optional context for error messages

    Returns:
        Clamped confidence value

    Logs a warning if the value was out of range.
    """
    if confidence < 0.0 or confidence > 1.0:
        logger.warning(
            "Confidence value %.4f out of range [0.0, 1.0]%s, clamping",
            confidence,
            f" in {context}" if context else "",
            extra={"original_confidence": confidence, "context": context},
        )
        return max(0.0, min(1.0, confidence))
    return confidence


def safe_truncate(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate text to max_length characters for display.

    Args:
        text: Text to truncate
        max_length: Maximum length in characters
        suffix: Suffix to add when truncating (default: "...")

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text

    truncate_at = max_length - len(suffix)
    if truncate_at <= 0:
        return suffix[:max_length]

    return text[:truncate_at].rstrip() + suffix
