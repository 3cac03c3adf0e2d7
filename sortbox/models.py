"""Data models for sortbox."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

INBOX = "Inbox"

_DOMAIN_RE = re.compile(r"@([\w.-]+)")


def _unique_lower(values) -> tuple[str, ...]:
    """Lower-case values, dropping blanks and repeats but keeping order."""
    seen: dict[str, None] = {}
    for value in values or ():
        value = str(value).strip().lower()
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


@dataclass(frozen=True)
class Rule:
    """Classification signature of one bucket."""

    bucket_name: str
    keywords: tuple[str, ...] = ()
    known_senders: tuple[str, ...] = ()
    known_domains: tuple[str, ...] = ()
    priority: int = 50
    source: str = "custom"  # "default", "custom", "derived"

    def __post_init__(self):
        object.__setattr__(self, "keywords", _unique_lower(self.keywords))
        object.__setattr__(self, "known_senders", _unique_lower(self.known_senders))
        object.__setattr__(self, "known_domains", _unique_lower(self.known_domains))
        object.__setattr__(self, "priority", max(0, min(100, int(self.priority))))

    @property
    def key(self) -> str:
        """Lower-cased bucket name, unique among active rules."""
        return self.bucket_name.lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket_name": self.bucket_name,
            "keywords": list(self.keywords),
            "known_senders": list(self.known_senders),
            "known_domains": list(self.known_domains),
            "priority": self.priority,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rule":
        return cls(
            bucket_name=data["bucket_name"],
            keywords=tuple(data.get("keywords", ())),
            known_senders=tuple(data.get("known_senders", ())),
            known_domains=tuple(data.get("known_domains", ())),
            priority=data.get("priority", 50),
            source=data.get("source", "custom"),
        )


@dataclass(frozen=True)
class ClassifiableItem:
    """The text and metadata of an email being classified."""

    subject: str = ""
    body: str = ""
    sender_address: str = ""

    def __post_init__(self):
        # Absent fields are treated as empty so scoring stays total
        for name in ("subject", "body", "sender_address"):
            if getattr(self, name) is None:
                object.__setattr__(self, name, "")

    @property
    def normalized_text(self) -> str:
        return f"{self.subject} {self.body}".lower()

    @property
    def sender_domain(self) -> str:
        """Extract domain from the sender address."""
        match = _DOMAIN_RE.search(self.sender_address)
        return match.group(1).lower() if match else ""

    def to_dict(self) -> dict[str, str]:
        return {
            "subject": self.subject,
            "body": self.body,
            "sender_address": self.sender_address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassifiableItem":
        return cls(
            subject=data.get("subject") or "",
            body=data.get("body") or "",
            sender_address=data.get("sender_address") or "",
        )


@dataclass(frozen=True)
class FeedbackRecord:
    """A user's correction: this item belongs in that bucket."""

    item: ClassifiableItem
    correct_bucket: str
    recorded_at: datetime = field(default_factory=datetime.now)

    @property
    def key(self) -> tuple[str, str]:
        return (self.item.sender_address, self.item.subject)

    def to_dict(self) -> dict[str, Any]:
        return {
            "item": self.item.to_dict(),
            "correct_bucket": self.correct_bucket,
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedbackRecord":
        recorded_at = data.get("recorded_at")
        return cls(
            item=ClassifiableItem.from_dict(data.get("item", {})),
            correct_bucket=data["correct_bucket"],
            recorded_at=datetime.fromisoformat(recorded_at) if recorded_at else datetime.now(),
        )


@dataclass
class ScoreResult:
    """Score of one candidate bucket for one item."""

    bucket_name: str
    raw_score: int
    reason: str

    @property
    def confidence(self) -> float:
        return self.raw_score / 100


@dataclass
class Alternative:
    """A runner-up bucket in a classification result."""

    bucket: str
    confidence: float


@dataclass
class ClassificationResult:
    """Result of classifying an item against candidate buckets."""

    suggested_bucket: str
    confidence: float
    reason: str
    alternatives: list[Alternative] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        """Check if the suggestion is the Inbox fallback."""
        return self.suggested_bucket == INBOX

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "suggested_bucket": self.suggested_bucket,
            "confidence": self.confidence,
            "reason": self.reason,
            "alternatives": [
                {"bucket": alt.bucket, "confidence": alt.confidence} for alt in self.alternatives
            ],
        }


@dataclass
class FeedbackOutcome:
    """Result of recording user feedback."""

    success: bool
    message: str
    replaced: bool = False
    created_rules: list[str] = field(default_factory=list)
